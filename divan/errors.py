"""
Domain error taxonomy
Services raise these; main.py renders them as {"error": message, "code": CODE}
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Erro interno"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(DomainError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Não autenticado"


class Forbidden(DomainError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Acesso negado"


class ValidationFailed(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Dados inválidos"


class NotFound(DomainError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Não encontrado"


class InvalidToken(DomainError):
    status_code = 400
    code = "INVALID_TOKEN"
    default_message = "Token inválido"


class TokenAlreadyUsed(DomainError):
    status_code = 400
    code = "TOKEN_ALREADY_USED"
    default_message = "Token já utilizado"


class TokenExpired(DomainError):
    status_code = 400
    code = "TOKEN_EXPIRED"
    default_message = "Token expirado"


class Conflict(DomainError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflito"


class InsufficientCredits(Conflict):
    code = "INSUFFICIENT_CREDITS"
    default_message = "Você não possui créditos disponíveis para este tipo de sessão"


class SlotTaken(Conflict):
    code = "SLOT_TAKEN"
    default_message = "Este horário não está mais disponível"


class CancellationWindowClosed(Conflict):
    code = "CANCELLATION_WINDOW_CLOSED"
    default_message = "Cancelamento permitido apenas com antecedência mínima; você pode reagendar"


class SessionNotOpen(Conflict):
    code = "SESSION_NOT_OPEN"
    default_message = "A sessão não está disponível neste horário"


class RateLimited(DomainError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Muitas tentativas. Aguarde alguns minutos e tente novamente."

    def __init__(self, message: str | None = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamFailure(DomainError):
    status_code = 500
    code = "UPSTREAM_FAILURE"
    default_message = "Falha em serviço externo"


async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.info(f"⚠️ {request.method} {request.url.path} - {exc.code}: {exc.message}")
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request body/query validation errors as 400 with field-level messages"""
    fields = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        message = str(error.get("msg", "inválido"))
        # pydantic prefixes messages raised from validators
        fields[field] = message.removeprefix("Value error, ")

    logger.warning(f"Validation error for {request.url.path}: {fields}")
    first_message = next(iter(fields.values()), ValidationFailed.default_message)
    return JSONResponse(
        status_code=400,
        content={"error": first_message, "code": ValidationFailed.code, "fields": fields},
    )
