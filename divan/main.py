import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from . import models  # noqa: F401 - register tables on Base
from .config import get_settings
from .database import Base, engine
from .domain.accounts import router as accounts_router
from .domain.admin import router as admin_router
from .domain.blog import public_router as blog_public_router
from .domain.blog import router as blog_router
from .domain.catalog import public_router as catalog_public_router
from .domain.catalog import router as catalog_router
from .domain.notifications import router as notifications_router
from .domain.payments import router as payments_router
from .domain.reviews import public_router as reviews_public_router
from .domain.reviews import router as reviews_router
from .domain.scheduling import router as scheduling_router
from .domain.sessions import router as sessions_router
from .errors import DomainError, domain_error_handler, validation_exception_handler
from .gateway import SessionGatewayMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application starting up ({settings.ENVIRONMENT})...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Another worker may have created the tables first
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Divan API", version=__version__, lifespan=lifespan)

app.add_exception_handler(DomainError, domain_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc), "code": "INTERNAL_ERROR"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    if elapsed_ms > 1000:
        logger.warning(f"🐢 {request.method} {request.url.path} took {elapsed_ms:.0f}ms")
    return response


app.add_middleware(SessionGatewayMiddleware, settings=settings)

logger.info(f"CORS allowed origins: {settings.allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(accounts_router)
app.include_router(admin_router)
app.include_router(catalog_router)
app.include_router(catalog_public_router)
app.include_router(payments_router)
app.include_router(scheduling_router)
app.include_router(sessions_router)
app.include_router(reviews_router)
app.include_router(reviews_public_router)
app.include_router(notifications_router)
app.include_router(blog_router)
app.include_router(blog_public_router)


@app.get("/")
async def root():
    return {"message": "Divan API", "version": __version__}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
