"""
Redis fixed-window rate limiting
Fails open: when Redis is not configured or unreachable, requests are allowed
"""

import logging
import time
from typing import Optional
from urllib.parse import urlparse

import redis
from fastapi import Request

from .config import get_settings
from .errors import RateLimited

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def _masked(redis_url: str) -> str:
    parsed = urlparse(redis_url)
    return f"{parsed.scheme}://****@{parsed.hostname}:{parsed.port or 6379}"


def get_redis_client() -> redis.Redis:
    """Shared client, created on first use; raises when REDIS_URL is missing or Redis is down"""
    global redis_client

    if redis_client is not None:
        return redis_client

    redis_url = get_settings().REDIS_URL
    if not redis_url:
        raise RuntimeError("REDIS_URL not configured")

    logger.info(f"📡 Connecting rate limiter to {_masked(redis_url)}")
    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )
        client.ping()
    except redis.RedisError as e:
        logger.error(f"❌ Rate limiter could not reach Redis, allowing all requests: {str(e)}")
        raise

    redis_client = client
    return redis_client


def check_rate_limit(key: str, limit: int, window_seconds: int, client: redis.Redis) -> tuple[bool, int, int]:
    """
    Count one hit in the current window.

    Returns:
        (is_allowed, current_count, seconds_until_reset)
    """
    now = int(time.time())
    bucket = f"{key}:{now // window_seconds}"
    pipe = client.pipeline()
    pipe.incr(bucket)
    pipe.expire(bucket, window_seconds)
    hits, _ = pipe.execute()
    return hits <= limit, hits, window_seconds - (now % window_seconds)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Raise RateLimited when the key is over its limit; any Redis problem allows the request"""
    try:
        allowed, hits, retry_after = check_rate_limit(key, limit, window_seconds, get_redis_client())
    except (RuntimeError, redis.RedisError) as e:
        logger.debug(f"Rate limiting skipped for {key}: {e}")
        return

    if not allowed:
        logger.warning(f"🚫 Rate limit hit for {key}: {hits}/{limit} in {window_seconds}s")
        raise RateLimited(retry_after=retry_after)


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str):
    """
    Per-IP limiter dependency

        resend_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="resend_verification")

        @router.post("/resend-verification")
        async def resend(data: ResendRequest, _: None = Depends(resend_limit)):
            ...
    """

    async def limit_by_ip(request: Request):
        enforce_rate_limit(f"{key_prefix}:{client_ip(request)}", limit, window_seconds)

    return limit_by_ip
