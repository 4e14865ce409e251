"""Rate limiting for the public portal."""

import time

import redis.asyncio as redis
import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from trocas.config import settings

logger = structlog.get_logger()

PORTAL_PREFIX = "/api/v1/portal"
WINDOW_SECONDS = 60


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window, per-client rate limiting of portal routes using Redis."""

    def __init__(self, app, redis_url: str | None = None):
        super().__init__(app)
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def dispatch(self, request: Request, call_next):
        """Process request with rate limiting."""
        path = request.url.path
        if path.startswith("/health") or not path.startswith(PORTAL_PREFIX):
            return await call_next(request)

        limit = self._get_limit(request.method, path)
        identifier = self._get_identifier(request)

        try:
            allowed, remaining, reset_at = await self._check_rate_limit(identifier, path, limit)
        except Exception as e:
            # If Redis fails, allow request but log
            logger.warning("rate_limit_check_failed", error=str(e))
            return await call_next(request)

        if not allowed:
            logger.warning("rate_limit_exceeded", identifier=identifier, path=path)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Muitas tentativas. Aguarde um minuto e tente novamente.",
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_at),
                    "Retry-After": str(max(0, reset_at - int(time.time()))),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_at)
        return response

    def _get_identifier(self, request: Request) -> str:
        """Client IP, honouring the first X-Forwarded-For hop."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def _get_limit(self, method: str, path: str) -> int:
        """Submissions are limited harder than lookups."""
        if method == "POST" and path.endswith("/return-requests"):
            return settings.rate_limit_submit_per_minute
        return settings.rate_limit_lookup_per_minute

    async def _check_rate_limit(
        self,
        identifier: str,
        path: str,
        limit: int,
    ) -> tuple[bool, int, int]:
        """
        Check if request is within rate limit.

        Returns: (allowed, remaining, reset_timestamp)
        """
        r = await self.get_redis()

        now = int(time.time())
        window_start = now - (now % WINDOW_SECONDS)
        key = f"{settings.cache_prefix}:ratelimit:{identifier}:{path}:{window_start}"

        current = await r.incr(key)
        if current == 1:
            await r.expire(key, WINDOW_SECONDS + 1)

        remaining = max(0, limit - current)
        reset_at = window_start + WINDOW_SECONDS
        return current <= limit, remaining, reset_at
