"""Custom middleware for the application."""

import logging
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from stayledger.config import settings

logger = logging.getLogger(__name__)

_UNLIMITED_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per client, counted in Redis."""

    def __init__(self, app, requests_per_minute: int = 100, redis_url: str | None = None):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    def _client_key(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _UNLIMITED_PATHS:
            return await call_next(request)

        window = int(time.time()) // 60
        key = f"stayledger:rate:{self._client_key(request)}:{window}"
        try:
            client = await self.get_redis()
            async with client.pipeline(transaction=True) as pipe:
                await pipe.incr(key)
                await pipe.expire(key, 60)
                count, _ = await pipe.execute()
        except redis.RedisError as e:
            # Redis down: let traffic through
            logger.warning(f"Rate limiter unavailable: {e}")
            return await call_next(request)

        if count > self.requests_per_minute:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later.", "retry_after": 60},
                headers={"Retry-After": "60", "X-RateLimit-Limit": str(self.requests_per_minute)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_minute - count))
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log slow ones."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.time()

        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)
        duration = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        if duration > 1.0:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {duration:.3f}s")
        elif response.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {response.status_code} [{request_id}]")

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
