"""Fixed-window request limiting backed by Redis counters."""

import time
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from hibilog.redis_client import get_redis

logger = structlog.get_logger()

# Probes and the scheduler callback are never limited.
_EXEMPT_PREFIXES = ("/health", "/ready", "/version", "/api/cron/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count requests per client address per window; answer 429 past the limit."""

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    async def _count(self, key: str) -> int | None:
        try:
            redis = get_redis()
        except RuntimeError:
            return None
        try:
            pipe = redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window_seconds + 1)
            count, _ = await pipe.execute()
        except Exception:
            logger.warning("rate_limit_unavailable", exc_info=True)
            return None
        return int(count)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.startswith(_EXEMPT_PREFIXES):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        window = int(time.time()) // self.window_seconds
        count = await self._count(f"hibilog:ratelimit:{client}:{window}")
        if count is None:
            return await call_next(request)

        limit = str(self.requests_per_window)
        if count > self.requests_per_window:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests"},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": limit,
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(self.requests_per_window - count)
        response.headers["X-RateLimit-Limit"] = limit
        return response
