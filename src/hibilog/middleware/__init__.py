"""Middleware and exception handler registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hibilog.config import Settings
from hibilog.middleware.error_handler import setup_error_handlers
from hibilog.middleware.logging import setup_logging
from hibilog.middleware.rate_limit import RateLimitMiddleware
from hibilog.middleware.request_id import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs the last one added outermost.

    CORS goes last so its headers are also applied to 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
