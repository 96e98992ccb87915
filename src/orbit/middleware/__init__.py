"""Middleware registration."""

from fastapi import FastAPI

from orbit.config import Settings
from orbit.middleware.cors import setup_cors
from orbit.middleware.error_handler import setup_error_handlers
from orbit.middleware.logging import setup_logging
from orbit.middleware.rate_limit import RateLimitMiddleware
from orbit.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS is added last so its headers also land on 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
