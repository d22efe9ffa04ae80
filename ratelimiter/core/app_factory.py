"""Application factory for the FastAPI app.

Centralizes app construction (storage, limiter, middleware, handlers,
routers) so tests can build isolated apps with their own configuration and
store instead of relying on process-wide state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

import ratelimiter
from ratelimiter.adapters.storage import AbstractStorage, create_storage
from ratelimiter.api.routes import downstream_router
from ratelimiter.core.config import Settings, get_settings
from ratelimiter.core.exception_handlers import setup_exception_handlers
from ratelimiter.core.logging import configure_logging
from ratelimiter.core.middleware import create_request_id_middleware
from ratelimiter.core.rate_limit import create_rate_limit_middleware
from ratelimiter.services.limiter_service import RateLimiter

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    storage: AbstractStorage | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Configuration record; defaults to the cached settings.
        storage: Counter store; built from configuration when omitted.

    Returns:
        Configured app. The store is pinged on startup (failure aborts
        startup) and closed on shutdown.

    Raises:
        ConfigurationAppError: If the configured store cannot be built.
    """
    settings = settings or get_settings()

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    store = storage or create_storage(settings.limiter)
    limiter = RateLimiter(store, settings.limiter)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.ping()
        logger.info(
            "storage.connected",
            extra={
                "backend": type(store).__name__,
                "default_limit_by_ip": settings.limiter.default_limit_by_ip,
                "default_limit_by_token": settings.limiter.default_limit_by_token,
                "token_limit_entries": len(limiter.token_limits),
                "block_time_s": settings.limiter.block_time_in_seconds,
            },
        )
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title="Rate Limiter",
        description=(
            "Per-second request limiter keyed by API_KEY header or client IP. "
            "Clients exceeding their quota are blocked for a cooldown period."
        ),
        version=ratelimiter.__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = store
    app.state.limiter = limiter

    # Middleware: the last one registered runs first, so request ids wrap
    # the limiter and throttled responses are correlated too.
    app.middleware("http")(create_rate_limit_middleware(limiter))
    app.middleware("http")(create_request_id_middleware(settings.log.request_id_header))

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(downstream_router)

    return app
