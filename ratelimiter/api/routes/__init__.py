from __future__ import annotations

from ratelimiter.api.routes.downstream import router as downstream_router

__all__ = ["downstream_router"]
