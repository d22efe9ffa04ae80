"""Handlers served behind the limiter.

They stand in for the protected service: every request reaching them has
already been allowed by the rate limit middleware.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get("/", response_class=PlainTextResponse, tags=["Demo"])
def hello() -> str:
    return "Hello, World!"


@router.get("/health", tags=["Health"])
def health_check() -> dict[str, str]:
    """Liveness check. Throttled like any other path."""
    return {"status": "ok"}
