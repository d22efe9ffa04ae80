"""Rate limiting middleware for the HTTP layer.

This module wires the decision engine into every request, regardless of
method or path.

Request classification:
- A non-empty ``API_KEY`` header selects token mode; the header value is the
  identifier, verbatim.
- Otherwise the host part of the remote address is the identifier.

Verdict translation:
- allowed: the downstream handler runs unchanged
- denied: 429 with a fixed, documented body
- storage or classification failure: opaque 500 (fail-closed)

The middleware neither logs nor mutates the request; the engine owns all
storage writes.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse

from ratelimiter.core.errors import ClassificationAppError, StorageAppError
from ratelimiter.services.limiter_service import KeyKind, RateLimiter

API_KEY_HEADER = "API_KEY"

QUOTA_EXCEEDED_BODY = (
    "you have reached the maximum number of requests or actions allowed "
    "within a certain time frame"
)
INTERNAL_ERROR_BODY = "Internal Server Error"

CallNext = Callable[[Request], Awaitable[Response]]


def classify_request(request: Request) -> tuple[KeyKind, str]:
    """Attribute a request to a client identifier.

    Args:
        request: Incoming request.

    Returns:
        Tuple of (kind, identifier).

    Raises:
        ClassificationAppError: If there is no API key and the remote
            address is missing or has no host.
    """

    token = request.headers.get(API_KEY_HEADER)
    if token:
        return KeyKind.TOKEN, token

    client = request.client
    if client is None or not client.host:
        raise ClassificationAppError(
            code="remote_address_unavailable",
            message="Request has no API key and no usable remote address",
        )
    return KeyKind.IP, client.host


def internal_error_response() -> PlainTextResponse:
    return PlainTextResponse(
        INTERNAL_ERROR_BODY,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_rate_limit_middleware(
    limiter: RateLimiter,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build an HTTP middleware enforcing ``limiter`` on every request.

    Usage:
        app.middleware("http")(create_rate_limit_middleware(limiter))
    """

    async def rate_limit_middleware(request: Request, call_next: CallNext) -> Response:
        try:
            kind, identifier = classify_request(request)
        except ClassificationAppError:
            return internal_error_response()

        try:
            allowed = await limiter.allow(kind, identifier)
        except StorageAppError:
            return internal_error_response()

        if not allowed:
            return PlainTextResponse(
                QUOTA_EXCEEDED_BODY,
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        return await call_next(request)

    return rate_limit_middleware
