"""Correlation and access-log middleware.

Runs outside the rate limit middleware, so every response (including 429
and 500 answers produced by the limiter) gets:

- a request id, taken from the configured header or generated as a UUID4,
  echoed back on the response and visible to every log record emitted
  while the request is served;
- an ``X-Request-Duration-ms`` header;
- one ``http.request`` access log record.

Usage:
    app.middleware("http")(create_request_id_middleware("X-Request-ID"))
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from ratelimiter.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


def create_request_id_middleware(
    header_name: str = "X-Request-ID",
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build the correlation middleware for ``header_name``."""

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "http.request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round(elapsed_ms, 2),
                },
            )
        finally:
            clear_request_id()

        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
        return response

    return request_id_middleware
