"""Last-resort exception handlers.

The rate limit middleware answers storage and classification failures on
its own. Anything else that escapes a route ends up here: it is logged with
its type and the request it broke, and the client gets the same opaque
plain-text 500 the limiter uses, never the exception text.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from ratelimiter.core.errors import AppError
from ratelimiter.core.rate_limit import internal_error_response

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> PlainTextResponse:
    """Log a domain error raised by a route and hide it behind a 500."""
    logger.error(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "request_path": request.url.path,
        },
    )
    return internal_error_response()


async def general_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Log an unexpected exception and hide it behind a 500."""
    logger.exception(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return internal_error_response()


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers, most specific first."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
