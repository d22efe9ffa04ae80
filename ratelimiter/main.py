"""Process entry point.

Run with the console script::

    ratelimiter

or through uvicorn's factory mode::

    uvicorn ratelimiter.main:create_app --factory
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from pydantic import ValidationError

from ratelimiter.core.app_factory import create_app
from ratelimiter.core.config import Settings, get_settings
from ratelimiter.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)

__all__ = ["create_app", "run"]


def _load_settings() -> Settings | None:
    try:
        return get_settings()
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return None


def run() -> int:
    """Load configuration, build the app and serve it until shutdown.

    Returns:
        Process exit code: 0 on normal shutdown, non-zero when configuration,
        storage connection or listener bind fails.
    """
    settings = _load_settings()
    if settings is None:
        return 1

    try:
        app = create_app(settings)
    except ConfigurationAppError as exc:
        logger.error(
            "startup.configuration_error",
            extra={"error_code": exc.code, "error_message": exc.message},
        )
        return 1

    port = int(settings.limiter.web_server_port)
    logger.info("startup.listening", extra={"port": port})

    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        lifespan="on",
        log_config=None,
        # The IP identifier is the socket peer; forwarding headers are not trusted
        proxy_headers=False,
    )
    server = uvicorn.Server(config)
    server.run()

    # Server.started stays False when lifespan startup or bind failed
    return 0 if server.started else 3


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
