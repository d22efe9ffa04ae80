"""Structured logging for the limiter.

- One root handler (stdout or a rotating file), JSON or plain text
- The correlation id of the current request lives in a ContextVar and is
  stamped on every record emitted while that request is served
- Client secrets never reach the output: API keys and raw identifiers found
  in ``extra=`` payloads are replaced by a short SHA-256 digest, so records
  about the same client can still be grouped
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from ratelimiter.core.config import LogSettings, get_settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Keys whose values identify or authenticate a client
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "api-key",
        "x-api-key",
        "authorization",
        "cookie",
        "identifier",
        "password",
        "secret",
        "token",
        "token_limits",
    }
)

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(identifier: str) -> str:
    """Return a short, stable digest of a client identifier.

    Used wherever a log record needs to refer to a client without exposing
    its IP address or API key.
    """
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class Redactor:
    """Replace sensitive values by their digest, recursing into containers."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(key.lower() for key in keys)

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def mask(self, value: Any) -> str:
        if value is None or value == "":
            return "[REDACTED]"
        # Filters and formatters both scrub; never hash a mask again
        if isinstance(value, str) and value.startswith("[REDACTED"):
            return value
        return f"[REDACTED:{hash_identifier(str(value))}]"

    def scrub(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: self.mask(v) if self.is_sensitive(str(k)) else self.scrub(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub(v) for v in value)
        return value

    def extras(self, record: logging.LogRecord) -> dict[str, Any]:
        """Collect the record's extra fields with sensitive values masked."""
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        return self.scrub(fields)


class RequestIdFilter(logging.Filter):
    """Stamp the current request id on records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive extras in place, before any formatter sees them."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object per line."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in self.redactor.extras(record).items()
            if value is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable lines: timestamp, level, logger, event, then key=value extras."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self.redactor = Redactor(sensitive_keys)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        line = super().format(record)
        extras = " ".join(
            f"{key}={value}"
            for key, value in sorted(self.redactor.extras(record).items())
            if value is not None
        )
        return f"{line} {extras}" if extras else line


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or "logs/ratelimiter.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(path, encoding="utf-8")
    return RotatingFileHandler(
        path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the root handler described by ``log_settings``.

    Replaces any handler previously attached to the root logger, so calling
    it again (e.g. one app per test) does not duplicate output.
    """
    cfg = log_settings or get_settings().log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(PlainFormatter() if cfg.format == "plain" else JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers unless log_config=None; never both
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
