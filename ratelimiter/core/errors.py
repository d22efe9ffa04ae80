"""Error taxonomy.

Storage and classification errors end a request with an opaque 500;
configuration errors are fatal at startup. Quota denials are not errors:
the decision engine reports them through its boolean verdict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured context attached to an error for logging."""

    operation: str
    backend: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (logged, never sent to clients).
        details: Optional structured details for observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class StorageAppError(AppError):
    """The counter store failed or could not be reached (fail-closed)."""


class ClassificationAppError(AppError):
    """A request could not be attributed to any client identifier."""


class ConfigurationAppError(AppError):
    """Configuration is unusable; raised while building the application."""
