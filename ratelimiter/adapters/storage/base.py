"""Counter store interface.

The decision engine depends on this abstraction (not a concrete backend) so
the store can be remote (Redis) or in-process without any engine changes.

Every operation is a coroutine: the asyncio task awaiting it carries the
request's cancellation, and an I/O failure surfaces as StorageAppError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta

REQUESTS_PREFIX = "requests:"
BLOCKED_PREFIX = "blocked:"


def requests_key(identifier: str) -> str:
    """Key holding the per-window request counter for an identifier."""
    return f"{REQUESTS_PREFIX}{identifier}"


def blocked_key(identifier: str) -> str:
    """Key holding the cooldown flag for an identifier."""
    return f"{BLOCKED_PREFIX}{identifier}"


@dataclass(frozen=True)
class BlockStatus:
    """Result of a block lookup.

    Attributes:
        blocked: Whether a live block exists for the identifier.
        remaining: Time left on the block (zero when not blocked).
    """

    blocked: bool
    remaining: timedelta = timedelta(0)


NOT_BLOCKED = BlockStatus(blocked=False)


class AbstractStorage(ABC):
    """Interface for counter stores."""

    @abstractmethod
    async def increment(self, identifier: str, window: timedelta) -> int:
        """Atomically increment the request counter for an identifier.

        The first increment of an absent counter yields 1 and starts a
        lifetime of ``window``; later increments inside that lifetime keep
        the remaining TTL. A counter never exists without a TTL.

        Args:
            identifier: Client identifier (IP host or token).
            window: Counter lifetime measured from its creation.

        Returns:
            The counter value after the increment.

        Raises:
            StorageAppError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_block(self, identifier: str, duration: timedelta) -> None:
        """Flag an identifier as blocked for ``duration``.

        A non-positive duration installs nothing.

        Raises:
            StorageAppError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    @abstractmethod
    async def is_blocked(self, identifier: str) -> BlockStatus:
        """Report whether a live block exists for an identifier.

        Raises:
            StorageAppError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    async def ping(self) -> None:
        """Verify the store is reachable. Raises StorageAppError if not."""

    async def close(self) -> None:
        """Release connections held by the store."""
