"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired entries are dropped when their key is touched again, and a full
  sweep runs on writes at most once per `sweep_interval` seconds, so keys
  of clients that never come back do not accumulate.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from ratelimiter.adapters.storage.base import (
    NOT_BLOCKED,
    AbstractStorage,
    BlockStatus,
    blocked_key,
    requests_key,
)


@dataclass
class _Entry:
    value: int | str
    expires_at: float


class InMemoryStorage(AbstractStorage):
    """Counter store keeping TTL'd entries in a process-local dict.

    Uses the same ``requests:``/``blocked:`` key layout as the Redis store,
    so both backends can be inspected the same way in tests.

    Important:
        This store is per-process only. If the service runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 1.0,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source returning seconds as a float.
            sweep_interval: Minimum seconds between two full sweeps of
                expired entries.
        """
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}
        self._sweep_interval = sweep_interval
        self._next_sweep_at = clock() + sweep_interval

    def _sweep(self, now: float) -> None:
        """Drop every expired entry once the sweep interval has elapsed.

        Must be called with the lock held.
        """
        if now < self._next_sweep_at:
            return
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep_at = now + self._sweep_interval

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        """Return the entry for key, dropping it first if it has expired."""
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    async def increment(self, identifier: str, window: timedelta) -> int:
        if window <= timedelta(0):
            raise ValueError("window must be positive")

        key = requests_key(identifier)
        now = self._clock()

        with self._lock:
            self._sweep(now)
            entry = self._live_entry(key, now)
            if entry is None:
                entry = _Entry(value=0, expires_at=now + window.total_seconds())
                self._entries[key] = entry
            entry.value = int(entry.value) + 1
            return entry.value

    async def set_block(self, identifier: str, duration: timedelta) -> None:
        if duration <= timedelta(0):
            return

        now = self._clock()
        with self._lock:
            self._sweep(now)
            self._entries[blocked_key(identifier)] = _Entry(
                value="1",
                expires_at=now + duration.total_seconds(),
            )

    async def is_blocked(self, identifier: str) -> BlockStatus:
        now = self._clock()
        with self._lock:
            entry = self._live_entry(blocked_key(identifier), now)
            if entry is None:
                return NOT_BLOCKED
            return BlockStatus(
                blocked=True,
                remaining=timedelta(seconds=entry.expires_at - now),
            )

    def peek(self, key: str) -> int | str | None:
        """Return the live value stored under a raw key, or None.

        Args:
            key: Full key including namespace (e.g. ``requests:10.0.0.1``).
        """
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return None if entry is None else entry.value

    def ttl(self, key: str) -> float | None:
        """Return seconds left before a raw key expires, or None if absent."""
        now = self._clock()
        with self._lock:
            entry = self._live_entry(key, now)
            return None if entry is None else entry.expires_at - now

    def entry_count(self) -> int:
        """Number of entries currently held, expired or not."""
        with self._lock:
            return len(self._entries)
