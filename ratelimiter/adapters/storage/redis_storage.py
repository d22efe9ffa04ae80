"""Redis-backed counter store.

Counters live under ``requests:<identifier>`` and cooldown flags under
``blocked:<identifier>``. The increment and its TTL are sent as a single
MULTI/EXEC transaction so a counter can never be left without an expiry.

``EXPIRE ... NX`` (Redis >= 7.0) only sets the TTL when the key has none,
so the window stays anchored to the first request it counted.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ratelimiter.adapters.storage.base import (
    NOT_BLOCKED,
    AbstractStorage,
    BlockStatus,
    blocked_key,
    requests_key,
)
from ratelimiter.core.errors import ConfigurationAppError, StorageAppError

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (RedisError, OSError)


def parse_storage_addr(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` address into its parts.

    Bracketed IPv6 hosts (``[::1]:6379``) are accepted.

    Raises:
        ConfigurationAppError: If the address has no valid port.
    """
    host, sep, port = addr.strip().rpartition(":")
    host = host.strip("[]")
    if not sep or not host or not port.isdigit():
        raise ConfigurationAppError(
            code="storage_addr_invalid",
            message=f"Storage address must be host:port or a redis:// URL, got '{addr}'",
        )
    return host, int(port)


def build_redis_client(addr: str, *, timeout_seconds: float) -> Redis:
    """Create a Redis client for a ``host:port`` address or a URL.

    The client connects lazily; call ``RedisStorage.ping()`` to verify it.
    """
    options: dict[str, Any] = {
        "socket_timeout": timeout_seconds,
        "socket_connect_timeout": timeout_seconds,
        "decode_responses": True,
    }
    if "://" in addr:
        return Redis.from_url(addr, **options)

    host, port = parse_storage_addr(addr)
    return Redis(host=host, port=port, **options)


class RedisStorage(AbstractStorage):
    """Counter store on a Redis server shared by every limiter process."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_addr(cls, addr: str, *, timeout_seconds: float = 2.0) -> "RedisStorage":
        return cls(build_redis_client(addr, timeout_seconds=timeout_seconds))

    async def increment(self, identifier: str, window: timedelta) -> int:
        key = requests_key(identifier)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, window, nx=True)
                count, _ = await pipe.execute()
        except STORAGE_ERRORS as exc:
            raise StorageAppError(
                code="storage_increment_failed",
                message=f"Failed to increment request counter: {exc}",
                details={"operation": "increment", "backend": "redis"},
            ) from exc
        return int(count)

    async def set_block(self, identifier: str, duration: timedelta) -> None:
        if duration <= timedelta(0):
            return
        try:
            await self._client.set(blocked_key(identifier), "1", ex=duration)
        except STORAGE_ERRORS as exc:
            raise StorageAppError(
                code="storage_set_block_failed",
                message=f"Failed to store block flag: {exc}",
                details={"operation": "set_block", "backend": "redis"},
            ) from exc

    async def is_blocked(self, identifier: str) -> BlockStatus:
        try:
            # PTTL: -2 when the key is absent, -1 when it has no expiry
            ttl_ms = await self._client.pttl(blocked_key(identifier))
        except STORAGE_ERRORS as exc:
            raise StorageAppError(
                code="storage_is_blocked_failed",
                message=f"Failed to read block flag: {exc}",
                details={"operation": "is_blocked", "backend": "redis"},
            ) from exc

        if ttl_ms > 0:
            return BlockStatus(blocked=True, remaining=timedelta(milliseconds=ttl_ms))
        return NOT_BLOCKED

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except STORAGE_ERRORS as exc:
            raise StorageAppError(
                code="storage_unreachable",
                message=f"Could not connect to Redis: {exc}",
                details={"operation": "ping", "backend": "redis"},
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("storage.closed", extra={"backend": "redis"})
