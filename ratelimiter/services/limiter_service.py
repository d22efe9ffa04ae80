"""Rate limit decision engine.

Given a client identifier, decides whether a request may proceed:

1. A live block denies immediately, before any quota is consumed.
2. Otherwise the per-second counter is incremented and compared against
   the limit resolved for the identifier.
3. The first request whose count exceeds the limit installs a block for the
   configured cooldown and is itself denied.

The engine holds no mutable state of its own; counters and blocks live in
the injected store. Storage failures propagate as StorageAppError and the
caller must treat them as a denial (fail-closed).
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ratelimiter.adapters.storage.base import AbstractStorage
from ratelimiter.core.config import LimiterSettings
from ratelimiter.core.errors import StorageAppError
from ratelimiter.core.logging import hash_identifier

logger = logging.getLogger(__name__)

WINDOW = timedelta(seconds=1)

_LIMIT_PATTERN = re.compile(r"[+-]?[0-9]+")


class KeyKind(str, Enum):
    """How a request was attributed to a client."""

    IP = "IP"
    TOKEN = "TOKEN"


def parse_token_limits(raw: str | None) -> dict[str, int]:
    """Parse ``token:limit`` pairs separated by commas.

    Whitespace around each pair is trimmed; whitespace inside a token is
    kept. Pairs that do not split into exactly two parts, whose limit is
    not an integer, whose limit is negative, or whose token is empty are
    skipped. A later pair overrides an earlier one for the same token.

    Examples:
        >>> parse_token_limits("abc123:2, xyz987:200")
        {'abc123': 2, 'xyz987': 200}
        >>> parse_token_limits("broken,ok:3,bad:x")
        {'ok': 3}
    """
    if not raw:
        return {}

    limits: dict[str, int] = {}
    for pair in raw.split(","):
        parts = pair.strip().split(":")
        if len(parts) != 2:
            continue
        token, value = parts
        if not token or not _LIMIT_PATTERN.fullmatch(value):
            continue
        limit = int(value)
        if limit < 0:
            continue
        limits[token] = limit
    return limits


class RateLimiter:
    """Per-second fixed-window limiter with a cooldown after the first denial."""

    def __init__(self, storage: AbstractStorage, config: LimiterSettings) -> None:
        """Build the engine from a store and an immutable configuration.

        Args:
            storage: Counter store shared by every worker.
            config: Limiter settings; the token table is parsed once here.
        """
        self._storage = storage
        self._limit_by_ip = config.default_limit_by_ip
        self._limit_by_token = config.default_limit_by_token
        self._block_time = timedelta(seconds=config.block_time_in_seconds)
        self._token_limits: Mapping[str, int] = MappingProxyType(
            parse_token_limits(config.token_limits)
        )

    @property
    def token_limits(self) -> Mapping[str, int]:
        return self._token_limits

    @property
    def block_time(self) -> timedelta:
        return self._block_time

    def limit_for(self, kind: KeyKind, identifier: str) -> int:
        """Resolve the per-second quota for an identifier.

        Tokens listed in the token table use their own limit; other tokens
        use the token default; IP addresses use the IP default.
        """
        if kind is KeyKind.TOKEN:
            return self._token_limits.get(identifier, self._limit_by_token)
        return self._limit_by_ip

    async def allow(self, kind: KeyKind, identifier: str) -> bool:
        """Decide whether a request from ``identifier`` may proceed.

        Args:
            kind: Whether the identifier is an IP host or an API token.
            identifier: Non-empty identifier value.

        Returns:
            True to allow the request, False to deny it.

        Raises:
            StorageAppError: If any storage call fails; the request must be
                denied.
        """
        log_fields = {
            "key_type": kind.value,
            "key_hash": hash_identifier(identifier),
        }

        try:
            status = await self._storage.is_blocked(identifier)
            if status.blocked:
                logger.info(
                    "rate_limit.blocked",
                    extra={
                        **log_fields,
                        "block_remaining_s": round(status.remaining.total_seconds(), 3),
                    },
                )
                return False

            limit = self.limit_for(kind, identifier)
            count = await self._storage.increment(identifier, WINDOW)
            if count <= limit:
                return True

            await self._storage.set_block(identifier, self._block_time)
        except StorageAppError as exc:
            logger.error(
                "rate_limit.storage_error",
                extra={**log_fields, "error_code": exc.code, "error_message": exc.message},
            )
            raise

        logger.warning(
            "rate_limit.exceeded",
            extra={
                **log_fields,
                "limit": limit,
                "count": count,
                "block_time_s": self._block_time.total_seconds(),
            },
        )
        return False
