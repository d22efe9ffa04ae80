"""Unit tests for counter store selection."""

from __future__ import annotations

import pytest

from ratelimiter.adapters.storage import InMemoryStorage, RedisStorage, create_storage
from ratelimiter.core.config import LimiterSettings
from ratelimiter.core.errors import ConfigurationAppError


def test_memory_backend() -> None:
    storage = create_storage(LimiterSettings(storage_backend="memory"))

    assert isinstance(storage, InMemoryStorage)


def test_redis_backend() -> None:
    storage = create_storage(LimiterSettings(storage_backend="redis", storage_addr="cache:6379"))

    assert isinstance(storage, RedisStorage)


def test_redis_backend_requires_address() -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        create_storage(LimiterSettings(storage_backend="redis", storage_addr=""))

    assert exc_info.value.code == "storage_addr_missing"


def test_redis_backend_rejects_unparseable_address() -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        create_storage(LimiterSettings(storage_backend="redis", storage_addr="no-port"))

    assert exc_info.value.code == "storage_addr_invalid"


def test_unknown_backend() -> None:
    config = LimiterSettings.model_construct(storage_backend="sqlite")

    with pytest.raises(ConfigurationAppError) as exc_info:
        create_storage(config)

    assert exc_info.value.code == "storage_unknown_backend"
