"""Factory pattern for creating counter store instances."""

from ratelimiter.adapters.storage.base import AbstractStorage
from ratelimiter.adapters.storage.in_memory import InMemoryStorage
from ratelimiter.adapters.storage.redis_storage import RedisStorage
from ratelimiter.core.config import LimiterSettings
from ratelimiter.core.errors import ConfigurationAppError


def create_storage(config: LimiterSettings) -> AbstractStorage:
    """Instantiate the counter store selected by configuration.

    Args:
        config: Limiter settings (backend name, address, timeout).

    Returns:
        AbstractStorage: Configured store. Redis clients connect lazily.

    Raises:
        ConfigurationAppError: If the backend is unknown or its address invalid.
    """
    backend = config.storage_backend.lower()

    if backend == "redis":
        if not config.storage_addr:
            raise ConfigurationAppError(
                code="storage_addr_missing",
                message="Redis backend requires STORAGE_ADDR (or REDIS_ADDR)",
            )
        return RedisStorage.from_addr(
            config.storage_addr,
            timeout_seconds=config.storage_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryStorage()

    raise ConfigurationAppError(
        code="storage_unknown_backend",
        message=f"Unknown storage backend: '{backend}'. Supported backends: redis, memory",
    )
