"""Counter store adapters.

The decision engine depends on the abstract storage contract only, so the
Redis-backed store and the in-process store are interchangeable.
"""

from ratelimiter.adapters.storage.base import AbstractStorage, BlockStatus
from ratelimiter.adapters.storage.factory import create_storage
from ratelimiter.adapters.storage.in_memory import InMemoryStorage
from ratelimiter.adapters.storage.redis_storage import RedisStorage

__all__ = [
    "AbstractStorage",
    "BlockStatus",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
]
