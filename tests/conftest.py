"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
APP_ENV is forced to "testing" before any application import so a developer
.env file never leaks into the suite.
"""

from __future__ import annotations

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from ratelimiter.adapters.storage.in_memory import InMemoryStorage
from ratelimiter.core.app_factory import create_app
from ratelimiter.core.config import LimiterSettings, LogSettings, Settings


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(clock: FakeClock) -> InMemoryStorage:
    return InMemoryStorage(clock=clock)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build an isolated settings record with limiter overrides."""

    def _make(**limiter_overrides: Any) -> Settings:
        limiter_overrides.setdefault("storage_backend", "memory")
        return Settings(
            limiter=LimiterSettings(**limiter_overrides),
            log=LogSettings(format="plain", level="WARNING"),
        )

    return _make


@pytest.fixture
def make_client(
    make_settings: Callable[..., Settings],
    storage: InMemoryStorage,
) -> Iterator[Callable[..., TestClient]]:
    """Build a started TestClient around the in-memory storage fixture."""

    clients: list[TestClient] = []

    def _make(store: Any = None, **limiter_overrides: Any) -> TestClient:
        app = create_app(make_settings(**limiter_overrides), store or storage)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
