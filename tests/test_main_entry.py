"""Tests for the process entry point exit codes."""

from __future__ import annotations

import pytest

from ratelimiter import main
from ratelimiter.core.config import get_settings
from ratelimiter.core.errors import ConfigurationAppError


class FakeServer:
    started = True
    instances: list["FakeServer"] = []

    def __init__(self, config) -> None:
        self.config = config
        FakeServer.instances.append(self)

    def run(self) -> None:
        pass


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    FakeServer.instances.clear()
    yield
    get_settings.cache_clear()


def test_invalid_configuration_exits_non_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_LIMIT_BY_IP", "not-a-number")

    assert main.run() == 1


def test_configuration_error_while_building_app_exits_non_zero(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _fail(settings):
        raise ConfigurationAppError(code="storage_addr_invalid", message="bad address")

    monkeypatch.setattr(main, "create_app", _fail)

    assert main.run() == 1


def test_normal_shutdown_exits_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEB_SERVER_PORT", "9099")
    monkeypatch.setattr(main.uvicorn, "Server", FakeServer)

    assert main.run() == 0
    assert FakeServer.instances[0].config.port == 9099
    assert FakeServer.instances[0].config.proxy_headers is False


def test_failed_startup_exits_non_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    class NeverStarted(FakeServer):
        started = False

    monkeypatch.setattr(main.uvicorn, "Server", NeverStarted)

    assert main.run() == 3


def test_main_passes_exit_code_to_sys_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "run", lambda: 1)

    with pytest.raises(SystemExit) as exc_info:
        main.main()

    assert exc_info.value.code == 1
