from collections.abc import Iterator
from dataclasses import replace

import pytest

from thoughtloop.core.bus import Bus
from thoughtloop.core.config import ConfigManager
from thoughtloop.util import log as log_module


@pytest.fixture(autouse=True)
def bus_context() -> Iterator[None]:
    token = Bus.provide(Bus())
    try:
        yield
    finally:
        Bus.restore(token)


@pytest.fixture(autouse=True)
def config_context(monkeypatch) -> Iterator[None]:  # type: ignore[no-untyped-def]
    monkeypatch.delenv("THOUGHTLOOP_CONFIG_CONTENT", raising=False)
    token = ConfigManager.provide(ConfigManager())
    try:
        yield
    finally:
        ConfigManager.restore(token)


@pytest.fixture(autouse=True)
def _log_teardown(monkeypatch) -> Iterator[None]:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(log_module, "_config", replace(log_module._config, _file_handle=None))
    yield
    log_module.Log.close()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
