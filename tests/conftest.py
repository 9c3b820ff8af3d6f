from __future__ import annotations

import logging as py_logging
from pathlib import Path

import pytest


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def record_sleep(recorded_sleeps: list[float]):
    return recorded_sleeps.append


@pytest.fixture
def clean_backoff_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "EXPBACKOFF_MAX_RETRIES",
        "EXPBACKOFF_INITIAL_WAIT_MS",
        "EXPBACKOFF_GROWTH_FACTOR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def reset_package_logger():
    yield
    logger = py_logging.getLogger("expbackoff")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True
