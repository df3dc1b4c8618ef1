from __future__ import annotations

import pytest

from fedquery.harness.memory_stack import MemoryStack, build_memory_stack
from fedquery.harness.settings import HarnessSettings
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.logger.memory_logger import MemoryLogger


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log() -> MemoryLogger:
    return MemoryLogger()


@pytest.fixture
def logger_factory() -> LoggerFactory:
    return LoggerFactory(default_impl="memory")


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(
        catalog_timeout=20.0,
        catalog_interval=2.0,
        schema_timeout=10.0,
        schema_interval=1.0,
    )


@pytest.fixture
def stack(settings: HarnessSettings) -> MemoryStack:
    return build_memory_stack(settings)
