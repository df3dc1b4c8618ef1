from __future__ import annotations

from typing import Callable

from fedquery.harness.errors import TeardownWarning
from fedquery.services.logger.interface import LoggingInterface


class TeardownSequencer:
    """Runs cleanup steps in registration order; every step is attempted.

    A failing step is logged and recorded as a ``TeardownWarning``. Nothing
    escapes ``run()``, and a second ``run()`` does nothing.
    """

    def __init__(self, log: LoggingInterface) -> None:
        self._log = log
        self._steps: list[tuple[str, Callable[[], None]]] = []
        self._done = False
        self.warnings: list[TeardownWarning] = []

    @property
    def done(self) -> bool:
        return self._done

    def add(self, name: str, action: Callable[[], None]) -> None:
        self._steps.append((name, action))

    def run(self) -> list[TeardownWarning]:
        if self._done:
            return []
        self._done = True
        self._log.info("Teardown started", steps=len(self._steps))
        for name, action in self._steps:
            try:
                action()
            except Exception as exc:
                warning = TeardownWarning(name, exc)
                self.warnings.append(warning)
                self._log.warn("Teardown step failed", step=name, error=str(warning))
            else:
                self._log.debug("Teardown step done", step=name)
        self._log.info("Teardown finished", warnings=len(self.warnings))
        return list(self.warnings)
