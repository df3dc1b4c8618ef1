"""Harness error taxonomy.

Every failure the harness reports names the phase it happened in, so a red
test run says *where* things went wrong (startup, config, catalog or schema
convergence, seeding) together with the last state that was observed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class HarnessPhase(str, Enum):
    STARTUP = "startup"
    CONFIG = "config"
    CATALOG_CONVERGENCE = "catalog-convergence"
    SCHEMA_CONVERGENCE = "schema-convergence"
    SEEDING = "seeding"
    TEARDOWN = "teardown"


class HarnessError(Exception):
    """Base class; ``str(err)`` starts with ``[<phase>]``."""

    def __init__(self, phase: HarnessPhase, detail: str) -> None:
        self.phase = HarnessPhase(phase)
        self.detail = detail
        super().__init__(f"[{self.phase.value}] {detail}")


class ServiceStartupFailure(HarnessError):
    def __init__(self, service: str, reason: str, logs: str = "") -> None:
        self.service = service
        self.reason = reason
        self.logs = logs
        detail = f"service '{service}' did not reach Running: {reason}"
        if logs:
            detail = f"{detail}\n--- last log lines of {service} ---\n{logs}"
        super().__init__(HarnessPhase.STARTUP, detail)


class ConfigGenerationError(HarnessError, ValueError):
    def __init__(self, detail: str, fields: list[str] | None = None) -> None:
        self.fields = list(fields or [])
        super().__init__(HarnessPhase.CONFIG, detail)


class ConvergenceTimeout(HarnessError, TimeoutError):
    def __init__(
        self,
        phase: HarnessPhase,
        description: str,
        timeout: float,
        attempts: int,
        elapsed: float,
        last_state: Any = None,
        last_error: BaseException | None = None,
        diagnostics: str = "",
    ) -> None:
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_state = last_state
        self.last_error = last_error
        detail = (
            f"{description}: condition not met within {timeout}s "
            f"({attempts} attempts, {elapsed:.1f}s elapsed); last state: {last_state!r}"
        )
        if last_error is not None:
            detail = f"{detail}; last error: {type(last_error).__name__}: {last_error}"
        if diagnostics:
            detail = f"{detail}\n\n{diagnostics}"
        super().__init__(phase, detail)


class DataSeedingError(HarnessError):
    def __init__(self, detail: str) -> None:
        super().__init__(HarnessPhase.SEEDING, detail)


class TeardownWarning(HarnessError):
    """Recorded by the teardown sequencer for a failed step. Never raised."""

    def __init__(self, step: str, error: BaseException) -> None:
        self.step = step
        self.error = error
        super().__init__(
            HarnessPhase.TEARDOWN, f"step '{step}' failed: {type(error).__name__}: {error}"
        )
