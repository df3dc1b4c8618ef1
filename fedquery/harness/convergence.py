"""Bounded polling for state that propagates between services.

The query engine discovers catalogs and tables asynchronously, so the harness
polls its introspection surface until the expected object shows up. Every loop
here has a deadline; running past it raises ``ConvergenceTimeout`` carrying the
last observed state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from fedquery.harness.errors import ConvergenceTimeout, HarnessPhase
from fedquery.services.logger.interface import LoggingInterface
from fedquery.services.query_engine.interface import (
    QueryEngineInterface,
    QueryEngineUnavailable,
    QueryFailed,
)

# Errors that mean "not there yet" rather than "broken"
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (QueryEngineUnavailable, QueryFailed)


@dataclass(frozen=True)
class RetryPolicy:
    interval: float = 2.0
    timeout: float = 60.0
    backoff: float = 1.0
    max_interval: float | None = None
    ignore: tuple[type[BaseException], ...] = TRANSIENT_ERRORS

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.timeout < 0:
            raise ValueError("timeout must not be negative")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")


@dataclass(frozen=True)
class Observation:
    satisfied: bool
    detail: Any = None


@dataclass(frozen=True)
class PollResult:
    attempts: int
    elapsed: float


@dataclass(frozen=True)
class ConvergenceCheck:
    name: str
    phase: HarnessPhase
    query: str
    observe: Callable[[QueryEngineInterface], Observation]
    policy: RetryPolicy = field(default_factory=RetryPolicy)


def poll_until(
    predicate: Callable[[], Any],
    *,
    timeout: float,
    interval: float = 1.0,
    ignore: tuple[type[BaseException], ...] = (),
    backoff: float = 1.0,
    max_interval: float | None = None,
    description: str = "condition",
    phase: HarnessPhase = HarnessPhase.CATALOG_CONVERGENCE,
    on_timeout: Callable[[], str] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Call *predicate* until it is satisfied or *timeout* seconds pass.

    *predicate* returns either an ``Observation`` or any value judged by its
    truthiness. Exceptions listed in *ignore* count as a failed tick; anything
    else propagates at once. Returns on the first satisfied tick without a
    trailing sleep. Sleeps are clipped so the loop never overshoots the deadline.
    """
    start = clock()
    deadline = start + timeout
    wait = interval
    attempts = 0
    last_state: Any = None
    last_error: BaseException | None = None

    while True:
        attempts += 1
        try:
            outcome = predicate()
        except ignore as exc:
            last_error = exc
        else:
            if not isinstance(outcome, Observation):
                outcome = Observation(bool(outcome), outcome)
            if outcome.satisfied:
                return PollResult(attempts=attempts, elapsed=clock() - start)
            last_state = outcome.detail

        remaining = deadline - clock()
        if remaining <= 0:
            raise ConvergenceTimeout(
                phase,
                description,
                timeout=timeout,
                attempts=attempts,
                elapsed=clock() - start,
                last_state=last_state,
                last_error=last_error,
                diagnostics=on_timeout() if on_timeout else "",
            )
        sleep(min(wait, remaining))
        wait = wait * backoff
        if max_interval is not None:
            wait = min(wait, max_interval)


def _lowered(names: list[str]) -> set[str]:
    return {n.lower() for n in names}


def catalog_check(
    catalog: str, schema: str, policy: RetryPolicy | None = None
) -> ConvergenceCheck:
    """Catalog is listed *and* its default namespace can be listed through it.

    Listing the namespace forces the engine to open a connection to the data
    store, so a catalog whose source is unreachable never counts as converged.
    """

    def observe(engine: QueryEngineInterface) -> Observation:
        catalogs = engine.list_catalogs()
        if catalog.lower() not in _lowered(catalogs):
            return Observation(False, {"catalogs": sorted(catalogs)})
        schemas = engine.list_schemas(catalog)
        return Observation(
            schema.lower() in _lowered(schemas),
            {"catalog": catalog, "schemas": sorted(schemas)},
        )

    return ConvergenceCheck(
        name=f"catalog {catalog}",
        phase=HarnessPhase.CATALOG_CONVERGENCE,
        query=f"SHOW CATALOGS; SHOW SCHEMAS FROM {catalog}",
        observe=observe,
        policy=policy or RetryPolicy(),
    )


def table_check(
    catalog: str, schema: str, table: str, policy: RetryPolicy | None = None
) -> ConvergenceCheck:
    def observe(engine: QueryEngineInterface) -> Observation:
        tables = engine.list_tables(catalog, schema)
        return Observation(
            table.lower() in _lowered(tables),
            {"namespace": f"{catalog}.{schema}", "tables": sorted(tables)},
        )

    return ConvergenceCheck(
        name=f"table {catalog}.{schema}.{table}",
        phase=HarnessPhase.SCHEMA_CONVERGENCE,
        query=f"SHOW TABLES FROM {catalog}.{schema}",
        observe=observe,
        policy=policy or RetryPolicy(interval=1.0, timeout=30.0),
    )


def wait_for_convergence(
    check: ConvergenceCheck,
    engine: QueryEngineInterface,
    log: LoggingInterface,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    diagnostics: Callable[[], str] | None = None,
) -> PollResult:
    policy = check.policy
    log.info(
        "Waiting for convergence",
        check=check.name,
        query=check.query,
        timeout=policy.timeout,
    )

    def tick() -> Observation:
        try:
            observation = check.observe(engine)
        except policy.ignore as exc:
            log.debug("Check not ready", check=check.name, error=str(exc))
            raise
        if not observation.satisfied:
            log.debug("Check not satisfied", check=check.name, state=observation.detail)
        return observation

    try:
        result = poll_until(
            tick,
            timeout=policy.timeout,
            interval=policy.interval,
            ignore=policy.ignore,
            backoff=policy.backoff,
            max_interval=policy.max_interval,
            description=f"{check.name} ({check.query})",
            phase=check.phase,
            on_timeout=diagnostics,
            clock=clock,
            sleep=sleep,
        )
    except ConvergenceTimeout as exc:
        log.error(
            "Convergence timed out",
            check=check.name,
            phase=check.phase.value,
            attempts=exc.attempts,
            last_state=exc.last_state,
            last_error=str(exc.last_error) if exc.last_error else None,
        )
        raise
    log.info(
        "Converged",
        check=check.name,
        attempts=result.attempts,
        elapsed=round(result.elapsed, 3),
    )
    return result
