"""Service handle: one containerised service and its lifecycle.

State machine::

    Created -> Starting -> Running | Failed
    Running -> Stopping -> Stopped | Failed
    Failed  -> (stop) -> Stopped

Files can be attached and networks joined only while Created. Host bindings
are resolved once during start and do not change afterwards.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from fedquery.harness.errors import ServiceStartupFailure

if TYPE_CHECKING:
    from fedquery.harness.handles.wait import WaitStrategy
    from fedquery.harness.network.interface import VirtualNetwork


class ServiceState(str, Enum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AttachedFile:
    host_path: Path
    container_path: str


class ServiceHandle(ABC):
    def __init__(
        self,
        name: str,
        image: str,
        exposed_ports: tuple[int, ...] = (),
        credentials: Credentials | None = None,
        wait: WaitStrategy | None = None,
    ) -> None:
        self.name = name
        self.image = image
        self.exposed_ports = tuple(exposed_ports)
        self.credentials = credentials
        self._wait = wait
        self._state = ServiceState.CREATED
        self._aliases: list[str] = []
        self._network: VirtualNetwork | None = None
        self._files: list[AttachedFile] = []
        self._host: str | None = None
        self._ports: dict[int, int] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, image={self.image!r}, state={self._state.value})"

    # -- Configuration (Created only) -----------------------------------------

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(self._aliases)

    @property
    def network(self) -> VirtualNetwork | None:
        return self._network

    @property
    def attached_files(self) -> tuple[AttachedFile, ...]:
        return tuple(self._files)

    def attach_file(self, host_path: str | Path, container_path: str) -> None:
        self._require_created("attach a file")
        self._files.append(AttachedFile(Path(host_path), container_path))

    def join_network(self, network: VirtualNetwork, alias: str) -> None:
        self._require_created("join a network")
        if self._network is not None and self._network is not network:
            raise RuntimeError(f"{self.name} is already on network {self._network.name}")
        network.register(alias, self)
        self._network = network
        if alias not in self._aliases:
            self._aliases.append(alias)

    # -- Lifecycle ------------------------------------------------------------

    def start(self, timeout: float) -> None:
        """Start the service and block until its wait strategy passes.

        Raises ``ServiceStartupFailure`` (with a log tail) on any failure.
        """
        self._require_created("start")
        self._state = ServiceState.STARTING
        began = time.monotonic()
        try:
            self._do_start()
            self._host = self._resolve_host()
            self._ports = {p: self._resolve_port(p) for p in self.exposed_ports}
            if self._wait is not None:
                remaining = max(0.0, timeout - (time.monotonic() - began))
                self._wait.wait_until_ready(self, remaining)
        except Exception as exc:
            self._state = ServiceState.FAILED
            raise ServiceStartupFailure(
                self.name, str(exc) or type(exc).__name__, logs=self.logs(tail=40)
            ) from exc
        self._state = ServiceState.RUNNING

    def stop(self) -> None:
        """Idempotent. A handle that never started just becomes Stopped."""
        if self._state in (ServiceState.CREATED, ServiceState.STOPPED):
            self._state = ServiceState.STOPPED
            return
        if self._state is ServiceState.RUNNING:
            self._state = ServiceState.STOPPING
        try:
            self._do_stop()
        except Exception:
            self._state = ServiceState.FAILED
            raise
        self._state = ServiceState.STOPPED

    def is_running(self) -> bool:
        return self._state is ServiceState.RUNNING

    # -- Bindings -------------------------------------------------------------

    @property
    def host(self) -> str:
        self._require_bindings()
        return self._host  # type: ignore[return-value]

    def mapped_port(self, container_port: int) -> int:
        self._require_bindings()
        try:
            return self._ports[container_port]
        except KeyError:
            raise ValueError(f"{self.name} does not expose port {container_port}") from None

    def read_logs(self) -> str:
        return self._read_logs()

    def logs(self, tail: int = 100) -> str:
        """Last *tail* log lines, or a note when they cannot be read."""
        try:
            text = self._read_logs()
        except Exception as exc:
            return f"<logs unavailable: {type(exc).__name__}: {exc}>"
        lines = text.splitlines()
        return "\n".join(lines[-tail:])

    # -- Helpers --------------------------------------------------------------

    def _require_created(self, action: str) -> None:
        if self._state is not ServiceState.CREATED:
            raise RuntimeError(f"Cannot {action} on {self.name}: state is {self._state.value}")

    def _require_bindings(self) -> None:
        if self._host is None or self._state not in (ServiceState.STARTING, ServiceState.RUNNING):
            raise RuntimeError(
                f"Bindings of {self.name} are not available in state {self._state.value}"
            )

    # -- Backend hooks --------------------------------------------------------

    @abstractmethod
    def _do_start(self) -> None: ...

    @abstractmethod
    def _do_stop(self) -> None: ...

    @abstractmethod
    def _resolve_host(self) -> str: ...

    @abstractmethod
    def _resolve_port(self, container_port: int) -> int: ...

    @abstractmethod
    def _read_logs(self) -> str: ...
