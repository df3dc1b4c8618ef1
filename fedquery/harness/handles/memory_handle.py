"""In-process service handle for unit tests and dry runs."""

from __future__ import annotations

from typing import Callable

from fedquery.harness.handles.interface import Credentials, ServiceHandle
from fedquery.harness.handles.wait import WaitStrategy


class MemoryServiceHandle(ServiceHandle):
    """Pretends to run a service. Published ports are ``container_port + port_offset``.

    ``on_start`` / ``on_stop`` hooks let a test wire in behaviour (register a
    catalog, make a source unreachable). ``fail_start`` makes ``start`` fail
    with that message.
    """

    def __init__(
        self,
        name: str,
        image: str = "memory",
        exposed_ports: tuple[int, ...] = (),
        credentials: Credentials | None = None,
        wait: WaitStrategy | None = None,
        host: str = "127.0.0.1",
        port_offset: int = 40000,
        on_start: Callable[[MemoryServiceHandle], None] | None = None,
        on_stop: Callable[[MemoryServiceHandle], None] | None = None,
        fail_start: str | None = None,
        fail_stop: str | None = None,
    ) -> None:
        super().__init__(name, image, exposed_ports, credentials, wait)
        self._bind_host = host
        self._port_offset = port_offset
        self._on_start = on_start
        self._on_stop = on_stop
        self._fail_start = fail_start
        self._fail_stop = fail_stop
        self.log_lines: list[str] = []
        self.start_calls = 0
        self.stop_calls = 0

    def emit(self, line: str) -> None:
        self.log_lines.append(line)

    def _do_start(self) -> None:
        self.start_calls += 1
        self.emit(f"{self.name}: starting {self.image}")
        if self._fail_start:
            self.emit(f"{self.name}: FATAL {self._fail_start}")
            raise RuntimeError(self._fail_start)
        if self._on_start is not None:
            self._on_start(self)
        self.emit(f"{self.name}: ready")

    def _do_stop(self) -> None:
        self.stop_calls += 1
        if self._fail_stop:
            raise RuntimeError(self._fail_stop)
        if self._on_stop is not None:
            self._on_stop(self)
        self.emit(f"{self.name}: stopped")

    def _resolve_host(self) -> str:
        return self._bind_host

    def _resolve_port(self, container_port: int) -> int:
        return container_port + self._port_offset

    def _read_logs(self) -> str:
        return "\n".join(self.log_lines)
