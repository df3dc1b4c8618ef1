"""Readiness checks run by a handle while it is Starting."""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from fedquery.harness.convergence import Observation, poll_until
from fedquery.harness.errors import HarnessPhase

if TYPE_CHECKING:
    from fedquery.harness.handles.interface import ServiceHandle

POSTGRES_READY_LINE = "database system is ready to accept connections"


class WaitStrategy(ABC):
    @abstractmethod
    def wait_until_ready(self, handle: ServiceHandle, timeout: float) -> None:
        """Block until *handle* is ready; raise ``TimeoutError`` after *timeout*."""
        ...


class HttpWaitStrategy(WaitStrategy):
    """Poll ``GET <path>`` until it answers 200 and the body does not report
    ``"starting": true``. The coordinator answers 200 on ``/v1/info`` while
    it is still loading plugins, so the status code alone is not enough.
    """

    def __init__(
        self,
        port: int,
        path: str = "/v1/info",
        interval: float = 1.0,
        request_timeout: float = 5.0,
    ) -> None:
        self.port = port
        self.path = path
        self.interval = interval
        self.request_timeout = request_timeout

    def _fetch_info(self, url: str) -> Observation:
        with urllib.request.urlopen(url, timeout=self.request_timeout) as resp:
            status = resp.status
            body = resp.read().decode("utf-8", errors="replace")
        if status != 200:
            return Observation(False, f"status={status}")
        try:
            info: Any = json.loads(body)
        except ValueError:
            return Observation(True, "status=200")
        if isinstance(info, dict) and info.get("starting"):
            return Observation(False, "status=200 starting=true")
        return Observation(True, "status=200")

    def wait_until_ready(self, handle: ServiceHandle, timeout: float) -> None:
        url = f"http://{handle.host}:{handle.mapped_port(self.port)}{self.path}"
        poll_until(
            lambda: self._fetch_info(url),
            timeout=timeout,
            interval=self.interval,
            ignore=(urllib.error.URLError, http.client.HTTPException, OSError),
            description=f"{handle.name} HTTP readiness at {url}",
            phase=HarnessPhase.STARTUP,
        )


class LogWaitStrategy(WaitStrategy):
    """Wait until *line* has appeared *occurrences* times in ``read_logs()``.

    For in-process handles. Container handles use ``ContainerLogWaitStrategy``
    from ``docker_handle``, which goes through testcontainers instead.
    """

    def __init__(self, line: str = POSTGRES_READY_LINE, occurrences: int = 2, interval: float = 0.5) -> None:
        self.line = line
        self.occurrences = occurrences
        self.interval = interval

    def wait_until_ready(self, handle: ServiceHandle, timeout: float) -> None:
        def seen() -> Observation:
            count = handle.read_logs().count(self.line)
            return Observation(count >= self.occurrences, f"{count}/{self.occurrences} ready lines")

        poll_until(
            seen,
            timeout=timeout,
            interval=self.interval,
            description=f"{handle.name} log line {self.line!r}",
            phase=HarnessPhase.STARTUP,
        )
