"""Container-backed service handles (testcontainers ``DockerContainer``).

Attached files are bind-mounted read-only from the host path. That path must
be visible to the Docker daemon, so the handles assume a local daemon (or one
that shares the host filesystem, as Docker Desktop does). A remote
``DOCKER_HOST`` would mount an empty or missing path into the container.
"""

from __future__ import annotations

from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from fedquery.harness.handles.interface import Credentials, ServiceHandle
from fedquery.harness.handles.wait import POSTGRES_READY_LINE, HttpWaitStrategy, WaitStrategy
from fedquery.harness.settings import HarnessSettings


class ContainerServiceHandle(ServiceHandle):
    def __init__(
        self,
        name: str,
        image: str,
        exposed_ports: tuple[int, ...] = (),
        credentials: Credentials | None = None,
        wait: WaitStrategy | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        super().__init__(name, image, exposed_ports, credentials, wait)
        self.env = dict(env or {})
        self._container: DockerContainer | None = None

    @property
    def container(self) -> DockerContainer | None:
        return self._container

    def _do_start(self) -> None:
        container = DockerContainer(self.image)
        container.with_exposed_ports(*self.exposed_ports)
        for key, value in self.env.items():
            container.with_env(key, value)
        for f in self.attached_files:
            container.with_volume_mapping(str(f.host_path.resolve()), f.container_path, mode="ro")
        if self.network is not None:
            container.with_network(self.network.native)
            container.with_network_aliases(*self.aliases)
        self._container = container
        container.start()

    def _do_stop(self) -> None:
        if self._container is None:
            return
        try:
            self._container.stop()
        finally:
            self._container = None

    def _resolve_host(self) -> str:
        assert self._container is not None
        return self._container.get_container_host_ip()

    def _resolve_port(self, container_port: int) -> int:
        assert self._container is not None
        return int(self._container.get_exposed_port(container_port))

    def _read_logs(self) -> str:
        if self._container is None:
            return ""
        stdout, stderr = self._container.get_logs()
        return (stdout or b"").decode("utf-8", errors="replace") + (stderr or b"").decode(
            "utf-8", errors="replace"
        )


class ContainerLogWaitStrategy(WaitStrategy):
    """Wait for *line* to appear *occurrences* times in the container output,
    using testcontainers' ``wait_for_logs``.

    Postgres prints its ready line twice: once for the init-time server and
    once for the real one.
    """

    def __init__(
        self, line: str = POSTGRES_READY_LINE, occurrences: int = 2, interval: float = 0.5
    ) -> None:
        self.line = line
        self.occurrences = occurrences
        self.interval = interval

    def _seen(self, output: str) -> bool:
        return output.count(self.line) >= self.occurrences

    def wait_until_ready(self, handle: ServiceHandle, timeout: float) -> None:
        if not isinstance(handle, ContainerServiceHandle) or handle.container is None:
            raise RuntimeError(f"{handle.name} has no running container to wait on")
        wait_for_logs(handle.container, self._seen, timeout=timeout, interval=self.interval)


def postgres_handle(settings: HarnessSettings) -> ContainerServiceHandle:
    creds = settings.data_store_credentials
    return ContainerServiceHandle(
        name="postgres",
        image=settings.data_store_image,
        exposed_ports=(settings.data_store_port,),
        credentials=creds,
        wait=ContainerLogWaitStrategy(),
        env={
            "POSTGRES_USER": creds.username,
            "POSTGRES_PASSWORD": creds.password,
            "POSTGRES_DB": settings.database,
        },
    )


def trino_handle(settings: HarnessSettings) -> ContainerServiceHandle:
    return ContainerServiceHandle(
        name="trino",
        image=settings.query_engine_image,
        exposed_ports=(settings.query_engine_port,),
        wait=HttpWaitStrategy(settings.query_engine_port, "/v1/info"),
    )
