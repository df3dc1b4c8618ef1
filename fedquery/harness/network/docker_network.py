"""Docker bridge network managed through testcontainers."""

from __future__ import annotations

from typing import Any

from testcontainers.core.network import Network

from fedquery.harness.network.interface import VirtualNetwork


class DockerNetwork(VirtualNetwork):
    def __init__(self) -> None:
        self._network = Network()
        super().__init__(self._network.name)

    @property
    def native(self) -> Network:
        return self._network

    def _do_open(self) -> None:
        self._network.create()

    def _do_close(self) -> None:
        self._network.remove()

    def __repr__(self) -> str:
        return f"DockerNetwork(name={self.name!r}, aliases={self.aliases!r})"


def docker_available(**client_kw: Any) -> bool:
    """True when a Docker daemon answers a ping."""
    import docker
    from docker.errors import DockerException

    try:
        client = docker.from_env(**client_kw)
    except DockerException:
        return False
    try:
        return bool(client.ping())
    except (DockerException, OSError):
        return False
    finally:
        client.close()
