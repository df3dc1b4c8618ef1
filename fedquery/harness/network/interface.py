from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fedquery.harness.handles.interface import ServiceHandle


class VirtualNetwork(ABC):
    """Private network the harness services share.

    Members are looked up by alias. The network only keeps a reference to
    each handle for alias resolution; it never starts or stops them.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._members: dict[str, ServiceHandle] = {}
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def aliases(self) -> list[str]:
        return sorted(self._members)

    def open(self) -> None:
        if self._opened:
            raise RuntimeError(f"Network {self.name} was already opened")
        self._do_open()
        self._opened = True

    def close(self) -> None:
        """Idempotent; closing a network that was never opened is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._opened:
            self._do_close()
        self._members.clear()

    def register(self, alias: str, handle: ServiceHandle) -> None:
        if not self.is_open:
            raise RuntimeError(f"Network {self.name} is not open")
        if not alias or not alias.strip():
            raise ValueError("Network alias must not be empty")
        current = self._members.get(alias)
        if current is not None and current is not handle:
            raise ValueError(
                f"Alias '{alias}' is already used by {current.name} on network {self.name}"
            )
        self._members[alias] = handle

    def resolve(self, alias: str) -> ServiceHandle:
        try:
            return self._members[alias]
        except KeyError:
            raise LookupError(f"No service with alias '{alias}' on network {self.name}") from None

    @property
    @abstractmethod
    def native(self) -> Any:
        """Backend object containers are attached to."""
        ...

    @abstractmethod
    def _do_open(self) -> None: ...

    @abstractmethod
    def _do_close(self) -> None: ...
