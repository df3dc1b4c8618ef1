from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DatabaseInterface(ABC):
    """Direct, synchronous access to the data store.

    The harness uses it to reset seed data underneath the query engine, so
    it deliberately bypasses the engine and its metadata caches. Parameters
    use the data store's native ``$1`` placeholders.
    """

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def execute(self, query: str, params: list[Any] | None = None) -> int:
        """Run DDL or DML; returns the affected row count (0 for DDL)."""

    @abstractmethod
    def fetch_one(self, query: str, params: list[Any] | None = None) -> dict[str, Any] | None: ...

    @abstractmethod
    def fetch_all(self, query: str, params: list[Any] | None = None) -> list[dict[str, Any]]: ...

    @abstractmethod
    def bulk_insert(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert *rows* (all with the same keys) in one transaction."""

    @abstractmethod
    def health_check(self) -> bool: ...
