"""Query engine client interface and its error hierarchy.

Implementations translate driver-specific failures into three classes so
callers can tell a warming-up engine apart from a broken query:

- ``QueryEngineUnavailable``: transport failed or the engine is not serving
  yet (connection refused, HTTP 5xx, starting up).
- ``QueryFailed``: the engine ran the statement and reported an error that may
  clear on its own (catalog/schema/table not found yet, remote source down).
- ``InvalidQuery``: the statement itself is wrong (syntax, unknown function,
  type mismatch). Retrying will not help.
- ``QueryEngineAuthError``: the driver rejected the credentials or the
  transport they were offered on. Also never retried.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

DEFAULT_USER = "test_trino_user"


class QueryEngineError(Exception):
    def __init__(self, message: str, error_name: str | None = None) -> None:
        super().__init__(message)
        self.error_name = error_name


class QueryEngineUnavailable(QueryEngineError):
    pass


class QueryFailed(QueryEngineError):
    pass


class InvalidQuery(QueryEngineError):
    pass


class QueryEngineAuthError(QueryEngineError):
    pass


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class QueryEngineInterface(ABC):
    """Federated SQL access plus the introspection surface the harness polls."""

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def fetch_all(self, query: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        """Run *query* with qmark-style *params* and return rows as dicts."""
        ...

    @abstractmethod
    def list_catalogs(self) -> list[str]: ...

    @abstractmethod
    def list_schemas(self, catalog: str) -> list[str]: ...

    @abstractmethod
    def list_tables(self, catalog: str, schema: str) -> list[str]: ...

    def health_check(self) -> bool:
        try:
            self.list_catalogs()
            return True
        except QueryEngineError:
            return False

    async def fetch_all_async(
        self, query: str, params: list[Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run the blocking client call off the event loop."""
        return await asyncio.to_thread(self.fetch_all, query, params)
