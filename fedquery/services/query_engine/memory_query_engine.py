"""In-memory query engine used by unit tests and ``--engine memory``.

Catalogs are backed by ``MemoryDatabase`` instances and read through their
server-side view, so a seeding client closing its connection does not hide
the data. Metadata discovery delays are simulated by counting introspection
calls: a catalog stays hidden from the first ``catalog_delay`` calls to
``list_catalogs``, and each (re)created table from the first ``table_delay``
calls to ``list_tables``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable

from fedquery.services.database.memory_database import MemoryDatabase
from fedquery.services.query_engine.interface import (
    InvalidQuery,
    QueryEngineInterface,
    QueryEngineUnavailable,
    QueryFailed,
)

_SELECT = re.compile(
    r"(?is)^SELECT\s+(?P<cols>.+?)\s+FROM\s+(?P<cat>\w+)\.(?P<schema>\w+)\.(?P<table>\w+)"
    r"(?:\s+WHERE\s+(?P<col>\w+)\s*=\s*\?)?\s*$"
)


@dataclass
class _Catalog:
    source: MemoryDatabase
    schema: str
    reachable: Callable[[], bool]
    pending: int
    # (table, generation) -> number of listings that have seen it
    seen: dict[tuple[str, int], int] = field(default_factory=dict)


class MemoryQueryEngine(QueryEngineInterface):
    def __init__(self, table_delay: int = 0) -> None:
        self._catalogs: dict[str, _Catalog] = {}
        self._connected = False
        self._table_delay = table_delay
        self._unavailable_for = 0
        self.queries: list[str] = []

    def register_catalog(
        self,
        name: str,
        source: MemoryDatabase,
        schema: str = "public",
        reachable: Callable[[], bool] = lambda: True,
        catalog_delay: int = 0,
    ) -> None:
        self._catalogs[name.lower()] = _Catalog(
            source=source,
            schema=schema.lower(),
            reachable=reachable,
            pending=catalog_delay,
        )

    def fail_next(self, calls: int) -> None:
        """Make the next *calls* requests fail as if the engine were still starting."""
        self._unavailable_for = calls

    # -- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    # -- Introspection --------------------------------------------------------

    def list_catalogs(self) -> list[str]:
        self._request("SHOW CATALOGS")
        visible = []
        for name, cat in self._catalogs.items():
            if cat.pending > 0:
                cat.pending -= 1
            else:
                visible.append(name)
        return sorted(visible)

    def list_schemas(self, catalog: str) -> list[str]:
        self._request(f"SHOW SCHEMAS FROM {catalog}")
        cat = self._reachable_catalog(catalog)
        return ["information_schema", cat.schema]

    def list_tables(self, catalog: str, schema: str) -> list[str]:
        self._request(f"SHOW TABLES FROM {catalog}.{schema}")
        cat = self._reachable_catalog(catalog)
        if schema.lower() != cat.schema:
            raise QueryFailed(f"Schema '{catalog}.{schema}' does not exist", "SCHEMA_NOT_FOUND")
        current = {(t, cat.source.generation(t)) for t in cat.source.table_names}
        cat.seen = {k: v for k, v in cat.seen.items() if k in current}
        visible = []
        for key in current:
            cat.seen[key] = cat.seen.get(key, 0) + 1
            if cat.seen[key] > self._table_delay:
                visible.append(key[0])
        return sorted(visible)

    # -- Queries --------------------------------------------------------------

    def fetch_all(self, query: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        self._request(query)
        match = _SELECT.match(query.strip())
        if not match:
            raise InvalidQuery(f"Unsupported statement: {query}", "SYNTAX_ERROR")
        cat = self._reachable_catalog(match.group("cat"))
        table = match.group("table").lower()
        if table not in cat.source.table_names:
            raise QueryFailed(
                f"Table '{match.group('cat')}.{match.group('schema')}.{table}' does not exist",
                "TABLE_NOT_FOUND",
            )
        rows = cat.source.snapshot(table)
        if match.group("col"):
            if not params:
                raise InvalidQuery("Incorrect number of parameters", "INVALID_PARAMETER_USAGE")
            col = match.group("col").lower()
            rows = [r for r in rows if r.get(col) == params[0]]
        wanted = [c.strip().lower() for c in match.group("cols").split(",")]
        if wanted == ["*"]:
            return rows
        return [{c: r.get(c) for c in wanted} for r in rows]

    # -- Helpers --------------------------------------------------------------

    def _request(self, query: str) -> None:
        if not self._connected:
            raise QueryEngineUnavailable("Connection refused: engine client is not connected")
        self.queries.append(query)
        if self._unavailable_for > 0:
            self._unavailable_for -= 1
            raise QueryEngineUnavailable("Trino server is still initializing", "SERVER_STARTING_UP")

    def _reachable_catalog(self, name: str) -> _Catalog:
        cat = self._catalogs.get(name.lower())
        if cat is None or cat.pending > 0:
            raise QueryFailed(f"Catalog '{name}' not found", "CATALOG_NOT_FOUND")
        if not cat.reachable():
            raise QueryFailed(
                f"Error connecting to catalog {name}: Connection refused",
                "JDBC_ERROR",
            )
        return cat
