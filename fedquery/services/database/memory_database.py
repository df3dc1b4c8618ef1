import re
from typing import Any

from fedquery.services.database.interface import DatabaseInterface

_DROP = re.compile(r"(?i)^DROP\s+TABLE\s+(IF\s+EXISTS\s+)?(\w+)")
_CREATE = re.compile(r"(?i)^CREATE\s+TABLE\s+(IF\s+NOT\s+EXISTS\s+)?(\w+)\s*\((.*)\)\s*$", re.S)
_SELECT = re.compile(r"(?i)^SELECT\s+(.+?)\s+FROM\s+(\w+)")
_WHERE = re.compile(r"(?i)WHERE\s+(\w+)\s*=\s*\$1")


class MemoryDatabase(DatabaseInterface):
    """In-memory stand-in for the data store, used by unit tests.

    Understands just enough SQL for the harness: DROP TABLE [IF EXISTS],
    CREATE TABLE [IF NOT EXISTS] (column names only), and
    SELECT <cols|*> FROM <table> [WHERE <col> = $1]. Tables are lists of dicts.
    Anything else raises ``NotImplementedError`` rather than passing silently.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._columns: dict[str, list[str]] = {}
        self._generation: dict[str, int] = {}
        self._connected = False
        self.statements: list[str] = []

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    @property
    def table_names(self) -> list[str]:
        return list(self._tables)

    def generation(self, table: str) -> int:
        """How many times *table* has been created; 0 if only ever bulk-inserted."""
        return self._generation.get(table.lower(), 0)

    def snapshot(self, table: str) -> list[dict[str, Any]]:
        """Server-side view of *table*, independent of this client's connection."""
        return [dict(r) for r in self._tables.get(table.lower(), [])]

    def execute(self, query: str, params: list[Any] | None = None) -> int:
        self._check_connected()
        stmt = query.strip()
        self.statements.append(stmt)

        drop = _DROP.match(stmt)
        if drop:
            table = drop.group(2).lower()
            if table not in self._tables and not drop.group(1):
                raise RuntimeError(f'table "{table}" does not exist')
            self._tables.pop(table, None)
            self._columns.pop(table, None)
            return 0

        create = _CREATE.match(stmt)
        if create:
            table = create.group(2).lower()
            if table in self._tables:
                if create.group(1):
                    return 0
                raise RuntimeError(f'relation "{table}" already exists')
            self._tables[table] = []
            self._columns[table] = _column_names(create.group(3))
            self._generation[table] = self._generation.get(table, 0) + 1
            return 0

        raise NotImplementedError(f"MemoryDatabase cannot execute: {_first_line(stmt)}")

    def fetch_one(self, query: str, params: list[Any] | None = None) -> dict[str, Any] | None:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def fetch_all(self, query: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        self._check_connected()
        match = _SELECT.match(query.strip())
        if not match:
            raise NotImplementedError(f"MemoryDatabase cannot query: {_first_line(query)}")
        columns, table = match.group(1).strip(), match.group(2).lower()
        rows = self._tables.get(table, [])

        where = _WHERE.search(query)
        if where and params:
            col, val = where.group(1), params[0]
            rows = [r for r in rows if r.get(col) == val]

        if columns == "*":
            return [dict(r) for r in rows]
        wanted = [c.strip() for c in columns.split(",")]
        return [{c: r.get(c) for c in wanted} for r in rows]

    def bulk_insert(self, table: str, rows: list[dict[str, Any]]) -> int:
        self._check_connected()
        table = table.lower()
        if table not in self._tables:
            self._tables[table] = []
        self._tables[table].extend(dict(r) for r in rows)
        return len(rows)

    def health_check(self) -> bool:
        return self._connected

    def _check_connected(self) -> None:
        if not self._connected:
            raise RuntimeError("Database is not connected. Call connect() first.")


def _first_line(sql: str) -> str:
    return sql.strip().partition("\n")[0]


def _column_names(body: str) -> list[str]:
    names = []
    for part in re.sub(r"\([^)]*\)", "", body).split(","):
        tokens = part.strip().split()
        if tokens and tokens[0].upper() not in ("PRIMARY", "CONSTRAINT", "UNIQUE", "FOREIGN"):
            names.append(tokens[0].lower())
    return names
