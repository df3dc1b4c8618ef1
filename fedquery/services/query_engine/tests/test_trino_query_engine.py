"""TrinoQueryEngine against a stubbed DB-API connection."""

from __future__ import annotations

from typing import Any

import pytest
import requests
import trino.auth
from trino import exceptions as trino_exc

from fedquery.services.query_engine import trino_query_engine
from fedquery.services.query_engine.interface import (
    InvalidQuery,
    QueryEngineAuthError,
    QueryEngineUnavailable,
    QueryFailed,
)
from fedquery.services.query_engine.trino_query_engine import TrinoQueryEngine
from fedquery.services.secrets.env_secrets import EnvSecrets


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn
        self.description: list[tuple[str, ...]] | None = None
        self._rows: list[list[Any]] = []

    def execute(self, query: str, params: list[Any] | None = None) -> None:
        self._conn.executed.append((query, params))
        outcome = self._conn.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        columns, rows = outcome
        self.description = [(c, "varchar") for c in columns]
        self._rows = rows

    def fetchall(self) -> list[list[Any]]:
        return self._rows

    def close(self) -> None:
        self._conn.closed_cursors += 1


class FakeConnection:
    def __init__(self) -> None:
        self.outcomes: list[Any] = []
        self.executed: list[tuple[str, list[Any] | None]] = []
        self.closed_cursors = 0
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


def _query_error(error_name: str, error_type: str = "USER_ERROR") -> trino_exc.TrinoQueryError:
    error = {"errorName": error_name, "errorType": error_type, "message": f"{error_name} happened"}
    if error_type == "USER_ERROR":
        return trino_exc.TrinoUserError(error, query_id="q1")
    return trino_exc.TrinoExternalError(error, query_id="q1")


@pytest.fixture
def conn(monkeypatch: pytest.MonkeyPatch) -> FakeConnection:
    fake = FakeConnection()
    captured: dict[str, Any] = {}

    def _connect(**kwargs: Any) -> FakeConnection:
        captured.update(kwargs)
        return fake

    monkeypatch.setattr(trino_query_engine.trino.dbapi, "connect", _connect)
    fake.connect_kwargs = captured  # type: ignore[attr-defined]
    return fake


def _engine(**overrides: str) -> TrinoQueryEngine:
    values = {"QUERY_ENGINE_URL": "http://localhost:49160", **overrides}
    return TrinoQueryEngine(EnvSecrets(overrides=values))


def test_rejects_malformed_url():
    with pytest.raises(ValueError, match="QUERY_ENGINE_URL must look like"):
        _engine(QUERY_ENGINE_URL="jdbc:trino://localhost:8080")


def test_connect_passes_parsed_endpoint(conn: FakeConnection):
    engine = _engine(QUERY_ENGINE_USER="alice", QUERY_ENGINE_CATALOG="postgresql")
    engine.connect()
    kwargs = conn.connect_kwargs  # type: ignore[attr-defined]
    assert kwargs["host"] == "localhost"
    assert kwargs["port"] == 49160
    assert kwargs["user"] == "alice"
    assert kwargs["http_scheme"] == "http"
    assert kwargs["auth"] is None
    assert kwargs["catalog"] == "postgresql"


def test_default_user(conn: FakeConnection):
    engine = _engine()
    engine.connect()
    assert conn.connect_kwargs["user"] == "test_trino_user"  # type: ignore[attr-defined]


def test_password_is_not_offered_over_http(conn: FakeConnection):
    engine = _engine(QUERY_ENGINE_USER="alice", QUERY_ENGINE_PASSWORD="s3cret")
    engine.connect()
    assert conn.connect_kwargs["auth"] is None  # type: ignore[attr-defined]


def test_password_is_sent_over_https(conn: FakeConnection):
    engine = _engine(
        QUERY_ENGINE_URL="https://localhost:8443",
        QUERY_ENGINE_USER="alice",
        QUERY_ENGINE_PASSWORD="s3cret",
    )
    engine.connect()
    auth = conn.connect_kwargs["auth"]  # type: ignore[attr-defined]
    assert isinstance(auth, trino.auth.BasicAuthentication)
    assert conn.connect_kwargs["http_scheme"] == "https"  # type: ignore[attr-defined]


def test_rejected_credentials_map_to_auth_error(monkeypatch: pytest.MonkeyPatch):
    def _connect(**kwargs: Any) -> FakeConnection:
        raise trino_exc.TrinoAuthError("cannot use authentication with HTTP")

    monkeypatch.setattr(trino_query_engine.trino.dbapi, "connect", _connect)
    engine = _engine()
    with pytest.raises(QueryEngineAuthError, match="localhost:49160"):
        engine.connect()
    assert not engine.is_connected()


def test_fetch_all_returns_dicts_and_closes_cursor(conn: FakeConnection):
    conn.outcomes.append((["id", "name"], [[1, "Laptop Pro"], [2, "Coffee Mug"]]))
    engine = _engine()
    rows = engine.fetch_all("SELECT id, name FROM postgresql.public.products WHERE id > ?", [0])
    assert rows == [{"id": 1, "name": "Laptop Pro"}, {"id": 2, "name": "Coffee Mug"}]
    assert conn.executed[0][1] == [0]
    assert conn.closed_cursors == 1


def test_introspection_queries_quote_identifiers(conn: FakeConnection):
    conn.outcomes.extend([
        (["Catalog"], [["postgresql"], ["system"]]),
        (["Schema"], [["information_schema"], ["public"]]),
        (["Table"], [["products"]]),
    ])
    engine = _engine()
    assert engine.list_catalogs() == ["postgresql", "system"]
    assert engine.list_schemas("postgresql") == ["information_schema", "public"]
    assert engine.list_tables("postgresql", "public") == ["products"]
    assert [q for q, _ in conn.executed] == [
        "SHOW CATALOGS",
        'SHOW SCHEMAS FROM "postgresql"',
        'SHOW TABLES FROM "postgresql"."public"',
    ]


def test_not_found_errors_map_to_query_failed(conn: FakeConnection):
    conn.outcomes.append(_query_error("SCHEMA_NOT_FOUND"))
    with pytest.raises(QueryFailed) as info:
        _engine().list_tables("postgresql", "public")
    assert info.value.error_name == "SCHEMA_NOT_FOUND"


def test_external_errors_map_to_query_failed(conn: FakeConnection):
    conn.outcomes.append(_query_error("JDBC_ERROR", "EXTERNAL"))
    with pytest.raises(QueryFailed):
        _engine().list_schemas("postgresql")


def test_syntax_errors_map_to_invalid_query(conn: FakeConnection):
    conn.outcomes.append(_query_error("SYNTAX_ERROR"))
    with pytest.raises(InvalidQuery):
        _engine().fetch_all("SELEC 1")


def test_transport_errors_map_to_unavailable(conn: FakeConnection):
    conn.outcomes.append(requests.exceptions.ConnectionError("Connection refused"))
    with pytest.raises(QueryEngineUnavailable, match="localhost:49160"):
        _engine().list_catalogs()


def test_auth_errors_during_a_query_are_not_transient(conn: FakeConnection):
    conn.outcomes.append(trino_exc.TrinoAuthError("error 401: Unauthorized"))
    with pytest.raises(QueryEngineAuthError, match="401"):
        _engine().list_catalogs()


def test_disconnect_closes_connection(conn: FakeConnection):
    engine = _engine()
    engine.connect()
    assert engine.is_connected()
    engine.disconnect()
    assert conn.closed
    assert not engine.is_connected()
