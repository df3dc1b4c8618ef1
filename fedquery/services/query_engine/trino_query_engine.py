"""Trino query engine client using the ``trino`` DB-API driver.

Config (via secrets, prefix defaults to ``"QUERY_ENGINE"``):

    {prefix}_URL              - http(s)://host:port of the coordinator (required)
    {prefix}_USER             - Session user (default: test_trino_user)
    {prefix}_PASSWORD         - Password; only sent when the URL is https. The
                                driver refuses credentials over plain http, so
                                an http URL connects with the user alone.
    {prefix}_CATALOG          - Default session catalog (optional)
    {prefix}_SCHEMA           - Default session schema (optional)
    {prefix}_REQUEST_TIMEOUT  - Per-request HTTP timeout in seconds (default: 10)
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import requests
import trino.auth
import trino.dbapi
from trino import exceptions as trino_exc

from fedquery.services.query_engine.interface import (
    DEFAULT_USER,
    InvalidQuery,
    QueryEngineAuthError,
    QueryEngineInterface,
    QueryEngineUnavailable,
    QueryFailed,
    quote_identifier,
)
from fedquery.services.secrets.interface import SecretsInterface

# User errors that retrying can never fix
_INVALID_QUERY_ERRORS = {
    "SYNTAX_ERROR",
    "TYPE_MISMATCH",
    "FUNCTION_NOT_FOUND",
    "COLUMN_NOT_FOUND",
    "INVALID_PARAMETER_USAGE",
    "INVALID_FUNCTION_ARGUMENT",
    "NOT_SUPPORTED",
}


class TrinoQueryEngine(QueryEngineInterface):
    def __init__(self, secrets: SecretsInterface, prefix: str = "QUERY_ENGINE") -> None:
        url = secrets.require(f"{prefix}_URL")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"{prefix}_URL must look like http://host:port, got {url!r}")
        self.url = url
        self._scheme = parsed.scheme
        self._host = parsed.hostname
        self._port = parsed.port or (443 if parsed.scheme == "https" else 8080)
        self._user = secrets.get(f"{prefix}_USER") or DEFAULT_USER
        self._password = secrets.get(f"{prefix}_PASSWORD") or None
        self._catalog = secrets.get(f"{prefix}_CATALOG") or None
        self._schema = secrets.get(f"{prefix}_SCHEMA") or None
        self._request_timeout = secrets.get_float(f"{prefix}_REQUEST_TIMEOUT", 10.0)
        self._conn: Any = None

    # -- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        try:
            self._conn = trino.dbapi.connect(
                host=self._host,
                port=self._port,
                user=self._user,
                http_scheme=self._scheme,
                auth=self._auth(),
                catalog=self._catalog,
                schema=self._schema,
                request_timeout=self._request_timeout,
            )
        except trino_exc.TrinoAuthError as exc:
            raise QueryEngineAuthError(f"{self.url}: {exc}") from exc

    def _auth(self) -> trino.auth.Authentication | None:
        if self._password is None or self._scheme != "https":
            return None
        return trino.auth.BasicAuthentication(self._user, self._password)

    def disconnect(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def is_connected(self) -> bool:
        return self._conn is not None

    # -- Queries --------------------------------------------------------------

    def fetch_all(self, query: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        if self._conn is None:
            self.connect()
        cursor = self._conn.cursor()
        try:
            if params:
                cursor.execute(query, list(params))
            else:
                cursor.execute(query)
            rows = cursor.fetchall()
            columns = [d[0] for d in cursor.description or []]
        except trino_exc.TrinoUserError as exc:
            if exc.error_name in _INVALID_QUERY_ERRORS:
                raise InvalidQuery(exc.message, exc.error_name) from exc
            raise QueryFailed(exc.message, exc.error_name) from exc
        except trino_exc.TrinoQueryError as exc:
            raise QueryFailed(exc.message, exc.error_name) from exc
        except trino_exc.TrinoAuthError as exc:
            raise QueryEngineAuthError(f"{self.url}: {exc}") from exc
        except (
            trino_exc.HttpError,
            trino_exc.OperationalError,
            requests.exceptions.RequestException,
            ConnectionError,
        ) as exc:
            raise QueryEngineUnavailable(f"{self.url}: {exc}") from exc
        finally:
            cursor.close()
        return [dict(zip(columns, row)) for row in rows]

    def list_catalogs(self) -> list[str]:
        return [r["Catalog"] for r in self.fetch_all("SHOW CATALOGS")]

    def list_schemas(self, catalog: str) -> list[str]:
        rows = self.fetch_all(f"SHOW SCHEMAS FROM {quote_identifier(catalog)}")
        return [r["Schema"] for r in rows]

    def list_tables(self, catalog: str, schema: str) -> list[str]:
        rows = self.fetch_all(
            f"SHOW TABLES FROM {quote_identifier(catalog)}.{quote_identifier(schema)}"
        )
        return [r["Table"] for r in rows]
