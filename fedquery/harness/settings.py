"""Harness settings.

Config (via secrets, all optional):

    HARNESS_DATA_STORE_IMAGE            - default postgres:15
    HARNESS_DATA_STORE_ALIAS            - network alias, default mypostgres
    HARNESS_DATA_STORE_PORT             - container-internal port, default 5432
    HARNESS_DATA_STORE_DATABASE         - default testdb
    HARNESS_DATA_STORE_USER             - default testuser
    HARNESS_DATA_STORE_PASSWORD         - default testpass
    HARNESS_QUERY_ENGINE_IMAGE          - default trinodb/trino:440
    HARNESS_QUERY_ENGINE_ALIAS          - default trino
    HARNESS_QUERY_ENGINE_PORT           - container-internal port, default 8080
    HARNESS_QUERY_ENGINE_USER           - default test_trino_user
    HARNESS_QUERY_ENGINE_PASSWORD       - default unset
    HARNESS_CATALOG                     - default postgresql
    HARNESS_SCHEMA                      - default public
    HARNESS_CATALOG_DIR                 - default /etc/trino/catalog
    HARNESS_DATA_STORE_STARTUP_TIMEOUT  - seconds, default 60
    HARNESS_QUERY_ENGINE_STARTUP_TIMEOUT - seconds, default 90
    HARNESS_CATALOG_TIMEOUT             - seconds, default 60
    HARNESS_CATALOG_INTERVAL            - seconds, default 2
    HARNESS_SCHEMA_TIMEOUT              - seconds, default 30
    HARNESS_SCHEMA_INTERVAL             - seconds, default 1
    HARNESS_REQUEST_TIMEOUT             - per-query HTTP timeout, default 10
"""

from __future__ import annotations

from dataclasses import dataclass

from fedquery.harness.convergence import RetryPolicy
from fedquery.harness.handles.interface import Credentials
from fedquery.services.secrets.interface import SecretsInterface


@dataclass(frozen=True)
class HarnessSettings:
    data_store_image: str = "postgres:15"
    data_store_alias: str = "mypostgres"
    data_store_port: int = 5432
    database: str = "testdb"
    data_store_user: str = "testuser"
    data_store_password: str = "testpass"
    query_engine_image: str = "trinodb/trino:440"
    query_engine_alias: str = "trino"
    query_engine_port: int = 8080
    query_engine_user: str = "test_trino_user"
    query_engine_password: str | None = None
    catalog: str = "postgresql"
    schema: str = "public"
    catalog_dir: str = "/etc/trino/catalog"
    data_store_startup_timeout: float = 60.0
    query_engine_startup_timeout: float = 90.0
    catalog_timeout: float = 60.0
    catalog_interval: float = 2.0
    schema_timeout: float = 30.0
    schema_interval: float = 1.0
    request_timeout: float = 10.0

    @classmethod
    def from_secrets(cls, secrets: SecretsInterface) -> HarnessSettings:
        d = cls()
        return cls(
            data_store_image=secrets.get_or_default("HARNESS_DATA_STORE_IMAGE", d.data_store_image),
            data_store_alias=secrets.get_or_default("HARNESS_DATA_STORE_ALIAS", d.data_store_alias),
            data_store_port=secrets.get_int("HARNESS_DATA_STORE_PORT", d.data_store_port),
            database=secrets.get_or_default("HARNESS_DATA_STORE_DATABASE", d.database),
            data_store_user=secrets.get_or_default("HARNESS_DATA_STORE_USER", d.data_store_user),
            data_store_password=secrets.get_or_default(
                "HARNESS_DATA_STORE_PASSWORD", d.data_store_password
            ),
            query_engine_image=secrets.get_or_default(
                "HARNESS_QUERY_ENGINE_IMAGE", d.query_engine_image
            ),
            query_engine_alias=secrets.get_or_default(
                "HARNESS_QUERY_ENGINE_ALIAS", d.query_engine_alias
            ),
            query_engine_port=secrets.get_int("HARNESS_QUERY_ENGINE_PORT", d.query_engine_port),
            query_engine_user=secrets.get_or_default(
                "HARNESS_QUERY_ENGINE_USER", d.query_engine_user
            ),
            query_engine_password=secrets.get("HARNESS_QUERY_ENGINE_PASSWORD") or None,
            catalog=secrets.get_or_default("HARNESS_CATALOG", d.catalog),
            schema=secrets.get_or_default("HARNESS_SCHEMA", d.schema),
            catalog_dir=secrets.get_or_default("HARNESS_CATALOG_DIR", d.catalog_dir),
            data_store_startup_timeout=secrets.get_float(
                "HARNESS_DATA_STORE_STARTUP_TIMEOUT", d.data_store_startup_timeout
            ),
            query_engine_startup_timeout=secrets.get_float(
                "HARNESS_QUERY_ENGINE_STARTUP_TIMEOUT", d.query_engine_startup_timeout
            ),
            catalog_timeout=secrets.get_float("HARNESS_CATALOG_TIMEOUT", d.catalog_timeout),
            catalog_interval=secrets.get_float("HARNESS_CATALOG_INTERVAL", d.catalog_interval),
            schema_timeout=secrets.get_float("HARNESS_SCHEMA_TIMEOUT", d.schema_timeout),
            schema_interval=secrets.get_float("HARNESS_SCHEMA_INTERVAL", d.schema_interval),
            request_timeout=secrets.get_float("HARNESS_REQUEST_TIMEOUT", d.request_timeout),
        )

    @property
    def data_store_credentials(self) -> Credentials:
        return Credentials(self.data_store_user, self.data_store_password)

    @property
    def catalog_policy(self) -> RetryPolicy:
        return RetryPolicy(interval=self.catalog_interval, timeout=self.catalog_timeout)

    @property
    def schema_policy(self) -> RetryPolicy:
        return RetryPolicy(interval=self.schema_interval, timeout=self.schema_timeout)
