"""Host-reachable endpoints of the running stack, handed to the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import quote

from fedquery.harness.handles.interface import ServiceHandle
from fedquery.harness.settings import HarnessSettings
from fedquery.services.secrets.env_secrets import EnvSecrets


@dataclass(frozen=True)
class ResolvedEndpoints:
    query_engine_host: str
    query_engine_port: int
    query_engine_user: str
    data_store_host: str
    data_store_port: int
    database: str
    data_store_user: str
    catalog: str
    schema: str
    query_engine_password: str | None = field(default=None, repr=False)
    data_store_password: str = field(default="", repr=False)

    @classmethod
    def resolve(
        cls,
        data_store: ServiceHandle,
        query_engine: ServiceHandle,
        settings: HarnessSettings,
    ) -> ResolvedEndpoints:
        for handle in (data_store, query_engine):
            if not handle.is_running():
                raise RuntimeError(
                    f"Cannot resolve endpoints: {handle.name} is {handle.state.value}, not running"
                )
        creds = data_store.credentials or settings.data_store_credentials
        return cls(
            query_engine_host=query_engine.host,
            query_engine_port=query_engine.mapped_port(settings.query_engine_port),
            query_engine_user=settings.query_engine_user,
            query_engine_password=settings.query_engine_password,
            data_store_host=data_store.host,
            data_store_port=data_store.mapped_port(settings.data_store_port),
            database=settings.database,
            data_store_user=creds.username,
            data_store_password=creds.password,
            catalog=settings.catalog,
            schema=settings.schema,
        )

    @property
    def query_engine_url(self) -> str:
        return f"http://{self.query_engine_host}:{self.query_engine_port}"

    @property
    def data_store_url(self) -> str:
        user = quote(self.data_store_user, safe="")
        password = quote(self.data_store_password, safe="")
        return (
            f"postgresql://{user}:{password}@{self.data_store_host}:"
            f"{self.data_store_port}/{self.database}"
        )

    def to_env_overrides(self) -> dict[str, str]:
        """Env var dict for ``EnvSecrets`` / subprocess env."""
        result = {
            "QUERY_ENGINE_URL": self.query_engine_url,
            "QUERY_ENGINE_USER": self.query_engine_user,
            "QUERY_ENGINE_CATALOG": self.catalog,
            "QUERY_ENGINE_SCHEMA": self.schema,
            "DB_STORE_URL": self.data_store_url,
        }
        if self.query_engine_password:
            result["QUERY_ENGINE_PASSWORD"] = self.query_engine_password
        return result

    def secrets(self, base: EnvSecrets | None = None) -> EnvSecrets:
        if base is not None:
            return base.with_overrides(self.to_env_overrides())
        return EnvSecrets(overrides=self.to_env_overrides())
