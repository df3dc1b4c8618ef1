"""Application-side configuration for reaching the query engine.

The application reads these values once, when its repository is built, so
they must be in place (``EnvSecrets`` overrides from the harness) beforehand.

Config (via secrets):

    QUERY_ENGINE_URL       - http(s)://host:port of the coordinator (required)
    QUERY_ENGINE_USER      - default test_trino_user
    QUERY_ENGINE_PASSWORD  - optional
    QUERY_ENGINE_CATALOG   - catalog holding the products table, default postgresql
    QUERY_ENGINE_SCHEMA    - default public
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from fedquery.services.query_engine.interface import DEFAULT_USER
from fedquery.services.secrets.interface import SecretsInterface

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class QueryEngineSettings:
    url: str
    user: str = DEFAULT_USER
    password: str | None = field(default=None, repr=False)
    catalog: str = "postgresql"
    schema: str = "public"

    def __post_init__(self) -> None:
        for name in ("catalog", "schema"):
            value = getattr(self, name)
            if not _IDENTIFIER.match(value):
                raise ValueError(f"QUERY_ENGINE_{name.upper()} is not a plain identifier: {value!r}")

    @classmethod
    def from_secrets(cls, secrets: SecretsInterface) -> QueryEngineSettings:
        return cls(
            url=secrets.require("QUERY_ENGINE_URL"),
            user=secrets.get("QUERY_ENGINE_USER") or DEFAULT_USER,
            password=secrets.get("QUERY_ENGINE_PASSWORD") or None,
            catalog=secrets.get("QUERY_ENGINE_CATALOG") or "postgresql",
            schema=secrets.get("QUERY_ENGINE_SCHEMA") or "public",
        )

    def qualified(self, table: str) -> str:
        return f"{self.catalog}.{self.schema}.{table}"
