"""Connector (catalog) config rendering for the query engine.

The engine reaches the data store over the private network, so the generated
connection URL uses the data store's network alias and its container-internal
port. The externally published port only works from the host.
"""

from __future__ import annotations

from dataclasses import dataclass

from fedquery.harness.errors import ConfigGenerationError

DEFAULT_CATALOG = "postgresql"
DEFAULT_CONNECTOR = "postgresql"


@dataclass(frozen=True)
class ConnectorConfig:
    catalog: str
    connector: str
    connection_url: str
    user: str
    password: str

    @property
    def filename(self) -> str:
        return f"{self.catalog}.properties"

    def to_properties(self) -> str:
        entries = [
            ("connector.name", self.connector),
            ("connection-url", self.connection_url),
            ("connection-user", self.user),
            ("connection-password", self.password),
        ]
        return "".join(f"{k}={_escape(v)}\n" for k, v in entries)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\")


def render_connector_config(
    data_store_alias: str,
    data_store_port: int,
    database: str,
    user: str,
    password: str,
    *,
    catalog: str = DEFAULT_CATALOG,
    connector: str = DEFAULT_CONNECTOR,
) -> ConnectorConfig:
    """Build the catalog document for a data store reachable at *data_store_alias*.

    Pure function. Raises ``ConfigGenerationError`` naming every invalid field.
    """
    values = {
        "data_store_alias": data_store_alias,
        "database": database,
        "user": user,
        "password": password,
        "catalog": catalog,
        "connector": connector,
    }
    problems: list[str] = []
    bad_fields: list[str] = []
    for name, value in values.items():
        if not isinstance(value, str) or not value.strip():
            bad_fields.append(name)
            problems.append(f"{name} is empty")
        elif "\n" in value or "\r" in value:
            bad_fields.append(name)
            problems.append(f"{name} contains a line break")

    if (
        isinstance(data_store_port, bool)
        or not isinstance(data_store_port, int)
        or not 1 <= data_store_port <= 65535
    ):
        bad_fields.append("data_store_port")
        problems.append(f"data_store_port must be 1..65535, got {data_store_port!r}")

    if problems:
        raise ConfigGenerationError(
            "cannot render connector config: " + "; ".join(problems), fields=bad_fields
        )

    return ConnectorConfig(
        catalog=catalog,
        connector=connector,
        connection_url=f"jdbc:postgresql://{data_store_alias}:{data_store_port}/{database}",
        user=user,
        password=password,
    )


def parse_properties(text: str) -> dict[str, str]:
    """Read back a document produced by ``ConnectorConfig.to_properties``."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.lstrip()
        if not line or line.startswith(("#", "!")):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            raise ValueError(f"Malformed properties line: {line!r}")
        result[key.strip()] = value.lstrip().replace("\\\\", "\\")
    return result
