import pytest

from fedquery.harness.connector_config import parse_properties, render_connector_config
from fedquery.harness.errors import ConfigGenerationError, HarnessPhase


def test_connection_url_uses_alias_and_internal_port():
    config = render_connector_config("mypostgres", 5432, "testdb", "testuser", "testpass")
    assert config.connection_url == "jdbc:postgresql://mypostgres:5432/testdb"
    assert config.filename == "postgresql.properties"
    assert config.to_properties() == (
        "connector.name=postgresql\n"
        "connection-url=jdbc:postgresql://mypostgres:5432/testdb\n"
        "connection-user=testuser\n"
        "connection-password=testpass\n"
    )


@pytest.mark.parametrize(
    "alias,port",
    [("mypostgres", 5432), ("db-1", 6543), ("warehouse", 1), ("pg", 65535)],
)
def test_alias_is_encoded_for_any_valid_input(alias: str, port: int):
    config = render_connector_config(alias, port, "testdb", "u", "p")
    assert f"//{alias}:{port}/" in config.connection_url
    assert "localhost" not in config.connection_url


def test_custom_catalog_name():
    config = render_connector_config("pg", 5432, "db", "u", "p", catalog="warehouse")
    assert config.filename == "warehouse.properties"
    assert config.to_properties().startswith("connector.name=postgresql\n")


def test_every_empty_field_is_reported():
    with pytest.raises(ConfigGenerationError) as info:
        render_connector_config("", 5432, "testdb", "  ", "testpass")
    err = info.value
    assert err.fields == ["data_store_alias", "user"]
    assert err.phase is HarnessPhase.CONFIG
    assert isinstance(err, ValueError)
    assert str(err).startswith("[config]")


@pytest.mark.parametrize("port", [0, 65536, -1, "5432", True])
def test_invalid_port(port):
    with pytest.raises(ConfigGenerationError, match="data_store_port"):
        render_connector_config("pg", port, "db", "u", "p")


def test_line_break_cannot_inject_properties():
    with pytest.raises(ConfigGenerationError, match="password contains a line break"):
        render_connector_config("pg", 5432, "db", "u", "x\nconnection-user=admin")


def test_backslashes_are_escaped_and_read_back():
    config = render_connector_config("pg", 5432, "db", "u", r"pa\ss")
    assert "connection-password=pa\\\\ss\n" in config.to_properties()
    assert parse_properties(config.to_properties())["connection-password"] == r"pa\ss"


def test_config_is_immutable():
    config = render_connector_config("pg", 5432, "db", "u", "p")
    with pytest.raises(AttributeError):
        config.user = "other"  # type: ignore[misc]
