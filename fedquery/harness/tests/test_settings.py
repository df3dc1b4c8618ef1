import pytest

from fedquery.harness.settings import HarnessSettings
from fedquery.services.secrets.env_secrets import EnvSecrets


def test_defaults_match_the_reference_stack():
    s = HarnessSettings.from_secrets(EnvSecrets(overrides={}))
    assert s.data_store_image == "postgres:15"
    assert s.query_engine_image == "trinodb/trino:440"
    assert s.data_store_alias == "mypostgres"
    assert (s.database, s.data_store_user, s.data_store_password) == ("testdb", "testuser", "testpass")
    assert s.query_engine_password is None
    assert s.catalog_policy.timeout == 60 and s.catalog_policy.interval == 2
    assert s.schema_policy.timeout == 30 and s.schema_policy.interval == 1


def test_overrides_are_read_from_secrets():
    s = HarnessSettings.from_secrets(
        EnvSecrets(
            overrides={
                "HARNESS_DATA_STORE_IMAGE": "postgres:16",
                "HARNESS_CATALOG": "warehouse",
                "HARNESS_CATALOG_TIMEOUT": "5.5",
                "HARNESS_QUERY_ENGINE_PORT": "8081",
                "HARNESS_QUERY_ENGINE_PASSWORD": "",
            }
        )
    )
    assert s.data_store_image == "postgres:16"
    assert s.catalog == "warehouse"
    assert s.catalog_timeout == 5.5
    assert s.query_engine_port == 8081
    assert s.query_engine_password is None


def test_bad_number_names_the_key():
    with pytest.raises(ValueError, match="HARNESS_SCHEMA_TIMEOUT"):
        HarnessSettings.from_secrets(EnvSecrets(overrides={"HARNESS_SCHEMA_TIMEOUT": "soon"}))
