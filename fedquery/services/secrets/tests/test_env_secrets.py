import pytest

from fedquery.services.secrets.env_secrets import EnvSecrets


def test_get_returns_value():
    secrets = EnvSecrets(overrides={"MY_KEY": "my_value"})
    assert secrets.get("MY_KEY") == "my_value"


def test_get_returns_none_for_missing():
    secrets = EnvSecrets(overrides={})
    assert secrets.get("NONEXISTENT_KEY_12345") is None


def test_get_or_default_returns_default_for_missing():
    secrets = EnvSecrets(overrides={})
    assert secrets.get_or_default("NONEXISTENT_KEY_12345", "fallback") == "fallback"


def test_require_raises_for_missing():
    secrets = EnvSecrets(overrides={})
    with pytest.raises(KeyError, match="Required secret 'NONEXISTENT_KEY_12345' is not set"):
        secrets.require("NONEXISTENT_KEY_12345")


def test_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MY_KEY", "from_env")
    secrets = EnvSecrets(overrides={"MY_KEY": "from_override"})
    assert secrets.get("MY_KEY") == "from_override"


def test_environment_is_snapshotted(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("LATE_KEY_12345", raising=False)
    secrets = EnvSecrets()
    monkeypatch.setenv("LATE_KEY_12345", "late")
    assert secrets.get("LATE_KEY_12345") is None


def test_typed_accessors():
    secrets = EnvSecrets(overrides={"PORT": "5432", "TIMEOUT": "2.5", "EMPTY": ""})
    assert secrets.get_int("PORT", 1) == 5432
    assert secrets.get_float("TIMEOUT", 1.0) == 2.5
    assert secrets.get_int("EMPTY", 7) == 7
    assert secrets.get_float("NONEXISTENT_KEY_12345", 9.0) == 9.0


def test_typed_accessor_rejects_garbage():
    secrets = EnvSecrets(overrides={"PORT": "five"})
    with pytest.raises(ValueError, match="'PORT' must be an integer"):
        secrets.get_int("PORT", 1)


def test_with_overrides_leaves_original_untouched():
    base = EnvSecrets(overrides={"A": "1"})
    layered = base.with_overrides({"A": "2", "B": "3"})
    assert base.get("A") == "1"
    assert base.get("B") is None
    assert layered.get("A") == "2"
    assert layered.get("B") == "3"
