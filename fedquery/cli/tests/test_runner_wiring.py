"""Tests for runner.py wiring: global flags, module args and the DI container."""

from __future__ import annotations

import functools

import pytest

from fedquery.cli import runner
from fedquery.cli.runner import (
    ModuleDescriptor,
    _build_container,
    _extract_global_flags,
    load_module_descriptor,
    parse_module_args,
    run_module,
)
from fedquery.config.context import ModuleConfig
from fedquery.config.env_loader import load_env_file
from fedquery.modules.product_api.main import ProductApiModule
from fedquery.services.database.interface import DatabaseInterface
from fedquery.services.lifecycle.lifecycle_manager import LifecycleManager
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.query_engine.interface import QueryEngineInterface
from fedquery.services.query_engine.memory_query_engine import MemoryQueryEngine
from fedquery.services.secrets.interface import SecretsInterface


def test_extract_global_flags_defaults():
    flags, env, args = _extract_global_flags(["--port", "9000"])
    assert flags == {"engine": "trino", "log": "pretty"}
    assert env == {"LOG_IMPL": "pretty"}
    assert args == ["--port", "9000"]


def test_extract_global_flags_selects_impls():
    flags, env, args = _extract_global_flags([
        "--engine", "memory", "--log", "memory", "--host", "127.0.0.1",
    ])
    assert flags == {"engine": "memory", "log": "memory"}
    assert env["LOG_IMPL"] == "memory"
    assert args == ["--host", "127.0.0.1"]


def test_env_json_overrides():
    _flags, env, _args = _extract_global_flags([
        "--env", '{"QUERY_ENGINE_URL": "http://localhost:8080"}',
    ])
    assert env["QUERY_ENGINE_URL"] == "http://localhost:8080"


def test_env_json_must_be_string_map():
    with pytest.raises(ValueError, match="string keys and string values"):
        _extract_global_flags(["--env", '{"PORT": 8080}'])


def test_env_file_loses_to_env_json(tmp_path, monkeypatch):
    env_dir = tmp_path / ".env"
    env_dir.mkdir()
    (env_dir / "ci.env").write_text("QUERY_ENGINE_URL=http://file:8080\nQUERY_ENGINE_USER=ci\n")
    monkeypatch.setattr(
        runner, "load_env_file", functools.partial(load_env_file, project_root=tmp_path)
    )

    _flags, env, _args = _extract_global_flags([
        "--env-file", "ci", "--env", '{"QUERY_ENGINE_URL": "http://cli:8080"}',
    ])
    assert env["QUERY_ENGINE_URL"] == "http://cli:8080"
    assert env["QUERY_ENGINE_USER"] == "ci"


def test_product_api_descriptor_defaults():
    descriptor = load_module_descriptor("product_api")
    assert descriptor.is_service
    assert descriptor.display_name == "Product API"
    assert parse_module_args(descriptor, []) == {"port": 8000, "host": "0.0.0.0"}
    assert parse_module_args(descriptor, ["--port", "9001"])["port"] == 9001
    assert parse_module_args(descriptor, ["--host=127.0.0.1"])["host"] == "127.0.0.1"


def test_module_arg_type_error():
    descriptor = load_module_descriptor("product_api")
    with pytest.raises(ValueError, match="--port"):
        parse_module_args(descriptor, ["--port", "eighty"])


def test_required_arg_and_choices():
    descriptor = ModuleDescriptor.from_json({
        "name": "demo",
        "args": [
            {"name": "mode", "type": "string", "required": True, "choices": ["a", "b"]},
        ],
    })
    with pytest.raises(ValueError, match="Missing required argument: --mode"):
        parse_module_args(descriptor, [])
    with pytest.raises(ValueError, match="choices: a, b"):
        parse_module_args(descriptor, ["--mode", "c"])


def test_unknown_module():
    with pytest.raises(FileNotFoundError, match="nope"):
        load_module_descriptor("nope")


def test_container_core_registrations():
    container = _build_container({"engine": "memory", "log": "memory"}, {}, {"port": 1})
    assert container.has(LifecycleManager)
    assert container.has(SecretsInterface)
    assert isinstance(container.get(QueryEngineInterface), MemoryQueryEngine)
    assert container.get(ModuleConfig).get("port") == 1


def test_db_is_not_a_global_flag():
    flags, _env, args = _extract_global_flags(["--engine", "memory", "--db", "memory"])
    assert "db" not in flags
    assert args == ["--db", "memory"]

    descriptor = load_module_descriptor("product_api")
    container = _build_container(flags, {}, parse_module_args(descriptor, args))
    assert not container.has(DatabaseInterface)


def test_trino_engine_needs_url(monkeypatch):
    monkeypatch.delenv("QUERY_ENGINE_URL", raising=False)
    with pytest.raises(KeyError, match="QUERY_ENGINE_URL"):
        _build_container({"engine": "trino", "log": "memory"}, {}, {})


def test_trino_engine_built_from_secrets():
    container = _build_container(
        {"engine": "trino", "log": "memory"},
        {"QUERY_ENGINE_URL": "http://localhost:18080", "QUERY_ENGINE_USER": "alice"},
        {},
    )
    engine = container.get(QueryEngineInterface)
    assert engine.url == "http://localhost:18080"
    assert not engine.is_connected()


def test_unknown_engine_impl():
    with pytest.raises(ValueError, match="available: trino, memory"):
        _build_container({"engine": "presto", "log": "memory"}, {}, {})


def test_product_api_resolves_from_container():
    container = _build_container(
        {"engine": "memory", "log": "memory"},
        {"QUERY_ENGINE_URL": "http://localhost:18080"},
        {"port": 0},
    )
    module = container.resolve(ProductApiModule)
    assert module.engine is container.get(QueryEngineInterface)
    assert isinstance(module.logger, LoggerFactory)


def test_run_module_help(capsys):
    exit_code, module = run_module(["run", "product_api", "--help"])
    assert exit_code == 0
    assert module is None
    assert "Product API" in capsys.readouterr().out


def test_run_module_usage():
    with pytest.raises(ValueError, match="Usage"):
        run_module(["serve"])
