"""Maps (flag, implementation name) to a class path.

String paths keep imports lazy: picking ``--engine memory`` never imports
the trino client.
"""

from __future__ import annotations

import importlib
from typing import Any

REGISTRY: dict[str, dict[str, str]] = {
    "engine": {
        "trino": "fedquery.services.query_engine.trino_query_engine.TrinoQueryEngine",
        "memory": "fedquery.services.query_engine.memory_query_engine.MemoryQueryEngine",
    },
    "secrets": {
        "env": "fedquery.services.secrets.env_secrets.EnvSecrets",
    },
}

# Flag -> ABC the chosen implementation is registered under
INTERFACE_TYPES: dict[str, str] = {
    "engine": "fedquery.services.query_engine.interface.QueryEngineInterface",
    "secrets": "fedquery.services.secrets.interface.SecretsInterface",
}


def resolve_class(dotted_path: str) -> type[Any]:
    module_path, _, class_name = dotted_path.rpartition(".")
    return getattr(importlib.import_module(module_path), class_name)


def available(flag_name: str) -> list[str]:
    if flag_name not in REGISTRY:
        raise ValueError(f"Unknown interface flag: --{flag_name}")
    return list(REGISTRY[flag_name])


def resolve_implementation(flag_name: str, impl_name: str) -> type[Any]:
    names = available(flag_name)
    if impl_name not in names:
        raise ValueError(
            f"Unknown implementation '{impl_name}' for --{flag_name} "
            f"(available: {', '.join(names)})"
        )
    return resolve_class(REGISTRY[flag_name][impl_name])


def resolve_interface_type(flag_name: str) -> type[Any]:
    if flag_name not in INTERFACE_TYPES:
        raise ValueError(f"Unknown interface flag: --{flag_name}")
    return resolve_class(INTERFACE_TYPES[flag_name])
