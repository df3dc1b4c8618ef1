"""``python -m fedquery run <module>``: build the DI container and run a module.

Flags split into two groups. Global flags (``--engine``, ``--log``, ``--env``,
``--env-file``) pick service implementations and runtime config.
Everything else is checked against the ``args`` list of the module's
``module.json``.
"""

from __future__ import annotations

import asyncio
import importlib
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fedquery.config.container import Container
from fedquery.config.context import ModuleConfig
from fedquery.config.env_loader import load_env_file
from fedquery.modules.base import AsyncModule
from fedquery.services.lifecycle.lifecycle_manager import LifecycleManager
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.registry import available, resolve_implementation, resolve_interface_type
from fedquery.services.secrets.env_secrets import EnvSecrets
from fedquery.services.secrets.interface import SecretsInterface

MODULES_DIR = Path(__file__).resolve().parent.parent / "modules"

# Implementation flags and their defaults
_IMPL_FLAGS: dict[str, str] = {
    "engine": "trino",
    "log": "pretty",
}
_CONFIG_FLAGS = {"env", "env-file"}

# Module types that get signal handling and lifecycle shutdown
_SERVICE_TYPES = {"service", "worker"}

USAGE = "Usage: python -m fedquery run <module_name> [flags] [module args]"


@dataclass(frozen=True)
class ArgSpec:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None
    has_default: bool = False
    choices: tuple[Any, ...] | None = None

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> ArgSpec:
        return cls(
            name=raw["name"],
            type=raw.get("type", "string"),
            description=raw.get("description", ""),
            required=bool(raw.get("required", False)),
            default=raw.get("default"),
            has_default="default" in raw,
            choices=tuple(raw["choices"]) if raw.get("choices") else None,
        )

    def cast(self, raw: str) -> Any:
        match self.type:
            case "integer":
                return int(raw)
            case "float":
                return float(raw)
            case "boolean":
                return raw.lower() in ("true", "1", "yes")
            case _:
                return raw

    def help_line(self) -> str:
        line = f"    --{self.name:20s} {self.description}"
        if self.required:
            line += " (required)"
        if self.has_default:
            line += f" [default: {self.default}]"
        if self.choices:
            line += f" (choices: {', '.join(str(c) for c in self.choices)})"
        return line


@dataclass(frozen=True)
class ModuleDescriptor:
    name: str
    display_name: str
    description: str = ""
    version: str = ""
    type: str = "job"
    args: tuple[ArgSpec, ...] = field(default_factory=tuple)

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> ModuleDescriptor:
        return cls(
            name=raw["name"],
            display_name=raw.get("display_name", raw["name"]),
            description=raw.get("description", ""),
            version=raw.get("version", ""),
            type=raw.get("type", "job"),
            args=tuple(ArgSpec.from_json(a) for a in raw.get("args", [])),
        )

    @property
    def is_service(self) -> bool:
        return self.type in _SERVICE_TYPES


def load_module_descriptor(module_name: str) -> ModuleDescriptor:
    module_json = MODULES_DIR / module_name / "module.json"
    if not module_json.exists():
        raise FileNotFoundError(f"module '{module_name}' not found at {module_json}")
    with open(module_json) as f:
        return ModuleDescriptor.from_json(json.load(f))


def _split_flags(raw_args: list[str]) -> dict[str, str]:
    """``--key value``, ``--key=value`` and bare ``--flag`` (-> "true")."""
    found: dict[str, str] = {}
    i = 0
    while i < len(raw_args):
        arg = raw_args[i]
        i += 1
        if not arg.startswith("--"):
            continue
        key, eq, value = arg[2:].partition("=")
        if eq:
            found[key] = value
        elif i < len(raw_args) and not raw_args[i].startswith("--"):
            found[key] = raw_args[i]
            i += 1
        else:
            found[key] = "true"
    return found


def parse_module_args(descriptor: ModuleDescriptor, raw_args: list[str]) -> dict[str, Any]:
    """Cast, default and validate *raw_args* against the descriptor's arg specs.

    Raises ``ValueError`` listing every problem at once.
    """
    given = _split_flags(raw_args)
    result: dict[str, Any] = {}
    errors: list[str] = []

    for arg in descriptor.args:
        if arg.name in given:
            try:
                result[arg.name] = arg.cast(given[arg.name])
            except ValueError:
                errors.append(
                    f"Invalid value for --{arg.name}: '{given[arg.name]}' (expected {arg.type})"
                )
                continue
        elif arg.has_default:
            result[arg.name] = arg.default
        elif arg.required:
            errors.append(f"Missing required argument: --{arg.name}")
            continue
        else:
            continue

        if arg.choices and result[arg.name] not in arg.choices:
            errors.append(
                f"Invalid value for --{arg.name}: '{result[arg.name]}' "
                f"(choices: {', '.join(str(c) for c in arg.choices)})"
            )

    if errors:
        raise ValueError("; ".join(errors))
    return result


def _parse_env_overrides(raw: str) -> dict[str, str]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("--env value must be a JSON object")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
        raise ValueError("--env JSON must have string keys and string values")
    return data


def _extract_global_flags(
    remaining: list[str],
) -> tuple[dict[str, str], dict[str, str], list[str]]:
    """Pull global flags out of *remaining*.

    Returns (impl_flags, env_overrides, module_args). ``impl_flags`` starts
    from the defaults in ``_IMPL_FLAGS``. Values from ``--env-file``
    lose to values from ``--env``.
    """
    impl_flags = dict(_IMPL_FLAGS)
    cli_env: dict[str, str] = {}
    env_file: str | None = None
    module_args: list[str] = []

    known = set(_IMPL_FLAGS) | _CONFIG_FLAGS
    i = 0
    while i < len(remaining):
        token = remaining[i]
        name = token[2:] if token.startswith("--") else None
        if name in known and i + 1 < len(remaining):
            value = remaining[i + 1]
            if name == "env":
                cli_env.update(_parse_env_overrides(value))
            elif name == "env-file":
                env_file = value
            else:
                impl_flags[name] = value
            i += 2
            continue
        module_args.append(token)
        i += 1

    env_overrides = {**(load_env_file(env_file) if env_file else {}), **cli_env}
    env_overrides.setdefault("LOG_IMPL", impl_flags["log"])
    return impl_flags, env_overrides, module_args


def print_module_help(descriptor: ModuleDescriptor) -> None:
    version = f" v{descriptor.version}" if descriptor.version else ""
    print(f"\n  {descriptor.display_name}{version}")
    print(f"  {descriptor.description}\n")
    print(f"  Type: {descriptor.type}\n")

    if descriptor.args:
        print("  Module arguments:")
        for arg in descriptor.args:
            print(arg.help_line())
        print()

    print("  Global flags:")
    for flag, default in _IMPL_FLAGS.items():
        impls = "pretty, memory" if flag == "log" else ", ".join(available(flag))
        print(f"    --{flag:20s} {impls} [default: {default}]")
    print(f"    --{'env':20s} JSON object of env var overrides")
    print(f"    --{'env-file':20s} Environment file name (loads .env/<name>.env)")
    print()


def _build_container(
    impl_flags: dict[str, str],
    env_overrides: dict[str, str],
    module_args: dict[str, Any],
) -> Container:
    container = Container()
    container.register_instance(Container, container)

    secrets = EnvSecrets(overrides=env_overrides)
    container.register_instance(SecretsInterface, secrets)
    container.register_instance(ModuleConfig, ModuleConfig(module_args))

    logger_factory = LoggerFactory(
        default_impl=impl_flags.get("log") or env_overrides.get("LOG_IMPL", "pretty")
    )
    container.register_instance(LoggerFactory, logger_factory)
    container.register_instance(
        LifecycleManager, LifecycleManager(log=logger_factory.create(component="lifecycle"))
    )

    for flag_name, impl_name in impl_flags.items():
        if flag_name == "log":
            continue
        impl_cls = resolve_implementation(flag_name, impl_name)
        # Constructors that take secrets get them from the container
        container.register_instance(resolve_interface_type(flag_name), container.resolve(impl_cls))

    return container


async def _run_service_module(module_instance: AsyncModule, container: Container) -> int:
    lifecycle = container.get(LifecycleManager)
    lifecycle.install_signal_handlers(loop=asyncio.get_running_loop())
    try:
        return await module_instance.run()
    finally:
        await lifecycle.shutdown()


def run_module(argv: list[str]) -> tuple[int, AsyncModule | None]:
    """Testable entry point: returns (exit_code, module instance)."""
    if len(argv) < 2 or argv[0] != "run":
        raise ValueError(USAGE)

    module_name, remaining = argv[1], argv[2:]
    descriptor = load_module_descriptor(module_name)

    if "--help" in remaining or "-h" in remaining:
        print_module_help(descriptor)
        return (0, None)

    impl_flags, env_overrides, module_argv = _extract_global_flags(remaining)
    module_args = parse_module_args(descriptor, module_argv)
    container = _build_container(impl_flags, env_overrides, module_args)

    mod = importlib.import_module(f"fedquery.modules.{module_name}.main")
    module_cls = getattr(mod, "module_class", None)
    if module_cls is None:
        raise AttributeError(
            f"Module 'fedquery.modules.{module_name}.main' must define a 'module_class' attribute"
        )
    module_instance = container.resolve(module_cls)

    if descriptor.is_service:
        exit_code = asyncio.run(_run_service_module(module_instance, container))
    else:
        exit_code = asyncio.run(module_instance.run())
    return (exit_code, module_instance)


def run_cli(argv: list[str] | None = None) -> None:
    args = argv if argv is not None else sys.argv[1:]
    try:
        exit_code, _ = run_module(args)
    except (ValueError, KeyError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)
