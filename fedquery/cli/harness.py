"""``python -m fedquery harness``: bring the federated stack up by hand.

Starts the network, data store and query engine, seeds the products table,
prints the host-reachable endpoints as JSON, and tears everything down on
exit. With ``--hold`` it stays up until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

from fedquery.config.env_loader import load_env_file
from fedquery.harness.errors import HarnessError
from fedquery.harness.orchestrator import HarnessOrchestrator
from fedquery.harness.settings import HarnessSettings
from fedquery.services.lifecycle.lifecycle_manager import LifecycleManager
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.secrets.env_secrets import EnvSecrets

USAGE = "Usage: python -m fedquery harness [--hold] [--stack docker|memory] [--log pretty|memory] [--env-file NAME]"


def _parse_harness_args(argv: list[str]) -> dict[str, Any]:
    args: dict[str, Any] = {"hold": False, "stack": "docker", "log": "pretty", "env_file": None}
    i = 0
    while i < len(argv):
        flag = argv[i]
        if flag == "--hold":
            args["hold"] = True
            i += 1
        elif flag in ("--stack", "--log", "--env-file") and i + 1 < len(argv):
            args[flag[2:].replace("-", "_")] = argv[i + 1]
            i += 2
        else:
            raise ValueError(f"Unknown argument: {flag}\n{USAGE}")
    if args["stack"] not in ("docker", "memory"):
        raise ValueError(f"Invalid value for --stack: '{args['stack']}' (choices: docker, memory)")
    return args


def build_harness(
    stack: str, settings: HarnessSettings, logger: LoggerFactory
) -> HarnessOrchestrator:
    if stack == "memory":
        from fedquery.harness.memory_stack import build_memory_stack

        return HarnessOrchestrator(
            logger=logger, **build_memory_stack(settings).orchestrator_kwargs()
        )
    return HarnessOrchestrator(settings=settings, logger=logger)


def run_harness(argv: list[str], out: Any = None) -> int:
    """Run the harness subcommand; returns an exit code."""
    out = out or sys.stdout
    args = _parse_harness_args(argv)
    overrides = load_env_file(args["env_file"]) if args["env_file"] else {}
    settings = HarnessSettings.from_secrets(EnvSecrets(overrides=overrides))
    logger = LoggerFactory(default_impl=args["log"])
    log = logger.create(component="cli")

    harness = build_harness(args["stack"], settings, logger)
    try:
        endpoints = harness.start_all()
        rows = harness.reset_data()
    except HarnessError as exc:
        log.error("Harness failed", phase=exc.phase.value, error=str(exc))
        harness.stop_all()
        return 1

    try:
        payload = {
            "query_engine_url": endpoints.query_engine_url,
            "data_store_url": endpoints.data_store_url,
            "catalog": endpoints.catalog,
            "schema": endpoints.schema,
            "seeded_rows": rows,
            "env": endpoints.to_env_overrides(),
        }
        print(json.dumps(payload, indent=2), file=out)
        if args["hold"]:
            asyncio.run(_hold(LifecycleManager(log=log)))
    finally:
        warnings = harness.stop_all()
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return 0


async def _hold(lifecycle: LifecycleManager) -> None:
    lifecycle.install_signal_handlers(loop=asyncio.get_running_loop())
    await lifecycle.wait_for_shutdown()
