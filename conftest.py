"""Root-level pytest fixtures: one federated stack (Postgres + Trino) per test
class, with the products table reset before every test."""

from __future__ import annotations

import pytest


@pytest.fixture(scope="session")
def docker_ready() -> None:
    """Skip container-backed tests when no Docker daemon answers."""
    from fedquery.harness.network.docker_network import docker_available

    if not docker_available():
        pytest.skip("Docker daemon is not reachable")


@pytest.fixture(scope="class")
def federated_harness(docker_ready):
    from fedquery.harness.orchestrator import HarnessOrchestrator
    from fedquery.harness.settings import HarnessSettings
    from fedquery.services.logger.factory import LoggerFactory
    from fedquery.services.secrets.env_secrets import EnvSecrets

    settings = HarnessSettings.from_secrets(EnvSecrets())
    harness = HarnessOrchestrator(settings=settings, logger=LoggerFactory(default_impl="pretty"))
    harness.start_all()
    yield harness
    harness.stop_all()


@pytest.fixture
def seeded_harness(federated_harness):
    """The class's harness with freshly reset data."""
    federated_harness.reset_data()
    return federated_harness
