"""Harness orchestrator: brings up the federated stack for one test class.

Order of operations::

    open network -> start data store -> render + stage connector config
    -> start query engine (config attached) -> resolve endpoints
    -> catalog convergence

then, per test, ``reset_data()`` (direct reset + schema convergence), and
finally ``stop_all()``. Each step is a public method that checks its
ordering preconditions, so a test can interleave its own actions.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable

from fedquery.harness.connector_config import ConnectorConfig, render_connector_config
from fedquery.harness.convergence import (
    PollResult,
    catalog_check,
    table_check,
    wait_for_convergence,
)
from fedquery.harness.endpoints import ResolvedEndpoints
from fedquery.harness.errors import (
    ConfigGenerationError,
    HarnessError,
    ServiceStartupFailure,
    TeardownWarning,
)
from fedquery.harness.handles.interface import ServiceHandle, ServiceState
from fedquery.harness.network.interface import VirtualNetwork
from fedquery.harness.seeding import PRODUCTS_TABLE, DataSeeder
from fedquery.harness.settings import HarnessSettings
from fedquery.harness.teardown import TeardownSequencer
from fedquery.services.database.interface import DatabaseInterface
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.query_engine.interface import QueryEngineError, QueryEngineInterface
from fedquery.services.secrets.env_secrets import EnvSecrets

EngineFactory = Callable[[ResolvedEndpoints], QueryEngineInterface]
DatabaseFactory = Callable[[ResolvedEndpoints], DatabaseInterface]


def _trino_client(settings: HarnessSettings) -> EngineFactory:
    def build(endpoints: ResolvedEndpoints) -> QueryEngineInterface:
        from fedquery.services.query_engine.trino_query_engine import TrinoQueryEngine

        secrets = endpoints.secrets().with_overrides(
            {"QUERY_ENGINE_REQUEST_TIMEOUT": str(settings.request_timeout)}
        )
        return TrinoQueryEngine(secrets)

    return build


def _postgres_client(endpoints: ResolvedEndpoints) -> DatabaseInterface:
    from fedquery.services.database.postgres_database import PostgresDatabase

    return PostgresDatabase(endpoints.secrets(), prefix="DB_STORE")


class HarnessOrchestrator:
    def __init__(
        self,
        settings: HarnessSettings | None = None,
        logger: LoggerFactory | None = None,
        network: VirtualNetwork | None = None,
        data_store: ServiceHandle | None = None,
        query_engine: ServiceHandle | None = None,
        engine_factory: EngineFactory | None = None,
        db_factory: DatabaseFactory | None = None,
        poll_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self.settings = settings or HarnessSettings()
        self._log = (logger or LoggerFactory()).create(component="harness")

        if network is None:
            from fedquery.harness.network.docker_network import DockerNetwork

            network = DockerNetwork()
        if data_store is None or query_engine is None:
            from fedquery.harness.handles.docker_handle import postgres_handle, trino_handle

            data_store = data_store or postgres_handle(self.settings)
            query_engine = query_engine or trino_handle(self.settings)

        self.network = network
        self.data_store = data_store
        self.query_engine = query_engine
        self._engine_factory = engine_factory or _trino_client(self.settings)
        self._db_factory = db_factory or _postgres_client
        # clock/sleep overrides for the convergence loops
        self._poll_kwargs = dict(poll_kwargs or {})

        self._started = False
        self._connector_config: ConnectorConfig | None = None
        self._staging_dir: Path | None = None
        self._endpoints: ResolvedEndpoints | None = None
        self._engine: QueryEngineInterface | None = None
        self._catalog_ready = False

        self._teardown = TeardownSequencer(self._log)
        self._teardown.add("stop query engine", self.query_engine.stop)
        self._teardown.add("close query engine client", self._close_engine_client)
        self._teardown.add("stop data store", self.data_store.stop)
        self._teardown.add("close network", self.network.close)
        self._teardown.add("delete staged config", self._delete_staged_config)

    # -- Whole-stack lifecycle ------------------------------------------------

    def start_all(self) -> ResolvedEndpoints:
        """Bring the stack up. On failure, tears down and re-raises."""
        if self._teardown.done:
            raise RuntimeError("Harness was already stopped; build a new one")
        if self._started:
            raise RuntimeError("Harness is already started; call stop_all() first")
        self._started = True
        try:
            self.start_data_store()
            self.stage_connector_config()
            self.start_query_engine()
            self.await_catalog()
        except BaseException as exc:
            phase = exc.phase.value if isinstance(exc, HarnessError) else "unknown"
            self._log.error("Harness start failed", phase=phase, error=str(exc))
            self.stop_all()
            raise
        endpoints = self.endpoints
        self._log.info(
            "Harness ready",
            query_engine_url=endpoints.query_engine_url,
            data_store=f"{endpoints.data_store_host}:{endpoints.data_store_port}",
        )
        return endpoints

    def stop_all(self) -> list[TeardownWarning]:
        """Tear everything down. Never raises; returns the recorded warnings."""
        return self._teardown.run()

    @property
    def teardown_warnings(self) -> list[TeardownWarning]:
        return list(self._teardown.warnings)

    def __enter__(self) -> HarnessOrchestrator:
        self.start_all()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop_all()

    # -- Individual steps -----------------------------------------------------

    def start_data_store(self) -> None:
        if self.data_store.state is not ServiceState.CREATED:
            raise RuntimeError(f"Data store is {self.data_store.state.value}, expected created")
        if not self.network.is_open:
            self.network.open()
            self._log.info("Network opened", network=self.network.name)
        self.data_store.join_network(self.network, self.settings.data_store_alias)
        self._log.info(
            "Starting data store",
            image=self.data_store.image,
            alias=self.settings.data_store_alias,
        )
        self.data_store.start(self.settings.data_store_startup_timeout)
        self._log.info("Data store running", service=self.data_store.name)

    def stage_connector_config(self) -> ConnectorConfig:
        """Render the catalog file and attach it to the (not yet started) engine."""
        if not self.data_store.is_running():
            raise RuntimeError("Data store must be running before the connector config is rendered")
        if self.query_engine.state is not ServiceState.CREATED:
            raise RuntimeError("Connector config must be staged before the query engine starts")
        if self._connector_config is not None:
            raise RuntimeError("Connector config is already staged")

        creds = self.data_store.credentials or self.settings.data_store_credentials
        config = render_connector_config(
            self.settings.data_store_alias,
            self.settings.data_store_port,
            self.settings.database,
            creds.username,
            creds.password,
            catalog=self.settings.catalog,
        )
        try:
            staging_dir = Path(tempfile.mkdtemp(prefix="fedquery_catalog_"))
            self._staging_dir = staging_dir
            path = staging_dir / config.filename
            path.write_text(config.to_properties(), encoding="utf-8")
            # The engine runs as an unprivileged user inside its container
            staging_dir.chmod(0o755)
            path.chmod(0o644)
        except OSError as exc:
            raise ConfigGenerationError(f"staging {config.filename} failed: {exc}") from exc

        self.query_engine.attach_file(path, f"{self.settings.catalog_dir}/{config.filename}")
        self._connector_config = config
        self._log.info(
            "Connector config staged",
            file=config.filename,
            connection_url=config.connection_url,
        )
        return config

    def start_query_engine(self) -> None:
        if self._connector_config is None:
            raise RuntimeError("Connector config must be staged before the query engine starts")
        self.query_engine.join_network(self.network, self.settings.query_engine_alias)
        self._log.info("Starting query engine", image=self.query_engine.image)
        self.query_engine.start(self.settings.query_engine_startup_timeout)
        self._endpoints = ResolvedEndpoints.resolve(
            self.data_store, self.query_engine, self.settings
        )
        self._log.info("Query engine running", url=self._endpoints.query_engine_url)

    def await_catalog(self) -> PollResult:
        engine = self.query_engine_client()
        result = wait_for_convergence(
            catalog_check(self.settings.catalog, self.settings.schema, self.settings.catalog_policy),
            engine,
            self._log,
            diagnostics=lambda: self.query_engine.logs(tail=20),
            **self._poll_kwargs,
        )
        self._catalog_ready = True
        return result

    def await_table(self, table: str = PRODUCTS_TABLE) -> PollResult:
        if not self._catalog_ready:
            raise RuntimeError("Catalog has not converged yet; call start_all() first")
        return wait_for_convergence(
            table_check(
                self.settings.catalog, self.settings.schema, table, self.settings.schema_policy
            ),
            self.query_engine_client(),
            self._log,
            **self._poll_kwargs,
        )

    def reset_data(self) -> int:
        """Reset the seed table directly in the data store, then wait for the
        engine to see it again. Runs before every test."""
        if not self._catalog_ready:
            raise RuntimeError("Catalog has not converged yet; call start_all() first")
        endpoints = self.endpoints
        seeder = DataSeeder(lambda: self._db_factory(endpoints), self._log)
        inserted = seeder.reset()
        self.await_table(PRODUCTS_TABLE)
        return inserted

    # -- Injection ------------------------------------------------------------

    @property
    def endpoints(self) -> ResolvedEndpoints:
        if self._endpoints is None:
            raise RuntimeError("Endpoints are not resolved yet; call start_all() first")
        return self._endpoints

    def application_secrets(self, base: EnvSecrets | None = None) -> EnvSecrets:
        return self.endpoints.secrets(base)

    def query_engine_client(self) -> QueryEngineInterface:
        """The harness's own engine client, created on first use."""
        if self._engine is None:
            try:
                engine = self._engine_factory(self.endpoints)
                engine.connect()
            except (QueryEngineError, ValueError) as exc:
                raise ServiceStartupFailure(self.query_engine.name, f"engine client: {exc}") from exc
            self._engine = engine
        return self._engine

    # -- Teardown steps -------------------------------------------------------

    def _close_engine_client(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.disconnect()

    def _delete_staged_config(self) -> None:
        staging_dir, self._staging_dir = self._staging_dir, None
        if staging_dir is not None:
            shutil.rmtree(staging_dir)
