"""Docker-free stack: memory handles, memory data store, memory query engine.

The memory engine handle reads the catalog files attached to it at start,
the way the real engine reads its catalog directory. A catalog whose
connection URL names an alias/port that nothing on the network answers is
still listed but cannot be queried.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from fedquery.harness.connector_config import parse_properties
from fedquery.harness.handles.memory_handle import MemoryServiceHandle
from fedquery.harness.handles.wait import POSTGRES_READY_LINE, LogWaitStrategy
from fedquery.harness.network.memory_network import MemoryNetwork
from fedquery.harness.settings import HarnessSettings
from fedquery.services.database.memory_database import MemoryDatabase
from fedquery.services.query_engine.memory_query_engine import MemoryQueryEngine

_JDBC_URL = re.compile(r"^jdbc:postgresql://(?P<host>[^:/]+):(?P<port>\d+)/(?P<db>\w+)$")


@dataclass
class MemoryStack:
    settings: HarnessSettings
    database: MemoryDatabase
    engine: MemoryQueryEngine
    network: MemoryNetwork
    data_store: MemoryServiceHandle
    query_engine: MemoryServiceHandle

    def orchestrator_kwargs(self) -> dict[str, Any]:
        return {
            "settings": self.settings,
            "network": self.network,
            "data_store": self.data_store,
            "query_engine": self.query_engine,
            "engine_factory": lambda _endpoints: self.engine,
            "db_factory": lambda _endpoints: self.database,
        }


def _boot_postgres(handle: MemoryServiceHandle) -> None:
    # init-time server, then the real one
    handle.emit(POSTGRES_READY_LINE)
    handle.emit("database system is shut down")
    handle.emit(POSTGRES_READY_LINE)


def build_memory_stack(
    settings: HarnessSettings | None = None,
    catalog_delay: int = 0,
    table_delay: int = 0,
) -> MemoryStack:
    settings = settings or HarnessSettings()
    database = MemoryDatabase()
    engine = MemoryQueryEngine(table_delay=table_delay)
    network = MemoryNetwork()

    data_store = MemoryServiceHandle(
        name="postgres",
        image=settings.data_store_image,
        exposed_ports=(settings.data_store_port,),
        credentials=settings.data_store_credentials,
        wait=LogWaitStrategy(),
        on_start=_boot_postgres,
    )

    def load_catalogs(handle: MemoryServiceHandle) -> None:
        for attached in handle.attached_files:
            props = parse_properties(attached.host_path.read_text(encoding="utf-8"))
            catalog = attached.host_path.stem
            match = _JDBC_URL.match(props.get("connection-url", ""))
            if match is None:
                raise ValueError(f"Catalog {catalog}: unsupported connection-url")
            host, port = match.group("host"), int(match.group("port"))

            def reachable(host: str = host, port: int = port) -> bool:
                net = handle.network
                if net is None or host not in net.aliases:
                    return False
                target = net.resolve(host)
                return target.is_running() and port in target.exposed_ports

            engine.register_catalog(
                catalog,
                database,
                schema=settings.schema,
                reachable=reachable,
                catalog_delay=catalog_delay,
            )
            handle.emit(f"Added catalog {catalog} using connector {props.get('connector.name')}")

    query_engine = MemoryServiceHandle(
        name="trino",
        image=settings.query_engine_image,
        exposed_ports=(settings.query_engine_port,),
        on_start=load_catalogs,
    )
    return MemoryStack(
        settings=settings,
        database=database,
        engine=engine,
        network=network,
        data_store=data_store,
        query_engine=query_engine,
    )
