from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator

import pytest

from fedquery.harness.errors import HarnessPhase, ServiceStartupFailure
from fedquery.harness.handles.interface import Credentials, ServiceState
from fedquery.harness.handles.memory_handle import MemoryServiceHandle
from fedquery.harness.handles.wait import HttpWaitStrategy, LogWaitStrategy, POSTGRES_READY_LINE
from fedquery.harness.network.memory_network import MemoryNetwork


@pytest.fixture
def network() -> Iterator[MemoryNetwork]:
    net = MemoryNetwork("test-net")
    net.open()
    yield net
    net.close()


# ── State machine ────────────────────────────────────────────────────────────


def test_start_resolves_bindings_once():
    handle = MemoryServiceHandle("postgres", exposed_ports=(5432,), port_offset=1000)
    assert handle.state is ServiceState.CREATED
    with pytest.raises(RuntimeError, match="not available"):
        _ = handle.host

    handle.start(timeout=5)

    assert handle.state is ServiceState.RUNNING
    assert handle.host == "127.0.0.1"
    assert handle.mapped_port(5432) == 6432
    with pytest.raises(ValueError, match="does not expose port 8080"):
        handle.mapped_port(8080)


def test_failed_start_raises_startup_failure_with_logs():
    handle = MemoryServiceHandle("trino", fail_start="catalog file unreadable")

    with pytest.raises(ServiceStartupFailure) as info:
        handle.start(timeout=5)

    err = info.value
    assert handle.state is ServiceState.FAILED
    assert err.phase is HarnessPhase.STARTUP
    assert err.service == "trino"
    assert "FATAL catalog file unreadable" in err.logs
    assert str(err).startswith("[startup] service 'trino' did not reach Running")


def test_stop_of_failed_handle_cleans_up():
    handle = MemoryServiceHandle("trino", fail_start="boom")
    with pytest.raises(ServiceStartupFailure):
        handle.start(timeout=5)
    handle.stop()
    assert handle.state is ServiceState.STOPPED
    assert handle.stop_calls == 1


def test_stop_is_idempotent_and_safe_before_start():
    handle = MemoryServiceHandle("postgres")
    handle.stop()
    assert handle.state is ServiceState.STOPPED
    assert handle.stop_calls == 0

    running = MemoryServiceHandle("trino")
    running.start(timeout=5)
    running.stop()
    running.stop()
    assert running.state is ServiceState.STOPPED
    assert running.stop_calls == 1


def test_failed_stop_leaves_handle_failed():
    handle = MemoryServiceHandle("trino", fail_stop="daemon gone")
    handle.start(timeout=5)
    with pytest.raises(RuntimeError, match="daemon gone"):
        handle.stop()
    assert handle.state is ServiceState.FAILED


def test_configuration_is_rejected_after_created(network: MemoryNetwork, tmp_path):
    handle = MemoryServiceHandle("trino")
    handle.start(timeout=5)
    with pytest.raises(RuntimeError, match="Cannot attach a file"):
        handle.attach_file(tmp_path / "postgresql.properties", "/etc/trino/catalog/x")
    with pytest.raises(RuntimeError, match="Cannot join a network"):
        handle.join_network(network, "trino")
    with pytest.raises(RuntimeError, match="Cannot start"):
        handle.start(timeout=5)


def test_credentials_are_hidden_from_repr():
    creds = Credentials("testuser", "testpass")
    assert "testpass" not in repr(creds)


# ── Network ──────────────────────────────────────────────────────────────────


def test_join_network_registers_alias(network: MemoryNetwork):
    handle = MemoryServiceHandle("postgres")
    handle.join_network(network, "mypostgres")
    assert handle.aliases == ("mypostgres",)
    assert network.resolve("mypostgres") is handle
    assert network.aliases == ["mypostgres"]


def test_duplicate_alias_is_rejected(network: MemoryNetwork):
    MemoryServiceHandle("postgres").join_network(network, "db")
    other = MemoryServiceHandle("postgres-2")
    with pytest.raises(ValueError, match="Alias 'db' is already used by postgres"):
        other.join_network(network, "db")
    assert other.network is None


def test_network_must_be_open_to_register():
    net = MemoryNetwork()
    with pytest.raises(RuntimeError, match="not open"):
        MemoryServiceHandle("postgres").join_network(net, "db")


def test_network_close_is_idempotent():
    net = MemoryNetwork()
    net.close()
    assert net.close_calls == 0

    net = MemoryNetwork()
    net.open()
    net.close()
    net.close()
    assert net.close_calls == 1
    assert not net.is_open
    with pytest.raises(RuntimeError, match="already opened"):
        net.open()


def test_unknown_alias():
    net = MemoryNetwork()
    net.open()
    with pytest.raises(LookupError, match="No service with alias 'nope'"):
        net.resolve("nope")


# ── Wait strategies ──────────────────────────────────────────────────────────


def test_log_wait_needs_all_occurrences():
    handle = MemoryServiceHandle(
        "postgres",
        wait=LogWaitStrategy(occurrences=2, interval=0.01),
        on_start=lambda h: h.emit(POSTGRES_READY_LINE),
    )
    with pytest.raises(ServiceStartupFailure, match="1/2 ready lines"):
        handle.start(timeout=0.05)


def test_log_wait_passes_on_second_ready_line():
    def boot(h: MemoryServiceHandle) -> None:
        h.emit(POSTGRES_READY_LINE)
        h.emit("database system is shut down")
        h.emit(POSTGRES_READY_LINE)

    handle = MemoryServiceHandle("postgres", wait=LogWaitStrategy(), on_start=boot)
    handle.start(timeout=5)
    assert handle.is_running()


class _InfoHandler(BaseHTTPRequestHandler):
    responses: list[dict] = []

    def do_GET(self) -> None:  # noqa: N802
        body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        payload = json.dumps(body).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args) -> None:
        pass


@pytest.fixture
def info_server() -> Iterator[ThreadingHTTPServer]:
    server = ThreadingHTTPServer(("127.0.0.1", 0), _InfoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


def test_http_wait_ignores_200_while_starting(info_server: ThreadingHTTPServer):
    _InfoHandler.responses = [{"starting": True}, {"starting": True}, {"starting": False}]
    port = info_server.server_address[1]
    handle = MemoryServiceHandle(
        "trino",
        exposed_ports=(8080,),
        port_offset=port - 8080,
        wait=HttpWaitStrategy(8080, "/v1/info", interval=0.01),
    )
    handle.start(timeout=5)
    assert handle.is_running()
    assert _InfoHandler.responses == [{"starting": False}]


def test_http_wait_times_out_when_nothing_listens(info_server: ThreadingHTTPServer):
    port = info_server.server_address[1]
    info_server.shutdown()
    info_server.server_close()
    handle = MemoryServiceHandle(
        "trino",
        exposed_ports=(8080,),
        port_offset=port - 8080,
        wait=HttpWaitStrategy(8080, interval=0.01, request_timeout=0.1),
    )
    with pytest.raises(ServiceStartupFailure, match="HTTP readiness"):
        handle.start(timeout=0.1)
    assert handle.state is ServiceState.FAILED
