"""Tests for IPC communication."""

import json
import socket
import time

import pytest  # type: ignore[import-not-found]

from transmission_agent.agent.ipc import IPCClient, IPCError, IPCServer
from transmission_agent.agent.platform import uses_unix_sockets


@pytest.fixture
def socket_path(tmp_path):
    """Create temporary socket path."""
    if not uses_unix_sockets():
        pytest.skip("Unix domain sockets not available")
    return tmp_path / "test.sock"


@pytest.fixture
def port_file(tmp_path):
    return tmp_path / "agent.port"


def echo_handler(params):
    return {"echo": params.get("message")}


def failing_handler(params):
    raise RuntimeError("handler exploded")


class TestIPCServer:
    """Test IPC server over a Unix socket."""

    def test_create_server(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)

        assert server.socket_path == socket_path
        assert server.running is False

    def test_register_handler(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)

        server.register_handler("test", echo_handler)

        assert "test" in server.handlers

    def test_start_without_socket_path(self, tmp_path) -> None:
        server = IPCServer(tmp_path / "test.sock", unix=True)
        server.socket_path = None

        with pytest.raises(IPCError, match="socket path"):
            server.start()

        assert server.running is False
        assert server.socket is None

    def test_start_and_stop_server(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)

        server.start()
        time.sleep(0.1)
        assert server.running is True
        assert socket_path.exists()

        server.stop()
        assert server.running is False
        assert not socket_path.exists()

    def test_server_handles_raw_request(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)
        server.register_handler("echo", echo_handler)
        server.start()
        time.sleep(0.1)

        try:
            client_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            client_socket.connect(str(socket_path))
            request = {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "echo",
                "params": {"message": "hello"},
            }
            client_socket.sendall(json.dumps(request).encode("utf-8") + b"\n")
            response = json.loads(client_socket.recv(4096).decode("utf-8"))
            client_socket.close()

            assert response == {"jsonrpc": "2.0", "id": 1, "result": {"echo": "hello"}}
        finally:
            server.stop()

    def test_malformed_json(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)
        server.start()
        time.sleep(0.1)

        try:
            client_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            client_socket.connect(str(socket_path))
            client_socket.sendall(b"{not json\n")
            response = json.loads(client_socket.recv(4096).decode("utf-8"))
            client_socket.close()

            assert response["error"]["code"] == -32700
        finally:
            server.stop()


class TestRequestDispatch:
    """Test JSON-RPC dispatch without sockets."""

    @pytest.fixture
    def server(self, tmp_path) -> IPCServer:
        server = IPCServer(tmp_path / "unused.sock", unix=True)
        server.register_handler("echo", echo_handler)
        server.register_handler("fail", failing_handler)
        return server

    def test_success(self, server) -> None:
        response = server._process_request(
            {"jsonrpc": "2.0", "id": 7, "method": "echo", "params": {"message": "hi"}}
        )

        assert response["id"] == 7
        assert response["result"] == {"echo": "hi"}

    def test_missing_params_defaults_to_empty(self, server) -> None:
        response = server._process_request({"jsonrpc": "2.0", "id": 1, "method": "echo"})

        assert response["result"] == {"echo": None}

    def test_unknown_method(self, server) -> None:
        response = server._process_request({"jsonrpc": "2.0", "id": 2, "method": "nope"})

        assert response["error"]["code"] == -32601
        assert "nope" in response["error"]["message"]

    def test_not_an_object(self, server) -> None:
        response = server._process_request(["echo"])

        assert response["error"]["code"] == -32600

    def test_missing_method(self, server) -> None:
        response = server._process_request({"jsonrpc": "2.0", "id": 3})

        assert response["error"]["code"] == -32600

    def test_handler_error(self, server) -> None:
        response = server._process_request({"jsonrpc": "2.0", "id": 4, "method": "fail"})

        assert response["error"]["code"] == -32603
        assert "handler exploded" in response["error"]["message"]


class TestIPCClient:
    """Test IPC client."""

    def test_unix_round_trip(self, socket_path) -> None:
        server = IPCServer(socket_path, unix=True)
        server.register_handler("echo", echo_handler)
        server.register_handler("ping", lambda params: {"pong": True})
        server.start()
        time.sleep(0.1)

        try:
            client = IPCClient(socket_path, unix=True, timeout=2)

            assert client.call("echo", {"message": "hello"}) == {"echo": "hello"}
            assert client.is_agent_running() is True
        finally:
            server.stop()

    def test_tcp_round_trip(self, port_file) -> None:
        server = IPCServer(port_file=port_file, unix=False)
        server.register_handler("echo", echo_handler)
        server.start()
        time.sleep(0.1)

        try:
            assert port_file.read_text() == str(server.port)
            client = IPCClient(port_file=port_file, unix=False, timeout=2)

            assert client.call("echo", {"message": "tcp"}) == {"echo": "tcp"}
        finally:
            server.stop()

        assert not port_file.exists()

    def test_remote_error_raises(self, port_file) -> None:
        server = IPCServer(port_file=port_file, unix=False)
        server.register_handler("fail", failing_handler)
        server.start()
        time.sleep(0.1)

        try:
            client = IPCClient(port_file=port_file, unix=False, timeout=2)
            with pytest.raises(IPCError, match="-32603"):
                client.call("fail")
        finally:
            server.stop()

    def test_client_no_server(self, socket_path) -> None:
        client = IPCClient(socket_path, unix=True, timeout=1)

        with pytest.raises(IPCError):
            client.call("test")

    def test_is_agent_running_no_server(self, socket_path) -> None:
        client = IPCClient(socket_path, unix=True, timeout=1)

        assert client.is_agent_running() is False

    def test_tcp_without_port_file(self, port_file) -> None:
        client = IPCClient(port_file=port_file, unix=False, timeout=1)

        with pytest.raises(IPCError, match="not running"):
            client.call("ping")
        assert client.is_agent_running() is False
