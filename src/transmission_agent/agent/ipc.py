"""IPC between the CLI and a running agent.

Uses JSON-RPC 2.0, one newline-terminated request per connection, over a Unix
domain socket (Linux/macOS) or a loopback TCP port (Windows).
"""

import json
import logging
import socket
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from transmission_agent.agent.platform import (
    get_ipc_port_file_path,
    get_ipc_socket_path,
    uses_unix_sockets,
)

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Any]


class IPCError(Exception):
    """IPC communication error."""

    pass


def _read_message(sock: socket.socket) -> bytes:
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
        if b"\n" in chunk:
            break
    return data


class IPCServer:
    """JSON-RPC 2.0 server handling requests from the CLI."""

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        port_file: Optional[Path] = None,
        unix: Optional[bool] = None,
    ):
        """Initialize IPC server.

        Args:
            socket_path: Unix socket path (default: platform-specific)
            port_file: Where to record the TCP port when not using Unix sockets
            unix: Force Unix socket (True) or loopback TCP (False)
        """
        self.unix = uses_unix_sockets() if unix is None else unix
        self.socket_path = socket_path or (get_ipc_socket_path() if self.unix else None)
        self.port_file = port_file or (None if self.unix else get_ipc_port_file_path())
        self.socket: Optional[socket.socket] = None
        self.port: Optional[int] = None
        self.running = False
        self.handlers: dict[str, Handler] = {}
        self._server_thread: Optional[threading.Thread] = None

    def register_handler(self, method: str, handler: Handler) -> None:
        """Register a handler for a JSON-RPC method.

        Args:
            method: Method name (e.g. 'status', 'toggle')
            handler: Callable receiving the params dict
        """
        self.handlers[method] = handler
        logger.debug(f"Registered handler for method: {method}")

    def start(self) -> None:
        """Start the IPC server."""
        if self.running:
            logger.warning("IPC server already running")
            return

        if self.unix:
            if self.socket_path is None:
                raise IPCError("No IPC socket path configured")
            if self.socket_path.exists():
                self.socket_path.unlink()
            self.socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self.socket.bind(str(self.socket_path))
            self.socket_path.chmod(0o600)
            address = str(self.socket_path)
        else:
            self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.socket.bind(("127.0.0.1", 0))
            self.port = self.socket.getsockname()[1]
            if self.port_file is not None:
                self.port_file.write_text(str(self.port))
            address = f"127.0.0.1:{self.port}"

        self.socket.listen(5)
        self.running = True
        self._server_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._server_thread.start()
        logger.info(f"IPC server started on {address}")

    def _accept_loop(self) -> None:
        while self.running:
            try:
                if self.socket is None:
                    break

                self.socket.settimeout(1.0)
                try:
                    client_socket, _ = self.socket.accept()
                except socket.timeout:
                    continue

                client_thread = threading.Thread(
                    target=self._handle_client, args=(client_socket,), daemon=True
                )
                client_thread.start()
            except OSError as e:
                if self.running:
                    logger.error(f"Error in accept loop: {e}")

    def _handle_client(self, client_socket: socket.socket) -> None:
        try:
            data = _read_message(client_socket)
            if not data:
                return

            try:
                request = json.loads(data.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                response = self._create_error_response(None, -32700, str(e))
            else:
                response = self._process_request(request)

            client_socket.sendall(json.dumps(response).encode("utf-8") + b"\n")
        except OSError as e:
            logger.error(f"Error handling client: {e}")
        finally:
            client_socket.close()

    def _process_request(self, request: Any) -> dict[str, Any]:
        """Dispatch a decoded JSON-RPC request to its handler."""
        if not isinstance(request, dict):
            return self._create_error_response(None, -32600, "Invalid Request")

        request_id = request.get("id")
        method = request.get("method")
        params = request.get("params") or {}

        if not method or not isinstance(method, str):
            return self._create_error_response(request_id, -32600, "Invalid Request")

        handler = self.handlers.get(method)
        if not handler:
            return self._create_error_response(request_id, -32601, f"Method not found: {method}")

        try:
            result = handler(params)
            return self._create_success_response(request_id, result)
        except Exception as e:
            logger.error(f"Error in handler for {method}: {e}")
            return self._create_error_response(request_id, -32603, str(e))

    def _create_success_response(self, request_id: Optional[Any], result: Any) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def _create_error_response(
        self, request_id: Optional[Any], code: int, message: str
    ) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message},
        }

    def stop(self) -> None:
        """Stop the IPC server."""
        if not self.running:
            return

        logger.info("Stopping IPC server...")
        self.running = False

        if self.socket:
            self.socket.close()
            self.socket = None

        if self._server_thread and self._server_thread is not threading.current_thread():
            self._server_thread.join(timeout=2.0)

        if self.unix and self.socket_path is not None and self.socket_path.exists():
            self.socket_path.unlink()
        if self.port_file is not None and self.port_file.exists():
            self.port_file.unlink()

        logger.info("IPC server stopped")


class IPCClient:
    """JSON-RPC 2.0 client used by the CLI to talk to the agent."""

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        port_file: Optional[Path] = None,
        timeout: float = 15.0,
        unix: Optional[bool] = None,
    ):
        """Initialize IPC client.

        Args:
            socket_path: Unix socket path (default: platform-specific)
            port_file: File holding the agent's TCP port when not using Unix sockets
            timeout: Socket timeout in seconds; covers one daemon round trip
            unix: Force Unix socket (True) or loopback TCP (False)
        """
        self.unix = uses_unix_sockets() if unix is None else unix
        self.socket_path = socket_path or (get_ipc_socket_path() if self.unix else None)
        self.port_file = port_file or (None if self.unix else get_ipc_port_file_path())
        self.timeout = timeout
        self._request_id = 0

    def call(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Call a method on the running agent.

        Args:
            method: Method name
            params: Method parameters

        Returns:
            Method result

        Raises:
            IPCError: If communication fails or the method returns an error
        """
        self._request_id += 1
        request = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or {},
        }

        try:
            response = self._send_request(request)
        except (OSError, ValueError) as e:
            raise IPCError(f"Failed to communicate with agent: {e}")

        if "error" in response:
            error = response["error"]
            raise IPCError(f"RPC error {error.get('code')}: {error.get('message')}")

        return response.get("result")

    def _connect(self) -> socket.socket:
        if self.unix:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            sock.connect(str(self.socket_path))
            return sock

        if self.port_file is None or not self.port_file.exists():
            raise IPCError("Agent is not running (no IPC port file)")
        port = int(self.port_file.read_text().strip())
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        sock.connect(("127.0.0.1", port))
        return sock

    def _send_request(self, request: dict[str, Any]) -> dict[str, Any]:
        sock = self._connect()
        try:
            sock.sendall(json.dumps(request).encode("utf-8") + b"\n")
            response = json.loads(_read_message(sock).decode("utf-8"))
            return response  # type: ignore[no-any-return]
        finally:
            sock.close()

    def is_agent_running(self) -> bool:
        """Check if the agent answers a ping."""
        try:
            self.call("ping")
            return True
        except IPCError:
            return False
