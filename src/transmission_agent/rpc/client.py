"""HTTP client for the Transmission RPC protocol.

Transmission guards its RPC endpoint with a session id: the first request (or
any request carrying a stale id) is answered with HTTP 409 and a fresh id in
the ``X-Transmission-Session-Id`` header. The client stores that id and resends
the same request exactly once.
"""

import json
import logging
from enum import Enum
from typing import Any, Optional

import requests
from pydantic import ValidationError  # type: ignore[import-untyped]

from transmission_agent.core.config import AgentSettings
from transmission_agent.core.models import SessionStats, TorrentInfo
from transmission_agent.rpc.errors import (
    DecodeError,
    NetworkError,
    ProtocolError,
    RPCError,
    RPCTimeoutError,
    SessionError,
)

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = "X-Transmission-Session-Id"


class SessionState(Enum):
    """Whether the client holds a session id."""

    NO_CREDENTIAL = "no_credential"
    HAVE_CREDENTIAL = "have_credential"


class TransmissionClient:
    """Talks to a single Transmission daemon.

    One call at a time per instance; the agent serializes its callers.
    """

    def __init__(self, settings: AgentSettings, session: Optional[requests.Session] = None):
        """Initialize client.

        Args:
            settings: Agent settings (endpoint, credentials, timeout)
            session: HTTP session to use (default: a new requests.Session)
        """
        self.settings = settings
        self.url = settings.base_url
        self.timeout = settings.timeout
        self._session = session or requests.Session()
        self._session_id: Optional[str] = None

        if settings.username:
            self._session.auth = (settings.username, settings.password or "")

        self._session.headers.update({"Content-Type": "application/json"})

    @property
    def session_id(self) -> Optional[str]:
        """Session id currently attached to requests."""
        return self._session_id

    @property
    def session_state(self) -> SessionState:
        if self._session_id:
            return SessionState.HAVE_CREDENTIAL
        return SessionState.NO_CREDENTIAL

    def __enter__(self) -> "TransmissionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._session.close()

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    @staticmethod
    def build_payload(method: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Build a request body.

        Arguments set to None are dropped: an absent ``ids`` means "all torrents",
        which is not the same as an empty list.
        """
        args = {k: v for k, v in (arguments or {}).items() if v is not None}
        return {"method": method, "arguments": args}

    def call(self, method: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Call an RPC method.

        Args:
            method: Transmission method name (e.g. 'session-stats')
            arguments: Method arguments; None values are omitted

        Returns:
            The ``arguments`` object of the response

        Raises:
            RPCError: Any of NetworkError, RPCTimeoutError, ProtocolError,
                SessionError or DecodeError
        """
        payload = self.build_payload(method, arguments)

        response = self._attempt(payload)
        if response.status_code == 409:
            self._take_session_id(response)
            logger.debug(f"Session id acquired, retrying {method}")
            response = self._attempt(payload)
            if response.status_code == 409:
                raise SessionError(
                    f"Transmission rejected the session id twice for '{method}'"
                )

        return self._decode(method, response)

    def _attempt(self, payload: dict[str, Any]) -> requests.Response:
        """Send one request with the current session id."""
        headers = {}
        if self._session_id:
            headers[SESSION_ID_HEADER] = self._session_id

        try:
            return self._session.post(
                self.url,
                data=json.dumps(payload),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RPCTimeoutError(
                f"Request timeout - Transmission server did not respond within {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise NetworkError(f"Network error: {e}") from e

    def _take_session_id(self, response: requests.Response) -> None:
        session_id = response.headers.get(SESSION_ID_HEADER)
        if not session_id:
            raise ProtocolError(
                "Failed to obtain session token from Transmission server", status_code=409
            )
        self._session_id = session_id

    def _decode(self, method: str, response: requests.Response) -> dict[str, Any]:
        if not 200 <= response.status_code < 300:
            raise ProtocolError(
                f"Unexpected HTTP status {response.status_code} for '{method}'",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid response format: {e}") from e

        if not isinstance(body, dict):
            raise DecodeError("Invalid response format: expected a JSON object")

        result = body.get("result")
        if result != "success":
            raise ProtocolError(
                f"Transmission returned '{result}' for '{method}'",
                status_code=response.status_code,
            )

        arguments = body.get("arguments", {})
        if not isinstance(arguments, dict):
            raise DecodeError("Invalid response format: 'arguments' is not an object")
        return arguments

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_session_stats(self) -> SessionStats:
        """Get session-wide statistics including the active torrent count."""
        arguments = self.call("session-stats")
        try:
            return SessionStats.model_validate(arguments)
        except ValidationError as e:
            raise DecodeError(f"Invalid session-stats response: {e}") from e

    def get_torrents(self) -> list[TorrentInfo]:
        """Get the id and status of every torrent."""
        arguments = self.call("torrent-get", {"fields": ["id", "status"]})
        torrents = arguments.get("torrents")
        if not isinstance(torrents, list):
            raise DecodeError("Invalid torrent-get response: missing 'torrents'")
        try:
            return [TorrentInfo.model_validate(t) for t in torrents]
        except ValidationError as e:
            raise DecodeError(f"Invalid torrent-get response: {e}") from e

    def start_all(self) -> None:
        """Start all torrents."""
        self.call("torrent-start", {"ids": None})

    def stop_all(self) -> None:
        """Stop all torrents."""
        self.call("torrent-stop", {"ids": None})

    def test_connection(self) -> bool:
        """Check that the daemon answers a session-stats call.

        Returns:
            True if the call succeeded, False on any RPC error
        """
        try:
            self.get_session_stats()
            return True
        except RPCError as e:
            logger.info(f"Connection test failed: {e}")
            return False
