"""Tests for the Transmission RPC client."""

import json
from typing import Any, Optional
from unittest.mock import Mock

import pytest  # type: ignore[import-not-found]
import requests

from transmission_agent.core.config import AgentSettings
from transmission_agent.rpc.client import SESSION_ID_HEADER, SessionState, TransmissionClient
from transmission_agent.rpc.errors import (
    DecodeError,
    NetworkError,
    ProtocolError,
    RPCError,
    RPCTimeoutError,
    SessionError,
)


def make_response(
    status_code: int = 200,
    body: Any = None,
    headers: Optional[dict[str, str]] = None,
    invalid_json: bool = False,
) -> Mock:
    """Build a fake requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    if invalid_json:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body if body is not None else {"result": "success", "arguments": {}}
    return response


def stats_body(active: int = 2) -> dict[str, Any]:
    return {
        "result": "success",
        "arguments": {"activeTorrentCount": active, "downloadSpeed": 1024, "uploadSpeed": 512},
    }


def sent_payload(session: Mock, call_index: int = -1) -> dict[str, Any]:
    return json.loads(session.post.call_args_list[call_index].kwargs["data"])


def sent_headers(session: Mock, call_index: int = -1) -> dict[str, str]:
    return session.post.call_args_list[call_index].kwargs["headers"]


@pytest.fixture
def session() -> Mock:
    """Fake HTTP session."""
    fake = Mock(spec=requests.Session)
    fake.headers = {}
    return fake


@pytest.fixture
def client(session: Mock) -> TransmissionClient:
    return TransmissionClient(AgentSettings(), session=session)


class TestPayload:
    """Test request body construction."""

    def test_none_arguments_are_omitted(self) -> None:
        """Test that 'apply to all' arguments are left out, not sent as null."""
        payload = TransmissionClient.build_payload("torrent-stop", {"ids": None})

        assert payload == {"method": "torrent-stop", "arguments": {}}

    def test_empty_list_is_kept(self) -> None:
        """Test that an explicit empty selection is not confused with 'all'."""
        payload = TransmissionClient.build_payload("torrent-stop", {"ids": []})

        assert payload["arguments"] == {"ids": []}

    def test_no_arguments(self) -> None:
        payload = TransmissionClient.build_payload("session-stats")

        assert payload == {"method": "session-stats", "arguments": {}}


class TestClientSetup:
    """Test client configuration."""

    def test_url_from_settings(self, session: Mock) -> None:
        settings = AgentSettings(host="nas.local", port=9092, use_https=True)
        client = TransmissionClient(settings, session=session)

        assert client.url == "https://nas.local:9092/transmission/rpc"

    def test_basic_auth_when_username_set(self, session: Mock) -> None:
        settings = AgentSettings(username="admin", password="secret")
        TransmissionClient(settings, session=session)

        assert session.auth == ("admin", "secret")

    def test_no_auth_without_username(self, session: Mock) -> None:
        session.auth = None
        TransmissionClient(AgentSettings(password="ignored"), session=session)

        assert session.auth is None

    def test_initial_session_state(self, client: TransmissionClient) -> None:
        assert client.session_id is None
        assert client.session_state == SessionState.NO_CREDENTIAL

    def test_timeout_passed_to_requests(self, session: Mock) -> None:
        session.post.return_value = make_response(body=stats_body())
        client = TransmissionClient(AgentSettings(timeout=7), session=session)

        client.get_session_stats()

        assert session.post.call_args.kwargs["timeout"] == 7


class TestSessionHandshake:
    """Test X-Transmission-Session-Id handling."""

    def test_conflict_then_success(self, client: TransmissionClient, session: Mock) -> None:
        """Test 409 with a session id is retried once and succeeds."""
        session.post.side_effect = [
            make_response(409, headers={SESSION_ID_HEADER: "abc123"}),
            make_response(body=stats_body(3)),
        ]

        stats = client.get_session_stats()

        assert stats.active_torrent_count == 3
        assert session.post.call_count == 2
        assert SESSION_ID_HEADER not in sent_headers(session, 0)
        assert sent_headers(session, 1)[SESSION_ID_HEADER] == "abc123"
        assert sent_payload(session, 0) == sent_payload(session, 1)
        assert client.session_state == SessionState.HAVE_CREDENTIAL

    def test_session_id_attached_to_later_calls(
        self, client: TransmissionClient, session: Mock
    ) -> None:
        """Test the acquired session id is sent on every later call."""
        session.post.side_effect = [
            make_response(409, headers={SESSION_ID_HEADER: "abc123"}),
            make_response(body=stats_body()),
            make_response(),
            make_response(),
        ]

        client.get_session_stats()
        client.stop_all()
        client.start_all()

        for index in (1, 2, 3):
            assert sent_headers(session, index)[SESSION_ID_HEADER] == "abc123"

    def test_second_conflict_raises_session_error(
        self, client: TransmissionClient, session: Mock
    ) -> None:
        """Test a 409 on the retried call fails without further retries."""
        session.post.side_effect = [
            make_response(409, headers={SESSION_ID_HEADER: "first"}),
            make_response(409, headers={SESSION_ID_HEADER: "second"}),
            make_response(body=stats_body()),
        ]

        with pytest.raises(SessionError):
            client.get_session_stats()

        assert session.post.call_count == 2

    def test_conflict_without_header_is_protocol_error(
        self, client: TransmissionClient, session: Mock
    ) -> None:
        session.post.return_value = make_response(409)

        with pytest.raises(ProtocolError) as exc_info:
            client.get_session_stats()

        assert exc_info.value.status_code == 409
        assert session.post.call_count == 1

    def test_stale_session_id_is_replaced(
        self, client: TransmissionClient, session: Mock
    ) -> None:
        """Test a daemon restart (stale id) is handled by the single retry."""
        session.post.side_effect = [
            make_response(409, headers={SESSION_ID_HEADER: "old"}),
            make_response(body=stats_body()),
            make_response(409, headers={SESSION_ID_HEADER: "new"}),
            make_response(body=stats_body()),
        ]

        client.get_session_stats()
        client.get_session_stats()

        assert sent_headers(session, 2)[SESSION_ID_HEADER] == "old"
        assert sent_headers(session, 3)[SESSION_ID_HEADER] == "new"
        assert client.session_id == "new"


class TestErrors:
    """Test error classification."""

    def test_http_error_status(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(401)

        with pytest.raises(ProtocolError) as exc_info:
            client.get_session_stats()

        assert exc_info.value.status_code == 401

    def test_timeout(self, client: TransmissionClient, session: Mock) -> None:
        session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(RPCTimeoutError):
            client.get_session_stats()

    def test_timeout_is_builtin_timeout_error(self) -> None:
        assert issubclass(RPCTimeoutError, TimeoutError)
        assert issubclass(RPCTimeoutError, RPCError)

    def test_connection_error(self, client: TransmissionClient, session: Mock) -> None:
        session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(NetworkError):
            client.get_session_stats()

    def test_malformed_json(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(invalid_json=True)

        with pytest.raises(DecodeError):
            client.get_session_stats()

    def test_missing_stats_field(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(
            body={"result": "success", "arguments": {"downloadSpeed": 1}}
        )

        with pytest.raises(DecodeError):
            client.get_session_stats()

    def test_non_object_body(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(body=["not", "an", "object"])

        with pytest.raises(DecodeError):
            client.call("session-stats")

    def test_failed_result(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(
            body={"result": "no such method", "arguments": {}}
        )

        with pytest.raises(ProtocolError):
            client.call("torrent-frobnicate")

    def test_errors_are_not_retried(self, client: TransmissionClient, session: Mock) -> None:
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(NetworkError):
            client.stop_all()

        assert session.post.call_count == 1


class TestOperations:
    """Test RPC operations."""

    def test_get_session_stats(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(body=stats_body(2))

        stats = client.get_session_stats()

        assert stats.active_torrent_count == 2
        assert stats.download_speed == 1024
        assert stats.upload_speed == 512
        assert sent_payload(session) == {"method": "session-stats", "arguments": {}}

    def test_get_torrents(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(
            body={
                "result": "success",
                "arguments": {"torrents": [{"id": 1, "status": 4}, {"id": 2, "status": 0}]},
            }
        )

        torrents = client.get_torrents()

        assert [(t.id, t.status) for t in torrents] == [(1, 4), (2, 0)]
        assert sent_payload(session) == {
            "method": "torrent-get",
            "arguments": {"fields": ["id", "status"]},
        }

    def test_get_torrents_missing_list(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(body={"result": "success", "arguments": {}})

        with pytest.raises(DecodeError):
            client.get_torrents()

    def test_start_all_omits_ids(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response()

        client.start_all()

        assert sent_payload(session) == {"method": "torrent-start", "arguments": {}}

    def test_stop_all_omits_ids(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response()

        client.stop_all()

        assert sent_payload(session) == {"method": "torrent-stop", "arguments": {}}

    def test_context_manager_closes_session(self, session: Mock) -> None:
        with TransmissionClient(AgentSettings(), session=session):
            pass

        session.close.assert_called_once()


class TestConnectionProbe:
    """Test test_connection()."""

    def test_success(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(body=stats_body(0))

        assert client.test_connection() is True
        assert sent_payload(session)["method"] == "session-stats"

    @pytest.mark.parametrize(
        "failure",
        [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
        ],
    )
    def test_transport_failures(
        self, client: TransmissionClient, session: Mock, failure: Exception
    ) -> None:
        session.post.side_effect = failure

        assert client.test_connection() is False

    def test_http_failure(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(500)

        assert client.test_connection() is False

    def test_session_failure(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(409, headers={SESSION_ID_HEADER: "x"})

        assert client.test_connection() is False

    def test_decode_failure(self, client: TransmissionClient, session: Mock) -> None:
        session.post.return_value = make_response(invalid_json=True)

        assert client.test_connection() is False
