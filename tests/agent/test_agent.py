"""Tests for agent wiring and IPC handlers."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest  # type: ignore[import-not-found]

from transmission_agent.agent.agent import AgentError, TransmissionAgent
from transmission_agent.agent.ipc import IPCServer
from transmission_agent.core.config import ConfigManager
from transmission_agent.core.models import SessionStats
from transmission_agent.rpc.client import TransmissionClient
from transmission_agent.rpc.errors import NetworkError


@pytest.fixture
def config(tmp_path: Path) -> ConfigManager:
    config = ConfigManager(tmp_path / "config.yml")
    config.set("notifications.enabled", False)
    return config


@pytest.fixture
def transmission():
    with patch("transmission_agent.agent.agent.TransmissionClient") as client_cls:
        client = Mock(spec=TransmissionClient)
        client.get_session_stats.return_value = SessionStats(activeTorrentCount=1)
        client_cls.return_value = client
        yield client


def make_agent(config: ConfigManager, tmp_path: Path) -> TransmissionAgent:
    return TransmissionAgent(
        config=config,
        state_file=tmp_path / "agent.json",
        ipc_server=Mock(spec=IPCServer),
        pid_file=tmp_path / "agent.pid",
    )


class TestAgentSetup:
    """Test agent construction."""

    def test_invalid_settings_rejected(self, config, tmp_path, transmission) -> None:
        config.set("activity_monitoring.enabled", True)

        with pytest.raises(AgentError, match="at least one process"):
            make_agent(config, tmp_path)

    def test_no_observer_without_monitoring(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        assert agent.observer is None
        assert agent.reconciler.monitoring_enabled is False

    def test_observer_with_monitoring(self, config, tmp_path, transmission) -> None:
        config.add_watched_process("game.exe")
        config.set("activity_monitoring.enabled", True)
        config.set("activity_monitoring.behavior", "auto_pause")

        agent = make_agent(config, tmp_path)

        assert agent.observer is not None
        assert agent.observer.watched_names == ["game.exe"]
        assert agent.controller.mode.value == "auto_pause"

    def test_register_ipc_handlers(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        agent._register_ipc_handlers()

        methods = {c.args[0] for c in agent.ipc_server.register_handler.call_args_list}
        assert methods == {"ping", "status", "toggle", "refresh", "stop"}


class TestIPCHandlers:
    """Test IPC handlers against a mocked daemon."""

    def test_ping(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        assert agent._handle_ping({})["pong"] is True

    def test_status(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        result = agent._handle_status({})

        assert result["endpoint"] == "http://localhost:9091/transmission/rpc"
        assert result["in_flight"] is False
        assert result["state"]["status"] == "disconnected"

    def test_refresh(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        result = agent._handle_refresh({})

        assert result == {"skipped": False, "status": "active"}

    def test_refresh_skipped_while_in_flight(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)
        agent.controller.try_acquire()

        result = agent._handle_refresh({})

        assert result["skipped"] is True
        transmission.get_session_stats.assert_not_called()

    def test_toggle_before_first_poll(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        result = agent._handle_toggle({})

        assert result["outcome"] == "not_connected"
        transmission.stop_all.assert_not_called()

    def test_toggle_after_poll(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)
        agent._handle_refresh({})
        transmission.get_session_stats.return_value = SessionStats(activeTorrentCount=0)

        result = agent._handle_toggle({})

        assert result == {"outcome": "paused", "status": "paused"}
        transmission.stop_all.assert_called_once()

    def test_toggle_failure(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)
        agent._handle_refresh({})
        transmission.stop_all.side_effect = NetworkError("gone")

        result = agent._handle_toggle({})

        assert result == {"outcome": "failed", "status": "disconnected"}

    def test_notifications_counted(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)

        agent.notifier.on_sent("t", "m", None)  # type: ignore[misc, arg-type]

        assert agent.state_manager.get().notifications_sent == 1

    def test_stop_cleans_up(self, config, tmp_path, transmission) -> None:
        agent = make_agent(config, tmp_path)
        agent._handle_refresh({})
        agent.pid_manager.write(12345)
        agent.running = True

        agent.stop()

        agent.ipc_server.stop.assert_called_once()
        transmission.close.assert_called_once()
        assert not (tmp_path / "agent.pid").exists()
        assert not (tmp_path / "agent.json").exists()
