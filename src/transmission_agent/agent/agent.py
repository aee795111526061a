"""Main agent implementation."""

import logging
import os
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from transmission_agent.agent.controller import IntentController
from transmission_agent.agent.ipc import IPCError, IPCServer
from transmission_agent.agent.platform import (
    can_daemonize,
    get_log_file_path,
    get_pid_file_path,
)
from transmission_agent.agent.reconciler import Reconciler, Scheduler
from transmission_agent.agent.state import PIDFileManager, StateManager
from transmission_agent.automation import ActivityObserver, Notifier, NotificationSeverity
from transmission_agent.core.config import AgentSettings, ConfigManager, validate_settings
from transmission_agent.core.models import DaemonStatus
from transmission_agent.rpc.client import TransmissionClient

logger = logging.getLogger(__name__)


class AgentError(Exception):
    """Agent lifecycle error."""

    pass


class TransmissionAgent:
    """Transmission background agent.

    Provides:
    - Periodic reconciliation of the daemon's run state
    - Pause/resume when watched processes start and stop
    - IPC interface for CLI toggles and status
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        state_file: Optional[Path] = None,
        ipc_server: Optional[IPCServer] = None,
        pid_file: Optional[Path] = None,
    ):
        """Initialize agent.

        Args:
            config: Configuration manager (default: load from default location)
            state_file: Snapshot file (default: ~/.transmission-agent/state/agent.json)
            ipc_server: IPC server (default: platform-specific socket)
            pid_file: PID file path (default: platform-specific)

        Raises:
            AgentError: If the configuration is unusable
        """
        self.config = config or ConfigManager()
        self.settings = AgentSettings.from_config(self.config)

        problems = validate_settings(self.settings)
        if problems:
            raise AgentError("Invalid configuration: " + " ".join(problems))

        self.state_manager = StateManager(state_file)
        self.pid_manager = PIDFileManager(pid_file or get_pid_file_path())
        self.ipc_server = ipc_server or IPCServer()

        self.client = TransmissionClient(self.settings)
        self.notifier = Notifier(
            enabled=self.settings.notifications_enabled and not self.settings.disable_notifications,
            backend=self.settings.notification_backend,
            on_sent=self._on_notification_sent,
        )

        self.observer: Optional[ActivityObserver] = None
        if self.settings.monitoring_active:
            self.observer = ActivityObserver(self.settings.watched_processes)

        self.controller = IntentController(
            self.client,
            self.state_manager,
            self.notifier,
            mode=self.settings.policy_mode,
            observer=self.observer,
        )
        self.reconciler = Reconciler(
            self.client,
            self.controller,
            self.state_manager,
            observer=self.observer,
            monitoring_enabled=self.settings.monitoring_active,
        )
        self.scheduler = Scheduler(self.reconciler, self.settings.poll_interval)

        self.running = False
        self._shutdown_event = threading.Event()

    def start(self, foreground: bool = False) -> None:
        """Start the agent and block until it is stopped.

        Args:
            foreground: Run in foreground (don't daemonize)

        Raises:
            AgentError: If the agent is already running or fails to start
        """
        if self.pid_manager.is_running():
            raise AgentError("Agent is already running")

        self._setup_logging()
        logger.info(f"Starting Transmission agent for {self.settings.base_url}")

        if not foreground:
            if not can_daemonize():
                raise AgentError("Background mode is not supported here; use --foreground")
            self._daemonize()

        self.pid_manager.write(os.getpid())
        self.state_manager.update(
            pid=os.getpid(),
            started_at=datetime.now().isoformat(),
            monitoring_enabled=self.settings.monitoring_active,
            policy_mode=self.settings.policy_mode.value if self.settings.monitoring_active else None,
        )
        self.state_manager.add_status_listener(self._on_status)

        self._setup_signal_handlers()
        self._register_ipc_handlers()

        try:
            self.ipc_server.start()
        except (OSError, IPCError) as e:
            logger.error(f"Failed to start IPC server: {e}")
            self.cleanup()
            raise AgentError(f"Failed to start IPC server: {e}")

        self.running = True
        self.scheduler.start()
        logger.info(f"Agent started (PID: {os.getpid()})")

        self._shutdown_event.wait()

    def stop(self) -> None:
        """Stop the agent gracefully."""
        if not self.running:
            return

        logger.info("Stopping agent...")
        self.running = False

        self.ipc_server.stop()
        self.scheduler.stop()
        self.client.close()
        self.cleanup()
        self._shutdown_event.set()

        logger.info("Agent stopped")

    def cleanup(self) -> None:
        """Clean up agent resources."""
        self.pid_manager.remove()
        self.state_manager.clear()

    def _setup_logging(self) -> None:
        log_level = getattr(logging, self.settings.log_level, logging.INFO)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        file_handler = logging.FileHandler(get_log_file_path())
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Console handler (for foreground mode)
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        # Per-request noise from the HTTP stack
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    def _daemonize(self) -> None:
        """Daemonize the process (Unix double-fork)."""
        try:
            pid = os.fork()
            if pid > 0:
                sys.exit(0)

            os.chdir("/")
            os.setsid()
            os.umask(0o077)

            pid = os.fork()
            if pid > 0:
                sys.exit(0)

            sys.stdout.flush()
            sys.stderr.flush()
            with open(os.devnull, "r") as devnull:
                os.dup2(devnull.fileno(), sys.stdin.fileno())
            with open(os.devnull, "a+") as devnull:
                os.dup2(devnull.fileno(), sys.stdout.fileno())
                os.dup2(devnull.fileno(), sys.stderr.fileno())

        except OSError as e:
            logger.error(f"Failed to daemonize: {e}")
            sys.exit(1)

    def _setup_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        threading.Thread(target=self.stop, daemon=True).start()

    def _on_status(self, status: DaemonStatus) -> None:
        """Indicator hook; the presentation layer attaches here."""
        logger.debug(f"Indicator: {status.label}")

    def _on_notification_sent(
        self, title: str, message: str, severity: NotificationSeverity
    ) -> None:
        self.state_manager.increment("notifications_sent")

    def _register_ipc_handlers(self) -> None:
        self.ipc_server.register_handler("ping", self._handle_ping)
        self.ipc_server.register_handler("status", self._handle_status)
        self.ipc_server.register_handler("toggle", self._handle_toggle)
        self.ipc_server.register_handler("refresh", self._handle_refresh)
        self.ipc_server.register_handler("stop", self._handle_stop)

    def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"pong": True, "timestamp": datetime.now().isoformat()}

    def _handle_status(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Handle status request.

        Returns:
            Agent status with the latest state snapshot
        """
        return {
            "running": self.running,
            "endpoint": self.settings.base_url,
            "in_flight": self.controller.in_flight,
            "state": self.state_manager.get_dict(),
        }

    def _handle_toggle(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Handle a user toggle request.

        Returns:
            Outcome of the toggle and the status published afterwards
        """
        outcome = self.controller.toggle()
        return {"outcome": outcome.value, "status": self.state_manager.status.value}

    def _handle_refresh(self, params: Dict[str, Any]) -> Dict[str, Any]:
        status = self.reconciler.tick()
        return {
            "skipped": status is None,
            "status": self.state_manager.status.value,
        }

    def _handle_stop(self, params: Dict[str, Any]) -> Dict[str, Any]:
        # Stop in a separate thread so the IPC response goes out first
        threading.Thread(target=self.stop, daemon=True).start()
        return {"stopping": True}
