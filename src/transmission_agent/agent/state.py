"""Agent state: published daemon status, auto-pause attribution, snapshots."""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import psutil  # type: ignore[import-untyped]

from transmission_agent import __version__
from transmission_agent.core.models import AutoPauseAttribution, DaemonStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[DaemonStatus], None]


@dataclass
class AgentState:
    """Agent state information."""

    # Agent metadata
    started_at: str
    pid: int
    version: str = __version__

    # Daemon status (latest poll)
    status: str = DaemonStatus.DISCONNECTED.value
    last_poll: Optional[str] = None
    last_error: Optional[str] = None
    active_torrents: Optional[int] = None
    download_speed: Optional[int] = None
    upload_speed: Optional[int] = None

    # Activity monitoring
    monitoring_enabled: bool = False
    policy_mode: Optional[str] = None
    current_activity: Optional[str] = None
    auto_paused: bool = False
    auto_paused_by: Optional[str] = None

    # Statistics
    polls_count: int = 0
    failed_polls_count: int = 0
    toggles_count: int = 0
    notifications_sent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentState":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


class StateManager:
    """Owns the agent's shared mutable state.

    The daemon status is written only by the reconciler (``publish_status``);
    the auto-pause attribution only by the intent controller. Every change is
    mirrored to a JSON snapshot so other processes can read it.
    """

    def __init__(self, state_file: Optional[Path] = None, persist: bool = True):
        """Initialize state manager.

        Args:
            state_file: Path to snapshot file (default: ~/.transmission-agent/state/agent.json)
            persist: Write snapshots to disk
        """
        if state_file is None and persist:
            state_dir = Path.home() / ".transmission-agent" / "state"
            state_dir.mkdir(parents=True, exist_ok=True)
            state_file = state_dir / "agent.json"

        self.state_file = state_file
        self.persist = persist and state_file is not None
        self._state = AgentState(started_at=datetime.now().isoformat(), pid=os.getpid())
        self._status = DaemonStatus.DISCONNECTED
        self._attribution = AutoPauseAttribution()
        self._listeners: List[StatusListener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Daemon status
    # ------------------------------------------------------------------

    @property
    def status(self) -> DaemonStatus:
        with self._lock:
            return self._status

    def add_status_listener(self, listener: StatusListener) -> None:
        """Register a callback invoked with every published status."""
        self._listeners.append(listener)

    def publish_status(self, status: DaemonStatus, **details: Any) -> None:
        """Publish the daemon status and notify listeners.

        Args:
            status: New status
            **details: Extra state fields to record with it (e.g. active_torrents)
        """
        with self._lock:
            previous = self._status
            self._status = status
            self._state.status = status.value
            self._apply(details)
            self._save()

        if previous != status:
            logger.info(f"Transmission status: {previous.label} -> {status.label}")

        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"Status listener failed: {e}")

    # ------------------------------------------------------------------
    # Auto-pause attribution
    # ------------------------------------------------------------------

    @property
    def attribution(self) -> AutoPauseAttribution:
        """Copy of the current auto-pause attribution."""
        with self._lock:
            return AutoPauseAttribution(self._attribution.active, self._attribution.activity)

    def set_attribution(self, activity: str) -> None:
        with self._lock:
            self._attribution.set(activity)
            self._sync_attribution()

    def clear_attribution(self) -> None:
        with self._lock:
            self._attribution.clear()
            self._sync_attribution()

    def _sync_attribution(self) -> None:
        self._state.auto_paused = self._attribution.active
        self._state.auto_paused_by = self._attribution.activity
        self._save()

    # ------------------------------------------------------------------
    # Generic fields
    # ------------------------------------------------------------------

    def update(self, **kwargs: Any) -> None:
        """Update state fields.

        Args:
            **kwargs: Fields to update
        """
        with self._lock:
            self._apply(kwargs)
            self._save()

    def increment(self, counter: str) -> None:
        """Increment an integer statistics field."""
        with self._lock:
            setattr(self._state, counter, getattr(self._state, counter) + 1)
            self._save()

    def _apply(self, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if hasattr(self._state, key):
                setattr(self._state, key, value)
            else:
                logger.warning(f"Unknown state field: {key}")

    def get(self) -> AgentState:
        with self._lock:
            return AgentState.from_dict(self._state.to_dict())

    def get_dict(self) -> Dict[str, Any]:
        with self._lock:
            return self._state.to_dict()

    # ------------------------------------------------------------------
    # Snapshot file
    # ------------------------------------------------------------------

    def _save(self) -> None:
        """Write the snapshot (assumes lock is held)."""
        if not self.persist or self.state_file is None:
            return

        try:
            temp_file = self.state_file.with_suffix(".tmp")
            with open(temp_file, "w") as f:
                json.dump(self._state.to_dict(), f, indent=2)
            temp_file.replace(self.state_file)
        except OSError as e:
            logger.error(f"Failed to save agent state: {e}")

    def load_snapshot(self) -> Optional[AgentState]:
        """Read the snapshot written by a running agent.

        Returns:
            Snapshot or None if missing or unreadable
        """
        if self.state_file is None or not self.state_file.exists():
            return None

        try:
            with open(self.state_file, "r") as f:
                return AgentState.from_dict(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load agent state: {e}")
            return None

    def clear(self) -> None:
        """Delete the snapshot file."""
        with self._lock:
            if self.state_file is not None and self.state_file.exists():
                self.state_file.unlink()
                logger.info("Agent state cleared")


class PIDFileManager:
    """Manages the agent PID file."""

    def __init__(self, pid_file: Path):
        self.pid_file = pid_file
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)

    def write(self, pid: int) -> None:
        try:
            with open(self.pid_file, "w") as f:
                f.write(str(pid))
            logger.debug(f"PID {pid} written to {self.pid_file}")
        except OSError as e:
            logger.error(f"Failed to write PID file: {e}")

    def read(self) -> Optional[int]:
        """Read PID from file.

        Returns:
            PID or None if file doesn't exist or is invalid
        """
        if not self.pid_file.exists():
            return None

        try:
            with open(self.pid_file, "r") as f:
                return int(f.read().strip())
        except (ValueError, OSError) as e:
            logger.error(f"Failed to read PID file: {e}")
            return None

    def remove(self) -> None:
        if self.pid_file.exists():
            try:
                self.pid_file.unlink()
                logger.debug(f"PID file {self.pid_file} removed")
            except OSError as e:
                logger.error(f"Failed to remove PID file: {e}")

    def is_running(self) -> bool:
        """Check if the process recorded in the PID file is alive."""
        pid = self.read()
        if pid is None:
            return False
        return bool(psutil.pid_exists(pid))
