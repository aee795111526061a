"""Core data models for the Transmission agent."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field  # type: ignore[import-untyped]


class DaemonStatus(Enum):
    """Aggregate run state of the remote Transmission daemon."""

    DISCONNECTED = "disconnected"
    ACTIVE = "active"
    PAUSED = "paused"

    @property
    def label(self) -> str:
        """Human-readable indicator text."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    DaemonStatus.ACTIVE: "Active (Downloading)",
    DaemonStatus.PAUSED: "Paused",
    DaemonStatus.DISCONNECTED: "Disconnected",
}


class PolicyMode(Enum):
    """What to do when a watched activity starts or stops."""

    NOTIFY_ONLY = "notify_only"
    AUTO_PAUSE = "auto_pause"


class ActivityChange(Enum):
    """Transition reported by the activity observer."""

    NO_CHANGE = "no_change"
    STARTED = "started"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ActivityEvent:
    """Result of a single activity poll.

    Attributes:
        change: Kind of transition
        name: Configured process name the transition refers to (None for NO_CHANGE)
    """

    change: ActivityChange
    name: Optional[str] = None

    @classmethod
    def no_change(cls) -> "ActivityEvent":
        return cls(ActivityChange.NO_CHANGE)

    @classmethod
    def started(cls, name: str) -> "ActivityEvent":
        return cls(ActivityChange.STARTED, name)

    @classmethod
    def stopped(cls, name: str) -> "ActivityEvent":
        return cls(ActivityChange.STOPPED, name)


class ToggleOutcome(Enum):
    """Result of a user toggle request."""

    PAUSED = "paused"
    RESUMED = "resumed"
    BUSY = "busy"
    NOT_CONNECTED = "not_connected"
    FAILED = "failed"


@dataclass
class AutoPauseAttribution:
    """Records whether the current paused state was caused by policy.

    Attributes:
        active: True while torrents are paused because a watched activity started
        activity: Name of the activity that triggered the pause
    """

    active: bool = False
    activity: Optional[str] = None

    def set(self, activity: str) -> None:
        self.active = True
        self.activity = activity

    def clear(self) -> None:
        self.active = False
        self.activity = None


# ============================================================================
# Wire models (Transmission RPC responses)
# ============================================================================


class SessionStats(BaseModel):
    """Arguments of a ``session-stats`` response."""

    active_torrent_count: int = Field(alias="activeTorrentCount")
    download_speed: int = Field(default=0, alias="downloadSpeed")
    upload_speed: int = Field(default=0, alias="uploadSpeed")
    paused_torrent_count: Optional[int] = Field(default=None, alias="pausedTorrentCount")
    torrent_count: Optional[int] = Field(default=None, alias="torrentCount")

    model_config = {"populate_by_name": True}


class TorrentInfo(BaseModel):
    """Minimal per-torrent status returned by ``torrent-get``."""

    id: int
    status: int
