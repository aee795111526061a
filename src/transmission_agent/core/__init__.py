"""Core configuration and data models."""

from transmission_agent.core.config import AgentSettings, ConfigManager, validate_settings
from transmission_agent.core.models import (
    ActivityChange,
    ActivityEvent,
    AutoPauseAttribution,
    DaemonStatus,
    PolicyMode,
    SessionStats,
    ToggleOutcome,
    TorrentInfo,
)

__all__ = [
    "ActivityChange",
    "ActivityEvent",
    "AgentSettings",
    "AutoPauseAttribution",
    "ConfigManager",
    "DaemonStatus",
    "PolicyMode",
    "SessionStats",
    "ToggleOutcome",
    "TorrentInfo",
    "validate_settings",
]
