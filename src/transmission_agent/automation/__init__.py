"""Automation features: activity observation and notifications."""

from transmission_agent.automation.activity_observer import (
    ActivityObserver,
    list_running_process_names,
    normalize_process_name,
)
from transmission_agent.automation.notifier import NotificationSeverity, Notifier

__all__ = [
    "ActivityObserver",
    "NotificationSeverity",
    "Notifier",
    "list_running_process_names",
    "normalize_process_name",
]
