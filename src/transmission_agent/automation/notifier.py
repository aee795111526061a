"""Desktop notifications for the Transmission agent."""

import logging
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

APP_NAME = "Transmission Agent"


class NotificationSeverity(Enum):
    """Severity of a notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notifier:
    """Send desktop notifications."""

    def __init__(
        self,
        enabled: bool = True,
        backend: str = "auto",
        on_sent: Optional[Callable[[str, str, NotificationSeverity], None]] = None,
    ):
        """Initialize notifier.

        Args:
            enabled: Whether notifications are shown
            backend: Notification backend ('auto', 'plyer', 'none')
            on_sent: Called after each notification is handed to the backend
        """
        self.enabled = enabled
        self.backend = backend
        self.on_sent = on_sent
        self._notifier = self._init_notifier()

    def _init_notifier(self) -> Any:
        """Initialize platform-specific notifier.

        Returns:
            Notification handler or None if not available
        """
        if not self.enabled or self.backend == "none":
            return None

        try:
            from plyer import notification  # type: ignore[import-not-found]

            return notification  # type: ignore[no-any-return]
        except ImportError:
            logger.info("plyer not installed, desktop notifications unavailable")
            return None

    def notify(
        self,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
        timeout: int = 3,
    ) -> None:
        """Send a desktop notification.

        Args:
            title: Notification title
            message: Notification message
            severity: Notification severity
            timeout: Display duration in seconds
        """
        log = logger.warning if severity == NotificationSeverity.ERROR else logger.info
        log(f"{title}: {message}")

        if not self.enabled or not self._notifier:
            return

        try:
            self._notifier.notify(  # type: ignore[attr-defined]
                title=title,
                message=message,
                app_name=APP_NAME,
                timeout=timeout,
            )
        except Exception as e:
            # Notifications are non-critical
            logger.debug(f"Notification backend failed: {e}")
            return

        if self.on_sent:
            self.on_sent(title, message, severity)

    def notify_toggle(self, paused: bool) -> None:
        """Notify that all torrents were paused or resumed by the user."""
        self.notify(
            title=APP_NAME,
            message="All torrents paused" if paused else "All torrents resumed",
            timeout=2,
        )

    def notify_not_connected(self) -> None:
        self.notify(
            title=APP_NAME,
            message="Cannot toggle: Not connected to Transmission server",
            severity=NotificationSeverity.ERROR,
        )

    def notify_error(self, error: Exception) -> None:
        self.notify(
            title=APP_NAME,
            message=f"Error: {error}",
            severity=NotificationSeverity.ERROR,
        )

    def notify_auto_paused(self, activity: str) -> None:
        self.notify(
            title="Game Detected",
            message=f"{activity} started. Torrents automatically paused.",
        )

    def notify_auto_pause_failed(self, error: Exception) -> None:
        self.notify(
            title="Auto-Pause Failed",
            message=f"Could not pause torrents: {error}",
            severity=NotificationSeverity.ERROR,
        )

    def notify_activity_started(self, activity: str) -> None:
        """Suggest pausing because a watched activity started (notify-only mode)."""
        self.notify(
            title="Game Detected",
            message=f"{activity} is running. You may want to pause torrents to reduce lag.",
            severity=NotificationSeverity.WARNING,
            timeout=5,
        )

    def notify_auto_resumed(self, activity: str) -> None:
        self.notify(
            title="Game Closed",
            message=f"{activity} has closed. Torrents automatically resumed.",
        )

    def notify_auto_resume_failed(self, error: Exception) -> None:
        self.notify(
            title="Auto-Resume Failed",
            message=f"Could not resume torrents: {error}",
            severity=NotificationSeverity.ERROR,
        )

    def notify_activity_stopped(self, activity: str) -> None:
        self.notify(
            title="Game Closed",
            message=f"{activity} has closed.",
        )
