"""Intent controller: user toggles and activity-driven pause/resume."""

import logging
import threading
from typing import Callable, Optional

from transmission_agent.agent.state import StateManager
from transmission_agent.automation.activity_observer import ActivityObserver
from transmission_agent.automation.notifier import Notifier
from transmission_agent.core.models import DaemonStatus, PolicyMode, ToggleOutcome
from transmission_agent.rpc.client import TransmissionClient
from transmission_agent.rpc.errors import RPCError

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Optional[DaemonStatus]]


class IntentController:
    """Apply run-state changes to the Transmission daemon one at a time.

    The intent lock is shared with the reconciler: whoever holds it owns the
    agent state. A user toggle that finds the lock held is rejected, never
    queued. Activity handlers are invoked by the reconciler while it holds
    the lock.

    The auto-pause attribution in the state manager records whether the
    current pause was caused by a watched activity. Only that flag decides
    whether an activity stop may resume torrents.
    """

    def __init__(
        self,
        client: TransmissionClient,
        state: StateManager,
        notifier: Notifier,
        mode: PolicyMode = PolicyMode.NOTIFY_ONLY,
        observer: Optional[ActivityObserver] = None,
    ):
        """Initialize controller.

        Args:
            client: Transmission RPC client
            state: Shared agent state
            notifier: Notification sink
            mode: Policy for watched activities
            observer: Activity observer, consulted for the current activity
        """
        self.client = client
        self.state = state
        self.notifier = notifier
        self.mode = mode
        self.observer = observer
        self._intent_lock = threading.Lock()
        self._refresh: Optional[RefreshCallback] = None

    # ------------------------------------------------------------------
    # Intent lock
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        """True while a tick or an intent owns the agent state."""
        return self._intent_lock.locked()

    def try_acquire(self) -> bool:
        """Take the intent lock without waiting."""
        return self._intent_lock.acquire(blocking=False)

    def release(self) -> None:
        self._intent_lock.release()

    def set_refresh_callback(self, refresh: RefreshCallback) -> None:
        """Set the out-of-band status refresh run after each applied intent."""
        self._refresh = refresh

    def _refresh_status(self) -> None:
        if self._refresh is not None:
            self._refresh()

    # ------------------------------------------------------------------
    # User toggle
    # ------------------------------------------------------------------

    def toggle(self) -> ToggleOutcome:
        """Pause all torrents if active, resume them if paused.

        Returns:
            What happened; BUSY if another intent owns the state
        """
        if not self.try_acquire():
            logger.info("Toggle ignored: another operation is in progress")
            return ToggleOutcome.BUSY

        try:
            return self._toggle()
        finally:
            self.release()

    def _toggle(self) -> ToggleOutcome:
        status = self.state.status
        if status == DaemonStatus.DISCONNECTED:
            self.notifier.notify_not_connected()
            return ToggleOutcome.NOT_CONNECTED

        pausing = status == DaemonStatus.ACTIVE
        try:
            if pausing:
                self.client.stop_all()
            else:
                self.client.start_all()
        except RPCError as e:
            logger.error(f"Toggle failed: {e}")
            self.notifier.notify_error(e)
            self.state.publish_status(DaemonStatus.DISCONNECTED, last_error=str(e))
            return ToggleOutcome.FAILED

        self.state.increment("toggles_count")
        self._refresh_status()

        attribution = self.state.attribution
        if pausing and attribution.active:
            # The user now owns the paused state; don't auto-resume later
            self.state.clear_attribution()
        elif not pausing and self._activity_running():
            # Explicit resume while the activity runs; don't re-pause
            self.state.clear_attribution()

        self.notifier.notify_toggle(paused=pausing)
        return ToggleOutcome.PAUSED if pausing else ToggleOutcome.RESUMED

    def _activity_running(self) -> bool:
        return self.observer is not None and self.observer.current_activity is not None

    # ------------------------------------------------------------------
    # Activity policy (lock held by caller)
    # ------------------------------------------------------------------

    def on_activity_started(self, activity: str) -> None:
        """Handle a watched activity starting."""
        if not activity:
            return

        if self.state.attribution.active or self.state.status == DaemonStatus.DISCONNECTED:
            return

        if self.mode != PolicyMode.AUTO_PAUSE:
            self.notifier.notify_activity_started(activity)
            return

        try:
            self.client.stop_all()
        except RPCError as e:
            logger.error(f"Auto-pause failed: {e}")
            self.notifier.notify_auto_pause_failed(e)
            return

        self.state.set_attribution(activity)
        self._refresh_status()
        self.notifier.notify_auto_paused(activity)

    def on_activity_stopped(self, activity: str) -> None:
        """Handle the watched activity stopping."""
        if not activity:
            return

        if self.mode == PolicyMode.NOTIFY_ONLY:
            self.notifier.notify_activity_stopped(activity)
            return

        attribution = self.state.attribution
        if not attribution.active:
            return

        display_name = attribution.activity or activity
        try:
            self.client.start_all()
        except RPCError as e:
            logger.error(f"Auto-resume failed: {e}")
            self.state.clear_attribution()
            self.notifier.notify_auto_resume_failed(e)
            return

        self.state.clear_attribution()
        self._refresh_status()
        self.notifier.notify_auto_resumed(display_name)
