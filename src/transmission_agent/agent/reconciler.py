"""Status reconciliation: poll the daemon, publish status, observe activities."""

import logging
import threading
import time
from datetime import datetime
from typing import Optional

from transmission_agent.agent.controller import IntentController
from transmission_agent.agent.state import StateManager
from transmission_agent.automation.activity_observer import ActivityObserver
from transmission_agent.core.models import ActivityChange, DaemonStatus
from transmission_agent.rpc.client import TransmissionClient
from transmission_agent.rpc.errors import RPCError

logger = logging.getLogger(__name__)


class Reconciler:
    """Derive the daemon status from session statistics.

    This is the only writer of the published daemon status.
    """

    def __init__(
        self,
        client: TransmissionClient,
        controller: IntentController,
        state: StateManager,
        observer: Optional[ActivityObserver] = None,
        monitoring_enabled: bool = False,
    ):
        """Initialize reconciler.

        Args:
            client: Transmission RPC client
            controller: Intent controller (owner of the intent lock)
            state: Shared agent state
            observer: Activity observer, polled once per tick
            monitoring_enabled: Route activity events to the controller
        """
        self.client = client
        self.controller = controller
        self.state = state
        self.observer = observer
        self.monitoring_enabled = monitoring_enabled and observer is not None
        controller.set_refresh_callback(self.refresh)

    def tick(self, bypass: bool = False) -> Optional[DaemonStatus]:
        """Run one reconciliation pass.

        Args:
            bypass: Skip the intent-lock check; the caller already holds it

        Returns:
            The published status, or None if the tick was skipped
        """
        if bypass:
            return self._reconcile(observe=False)

        if not self.controller.try_acquire():
            logger.debug("Tick skipped: an intent is in flight")
            return None

        try:
            return self._reconcile(observe=True)
        finally:
            self.controller.release()

    def refresh(self) -> Optional[DaemonStatus]:
        """Refresh status right after an intent was applied."""
        return self.tick(bypass=True)

    def _reconcile(self, observe: bool) -> DaemonStatus:
        status = self._fetch_status()
        if observe and status != DaemonStatus.DISCONNECTED:
            self._observe_activity()
        return status

    def _fetch_status(self) -> DaemonStatus:
        now = datetime.now().isoformat()
        self.state.increment("polls_count")
        try:
            stats = self.client.get_session_stats()
        except RPCError as e:
            if self.state.status != DaemonStatus.DISCONNECTED:
                logger.warning(f"Lost connection to Transmission: {e}")
            else:
                logger.debug(f"Polling error: {e}")
            self.state.increment("failed_polls_count")
            self.state.publish_status(
                DaemonStatus.DISCONNECTED,
                last_poll=now,
                last_error=str(e),
                active_torrents=None,
                download_speed=None,
                upload_speed=None,
            )
            return DaemonStatus.DISCONNECTED

        status = DaemonStatus.ACTIVE if stats.active_torrent_count > 0 else DaemonStatus.PAUSED
        self.state.publish_status(
            status,
            last_poll=now,
            last_error=None,
            active_torrents=stats.active_torrent_count,
            download_speed=stats.download_speed,
            upload_speed=stats.upload_speed,
        )
        return status

    def _observe_activity(self) -> None:
        if not self.monitoring_enabled or self.observer is None:
            return

        event = self.observer.poll()
        self.state.update(current_activity=self.observer.current_activity)

        if event.change == ActivityChange.STARTED and event.name:
            self.controller.on_activity_started(event.name)
        elif event.change == ActivityChange.STOPPED and event.name:
            self.controller.on_activity_stopped(event.name)


class Scheduler:
    """Run reconciliation ticks on a single worker thread.

    The first tick runs immediately. After each tick the worker sleeps for
    whatever is left of the interval, so ticks never overlap.
    """

    def __init__(self, reconciler: Reconciler, interval: float):
        self.reconciler = reconciler
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="reconciler", daemon=True)
        self._thread.start()

    def run(self) -> None:
        """Tick until stopped (blocking)."""
        logger.info(f"Polling Transmission every {self.interval}s")
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.reconciler.tick()
            except Exception as e:
                logger.exception(f"Error in reconciliation tick: {e}")

            remaining = self.interval - (time.monotonic() - started)
            if remaining > 0:
                self._stop_event.wait(remaining)
        logger.info("Polling stopped")

    def stop(self, timeout: float = 15.0) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
