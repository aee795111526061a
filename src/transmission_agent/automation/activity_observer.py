"""Watched-process detection for automatic pause/resume."""

import logging
from typing import Callable, Iterable, Optional, Sequence

import psutil  # type: ignore[import-untyped]

from transmission_agent.core.models import ActivityEvent

logger = logging.getLogger(__name__)

EXECUTABLE_SUFFIX = ".exe"


def list_running_process_names() -> set[str]:
    """Get the names of all running processes.

    Processes that vanish or deny access while being enumerated are skipped.

    Returns:
        Set of process names as reported by the OS
    """
    names: set[str] = set()
    for proc in psutil.process_iter(["name"]):
        try:
            name = proc.info.get("name")
            if name:
                names.add(str(name))
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return names


def normalize_process_name(name: str) -> str:
    """Lower-case a process name and strip a trailing executable suffix.

    Example:
        >>> normalize_process_name("Game.EXE")
        'game'
    """
    normalized = name.strip().lower()
    if normalized.endswith(EXECUTABLE_SUFFIX):
        normalized = normalized[: -len(EXECUTABLE_SUFFIX)]
    return normalized


class ActivityObserver:
    """Report start/stop transitions of the watched activity.

    At most one watched activity is tracked at a time. When several watched
    processes run, the one listed first in the configuration wins.

    A direct switch from one watched process to another (without a poll where
    none was running) is reported as NO_CHANGE; the observer just remembers
    the new name.
    """

    def __init__(
        self,
        watched_names: Sequence[str],
        process_lister: Callable[[], Iterable[str]] = list_running_process_names,
    ):
        """Initialize observer.

        Args:
            watched_names: Configured process names, in priority order
            process_lister: Returns the names of running processes
        """
        self.watched_names = list(watched_names)
        self._process_lister = process_lister
        self._current: Optional[str] = None

    @property
    def current_activity(self) -> Optional[str]:
        """Watched activity currently believed to be running."""
        return self._current

    def find_running(self) -> Optional[str]:
        """Find the highest-priority watched process that is running.

        Returns:
            The configured name of the first match, or None

        Raises:
            Exception: Whatever the process lister raises
        """
        if not self.watched_names:
            return None

        running = {normalize_process_name(n) for n in self._process_lister()}
        for name in self.watched_names:
            if normalize_process_name(name) in running:
                return name
        return None

    def poll(self) -> ActivityEvent:
        """Check watched processes and report what changed since the last poll."""
        try:
            found = self.find_running()
        except Exception as e:
            # Keep what we remembered; a stop is only reported once a
            # successful enumeration shows the activity gone.
            logger.debug(f"Process enumeration failed: {e}")
            return ActivityEvent.no_change()

        previous = self._current

        if found == previous:
            return ActivityEvent.no_change()

        if previous is None and found is not None:
            self._current = found
            logger.info(f"Watched activity started: {found}")
            return ActivityEvent.started(found)

        if previous is not None and found is None:
            self._current = None
            logger.info(f"Watched activity stopped: {previous}")
            return ActivityEvent.stopped(previous)

        logger.debug(f"Watched activity switched: {previous} -> {found}")
        self._current = found
        return ActivityEvent.no_change()
