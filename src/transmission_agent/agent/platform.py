"""Platform-specific paths for the agent process."""

import platform
from enum import Enum
from pathlib import Path


class Platform(Enum):
    """Supported platforms."""

    LINUX = "linux"
    MACOS = "darwin"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


def get_platform() -> Platform:
    """Detect the current platform.

    Returns:
        Platform enum value
    """
    system = platform.system().lower()
    if system == "linux":
        return Platform.LINUX
    elif system == "darwin":
        return Platform.MACOS
    elif system == "windows":
        return Platform.WINDOWS
    else:
        return Platform.UNKNOWN


def get_app_dir() -> Path:
    """Get the per-user application directory (~/.transmission-agent)."""
    return Path.home() / ".transmission-agent"


def _runtime_dir() -> Path:
    runtime_dir = get_app_dir() / "runtime"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    return runtime_dir


def get_ipc_socket_path() -> Path:
    """Get the IPC Unix socket path (POSIX platforms only)."""
    return _runtime_dir() / "agent.sock"


def get_ipc_port_file_path() -> Path:
    """Get the file where a loopback IPC server records its TCP port (Windows)."""
    return _runtime_dir() / "agent.port"


def get_pid_file_path() -> Path:
    return _runtime_dir() / "agent.pid"


def get_log_file_path() -> Path:
    """Get the agent log file path."""
    log_dir = get_app_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "agent.log"


def uses_unix_sockets() -> bool:
    """True where IPC runs over a Unix domain socket."""
    return get_platform() in (Platform.LINUX, Platform.MACOS)


def can_daemonize() -> bool:
    """True where the agent can detach with a double fork."""
    return uses_unix_sockets()
