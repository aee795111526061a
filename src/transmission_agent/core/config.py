"""Configuration management for the Transmission agent."""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from transmission_agent.core.models import PolicyMode

DEFAULT_CONFIG_PATH = Path.home() / ".transmission-agent" / "config.yml"


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "transmission": {
            "host": "localhost",
            "port": 9091,
            "use_https": False,
            "rpc_path": "/transmission/rpc",
            "username": "",
            "password": "",
            "timeout": 10,
        },
        "agent": {
            "poll_interval": 5,
        },
        "notifications": {
            "enabled": True,
            "disable": False,
            "backend": "auto",
        },
        "activity_monitoring": {
            "enabled": False,
            "processes": [],
            "behavior": "notify_only",
        },
        "advanced": {
            "log_level": "INFO",
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "transmission": {
                "type": "object",
                "properties": {
                    "host": {"type": "string"},
                    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "use_https": {"type": "boolean"},
                    "rpc_path": {"type": "string", "pattern": "^/"},
                    "username": {"type": ["string", "null"]},
                    "password": {"type": ["string", "null"]},
                    "timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 120},
                },
            },
            "agent": {
                "type": "object",
                "properties": {
                    "poll_interval": {"type": "integer", "minimum": 1, "maximum": 3600},
                },
            },
            "notifications": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "disable": {"type": "boolean"},
                    "backend": {"type": "string"},
                },
            },
            "activity_monitoring": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "processes": {"type": "array", "items": {"type": "string"}},
                    "behavior": {"type": "string", "enum": ["notify_only", "auto_pause"]},
                },
            },
            "advanced": {
                "type": "object",
                "properties": {
                    "log_level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.transmission-agent/config.yml
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self.validate()
            except ValueError as e:
                # Keep the broken file around, continue on defaults
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self.save()
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self.save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'transmission.port')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('transmission.port')
            9091
            >>> config.get('nonexistent.key', 'default')
            'default'
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set

        Raises:
            ValueError: If configuration is invalid after setting
        """
        keys = key.split(".")
        previous = copy.deepcopy(self._config)
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
        try:
            self.validate()
        except ValueError:
            self._config = previous
            raise
        self.save()

    def validate(self) -> bool:
        """Validate configuration against schema.

        Returns:
            True if valid

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
            return True
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def reset(self) -> None:
        """Reset to default configuration."""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as dictionary.

        Returns:
            Copy of configuration dictionary
        """
        return copy.deepcopy(self._config)

    def get_all_keys(self, prefix: str = "") -> list[str]:
        """Get all configuration keys in dot notation.

        Args:
            prefix: Prefix for recursive traversal (internal use)

        Returns:
            List of all configuration keys
        """
        keys = []
        config = self._config if not prefix else self.get(prefix, {})

        if isinstance(config, dict):
            for key, value in config.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    keys.extend(self.get_all_keys(full_key))
                else:
                    keys.append(full_key)
        return keys

    def add_watched_process(self, name: str) -> bool:
        """Append a process name to the watch list.

        Returns:
            False if the name (case-insensitive) is already watched
        """
        processes = list(self.get("activity_monitoring.processes", []))
        if any(p.lower() == name.lower() for p in processes):
            return False
        processes.append(name)
        self.set("activity_monitoring.processes", processes)
        return True

    def remove_watched_process(self, name: str) -> bool:
        """Remove a process name from the watch list.

        Returns:
            False if the name was not watched
        """
        processes = list(self.get("activity_monitoring.processes", []))
        remaining = [p for p in processes if p.lower() != name.lower()]
        if len(remaining) == len(processes):
            return False
        self.set("activity_monitoring.processes", remaining)
        return True


@dataclass(frozen=True)
class AgentSettings:
    """Read-only snapshot of the settings the agent core consumes."""

    host: str = "localhost"
    port: int = 9091
    use_https: bool = False
    rpc_path: str = "/transmission/rpc"
    username: str = ""
    password: str = ""
    timeout: float = 10
    poll_interval: int = 5
    notifications_enabled: bool = True
    disable_notifications: bool = False
    notification_backend: str = "auto"
    monitoring_enabled: bool = False
    watched_processes: tuple[str, ...] = field(default_factory=tuple)
    behavior: str = "notify_only"
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: ConfigManager) -> "AgentSettings":
        """Build a settings snapshot from a configuration manager."""
        return cls(
            host=config.get("transmission.host", "localhost"),
            port=config.get("transmission.port", 9091),
            use_https=config.get("transmission.use_https", False),
            rpc_path=config.get("transmission.rpc_path", "/transmission/rpc"),
            username=config.get("transmission.username", ""),
            password=config.get("transmission.password", ""),
            timeout=config.get("transmission.timeout", 10),
            poll_interval=config.get("agent.poll_interval", 5),
            notifications_enabled=config.get("notifications.enabled", True),
            disable_notifications=config.get("notifications.disable", False),
            notification_backend=config.get("notifications.backend", "auto"),
            monitoring_enabled=config.get("activity_monitoring.enabled", False),
            watched_processes=tuple(config.get("activity_monitoring.processes", [])),
            behavior=config.get("activity_monitoring.behavior", "notify_only"),
            log_level=config.get("advanced.log_level", "INFO"),
        )

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}{self.rpc_path}"

    @property
    def policy_mode(self) -> PolicyMode:
        return PolicyMode(self.behavior)

    @property
    def monitoring_active(self) -> bool:
        """Monitoring is on and has at least one process to watch."""
        return self.monitoring_enabled and len(self.watched_processes) > 0


def validate_settings(settings: AgentSettings) -> list[str]:
    """Check settings for problems that prevent the agent from working.

    Args:
        settings: Settings snapshot

    Returns:
        List of human-readable problems (empty if valid)
    """
    problems = []
    if not settings.host or not settings.host.strip():
        problems.append("Please enter a Transmission host.")
    if not 1 <= settings.port <= 65535:
        problems.append("Please enter a valid port number (1-65535).")
    if settings.poll_interval < 1:
        problems.append("Polling interval must be at least 1 second.")
    if settings.monitoring_enabled and not settings.watched_processes:
        problems.append("Please add at least one process to monitor.")
    return problems
