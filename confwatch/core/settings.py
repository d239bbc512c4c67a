"""Connection settings and loading of confwatch.yaml files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ADDRESS_KEY = "archaius.zk.address"
ROOT_PATH_KEY = "archaius.zk.rootpath"
CHECK_KEY = "archaius.zk.check"
DEFAULT_ROOT_PATH = "/dubbo"
DEFAULT_SESSION_TIMEOUT = 60.0
DEFAULT_CONNECT_TIMEOUT = 10.0
CONFIG_FILE_NAME = "confwatch.yaml"

_TRUE_STRINGS = {"true", "1", "yes", "on"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


@dataclass
class SourceSettings:
    """Construction parameters of a watched ZooKeeper source.

    Attributes:
        address: ZooKeeper connect string, e.g. ``127.0.0.1:2181``.
        session_timeout: Session timeout in seconds.
        connect_timeout: Seconds to wait for the initial connection.
        root_path: Configured root, normalized before use.
        strict: Fail construction when the backend is unreachable.
        notify_depth: Absolute path depth of notified nodes.
        relative_depth: Derive the notification depth from the root.
        snapshot_timeout: Seconds snapshot reads wait for the initial sync.
    """

    address: Optional[str] = None
    session_timeout: float = DEFAULT_SESSION_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    root_path: str = DEFAULT_ROOT_PATH
    strict: bool = False
    notify_depth: Optional[int] = None
    relative_depth: bool = False
    snapshot_timeout: Optional[float] = None

    def validate(self) -> None:
        if not self.address or not str(self.address).strip():
            raise ConfigurationError(
                "address is missing, must specify the address to connect for "
                "the zookeeper configuration source"
            )
        if self.session_timeout <= 0 or self.connect_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SourceSettings":
        """Build settings from a mapping.

        Both the snake_case field names and the ``archaius.zk.*`` property
        names are accepted; field names take precedence.
        """
        data = data or {}
        settings = cls()
        address = data.get("address", data.get(ADDRESS_KEY))
        if address is not None:
            settings.address = str(address)
        root_path = data.get("root_path", data.get(ROOT_PATH_KEY))
        if root_path is not None:
            settings.root_path = str(root_path)
        strict = data.get("strict", data.get(CHECK_KEY))
        if strict is not None:
            settings.strict = _as_bool(strict)
        try:
            if "session_timeout" in data:
                settings.session_timeout = float(data["session_timeout"])
            if "connect_timeout" in data:
                settings.connect_timeout = float(data["connect_timeout"])
            if data.get("snapshot_timeout") is not None:
                settings.snapshot_timeout = float(data["snapshot_timeout"])
            if data.get("notify_depth") is not None:
                settings.notify_depth = int(data["notify_depth"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid source settings: {e}") from e
        if "relative_depth" in data:
            settings.relative_depth = _as_bool(data["relative_depth"])
        return settings


class SettingsLoader:
    """Handles loading and parsing of confwatch.yaml files."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize settings loader.

        Args:
            config_path: Path to confwatch.yaml. If None, looks in current
                directory and parent directories.
        """
        self.config_path = self._find_config_file(config_path)
        self._config: Optional[Dict[str, Any]] = None

    def _find_config_file(
        self, config_path: Optional[Union[str, Path]] = None
    ) -> Optional[Path]:
        if config_path is not None:
            path = Path(config_path)
            if path.exists():
                return path
            return None

        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILE_NAME
            if candidate.exists():
                return candidate
            if current == current.parent:
                return None
            current = current.parent

    def load(self) -> Dict[str, Any]:
        """Load the configuration file.

        Returns:
            Parsed configuration dictionary, or empty dict if no config file.

        Raises:
            ConfigurationError: If the file is not valid YAML or not a mapping.
        """
        if self.config_path is None:
            return {}

        if self._config is not None:
            return self._config

        try:
            with open(self.config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid {CONFIG_FILE_NAME} at {self.config_path}: {e}"
            ) from e
        except OSError as e:
            logger.warning("Could not read %s: %s", self.config_path, e)
            return {}

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"{self.config_path} must contain a mapping at the top level"
            )
        self._config = loaded
        return self._config

    def get_source_settings(self, **overrides: Any) -> SourceSettings:
        """Build source settings from the ``zookeeper`` section.

        Args:
            **overrides: Values taking precedence over the file, None values
                are ignored.
        """
        section = dict(self.load().get("zookeeper") or {})
        section.update({k: v for k, v in overrides.items() if v is not None})
        return SourceSettings.from_mapping(section)

    def get_namespaces(self) -> List[Dict[str, Any]]:
        """Get namespace declarations in precedence order.

        Returns:
            List of dicts with ``name`` and either ``uri`` or ``values``.
        """
        namespaces = self.load().get("namespaces") or []
        parsed: List[Dict[str, Any]] = []
        for entry in namespaces:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ConfigurationError("Each namespace must be a mapping with a 'name'")
            if "uri" not in entry and "values" not in entry:
                raise ConfigurationError(
                    f"Namespace {entry['name']!r} must have either 'uri' or 'values'"
                )
            parsed.append(dict(entry))
        return parsed
