"""Configuration management for pantransfer.

Values are resolved in this order: environment variable, the JSON config
file in the config directory, then the built-in default.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import PanConfigError
from .utils import (
    DEFAULT_MAX_COMPLETED_ENTRIES,
    DEFAULT_MAX_DIRECTORY_ENTRIES,
    DEFAULT_MAX_ENSURED_ENTRIES,
    DEFAULT_MAX_HISTORY_RECORDS,
    DEFAULT_MAX_TRANSFER_ATTEMPTS,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class Config:
    """Configuration for pantransfer."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding config.json and the cache files.
                Defaults to $PANTRANSFER_CONFIG_DIR or ~/.config/pantransfer
        """
        if config_dir is None:
            env_dir = os.environ.get("PANTRANSFER_CONFIG_DIR")
            config_dir = (
                Path(env_dir)
                if env_dir
                else Path.home() / ".config" / "pantransfer"
            )
        self.config_dir = Path(config_dir)
        self._file_values: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Get the path of the JSON config file."""
        return self.config_dir / CONFIG_FILE_NAME

    @property
    def cache_dir(self) -> Path:
        """Directory where cache and history snapshots are stored."""
        return self.config_dir / "cache"

    def _load_file(self) -> dict[str, Any]:
        if self._file_values is not None:
            return self._file_values
        path = self.get_config_path()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    values = data
                else:
                    logger.warning(f"Ignoring config file {path}: not a JSON object")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to read config file {path}: {e}")
        self._file_values = values
        return values

    def _get_int(self, env_name: str, file_key: str, default: int) -> int:
        raw: Any = os.environ.get(env_name)
        source = env_name
        if raw is None:
            raw = self._load_file().get(file_key)
            source = f"{self.get_config_path()}:{file_key}"
        if raw is None:
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise PanConfigError(f"Invalid integer for {source}: {raw!r}") from e
        if value < 1:
            raise PanConfigError(f"{source} must be at least 1, got {value}")
        return value

    @property
    def max_transfer_attempts(self) -> int:
        return self._get_int(
            "PANTRANSFER_MAX_ATTEMPTS",
            "max_attempts",
            DEFAULT_MAX_TRANSFER_ATTEMPTS,
        )

    @property
    def max_directory_entries(self) -> int:
        return self._get_int(
            "PANTRANSFER_MAX_DIRECTORY_ENTRIES",
            "max_directory_entries",
            DEFAULT_MAX_DIRECTORY_ENTRIES,
        )

    @property
    def max_ensured_entries(self) -> int:
        return self._get_int(
            "PANTRANSFER_MAX_ENSURED_ENTRIES",
            "max_ensured_entries",
            DEFAULT_MAX_ENSURED_ENTRIES,
        )

    @property
    def max_completed_entries(self) -> int:
        return self._get_int(
            "PANTRANSFER_MAX_COMPLETED_ENTRIES",
            "max_completed_entries",
            DEFAULT_MAX_COMPLETED_ENTRIES,
        )

    @property
    def max_history_records(self) -> int:
        return self._get_int(
            "PANTRANSFER_MAX_HISTORY_RECORDS",
            "max_history_records",
            DEFAULT_MAX_HISTORY_RECORDS,
        )

    @property
    def settings_path(self) -> Path:
        """Default processing settings file (filter and rename rules)."""
        env_path = os.environ.get("PANTRANSFER_SETTINGS")
        if env_path:
            return Path(env_path)
        file_value = self._load_file().get("settings_path")
        if isinstance(file_value, str) and file_value:
            return Path(file_value).expanduser()
        return self.config_dir / "settings.json"


config = Config()
