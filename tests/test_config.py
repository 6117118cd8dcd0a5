"""Tests for configuration resolution."""

import json

import pytest

from pantransfer.config import Config
from pantransfer.exceptions import PanConfigError

ENV_VARS = (
    "PANTRANSFER_CONFIG_DIR",
    "PANTRANSFER_MAX_ATTEMPTS",
    "PANTRANSFER_MAX_DIRECTORY_ENTRIES",
    "PANTRANSFER_MAX_ENSURED_ENTRIES",
    "PANTRANSFER_MAX_COMPLETED_ENTRIES",
    "PANTRANSFER_MAX_HISTORY_RECORDS",
    "PANTRANSFER_SETTINGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, tmp_path):
        """Test built-in defaults without env or config file."""
        cfg = Config(tmp_path)
        assert cfg.max_transfer_attempts == 3
        assert cfg.max_directory_entries == 100_000
        assert cfg.max_ensured_entries == 100_000
        assert cfg.max_completed_entries == 400_000
        assert cfg.max_history_records == 200_000
        assert cfg.cache_dir == tmp_path / "cache"
        assert cfg.settings_path == tmp_path / "settings.json"

    def test_config_dir_from_env(self, tmp_path, monkeypatch):
        """Test the config directory can come from the environment."""
        monkeypatch.setenv("PANTRANSFER_CONFIG_DIR", str(tmp_path))
        assert Config().config_dir == tmp_path

    def test_file_values(self, tmp_path):
        """Test values from config.json."""
        (tmp_path / "config.json").write_text(
            json.dumps({"max_attempts": 5, "settings_path": "/etc/rules.json"})
        )
        cfg = Config(tmp_path)
        assert cfg.max_transfer_attempts == 5
        assert str(cfg.settings_path) == "/etc/rules.json"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test environment variables win over the config file."""
        (tmp_path / "config.json").write_text(json.dumps({"max_attempts": 5}))
        monkeypatch.setenv("PANTRANSFER_MAX_ATTEMPTS", "7")
        assert Config(tmp_path).max_transfer_attempts == 7

    def test_invalid_integer(self, tmp_path, monkeypatch):
        """Test non-numeric values raise PanConfigError."""
        monkeypatch.setenv("PANTRANSFER_MAX_DIRECTORY_ENTRIES", "lots")
        with pytest.raises(PanConfigError, match="Invalid integer"):
            Config(tmp_path).max_directory_entries

    def test_value_below_one(self, tmp_path):
        """Test capacities below one are rejected."""
        (tmp_path / "config.json").write_text(json.dumps({"max_attempts": 0}))
        with pytest.raises(PanConfigError, match="at least 1"):
            Config(tmp_path).max_transfer_attempts

    def test_broken_config_file_is_ignored(self, tmp_path):
        """Test an unreadable config file falls back to defaults."""
        (tmp_path / "config.json").write_text("{broken")
        assert Config(tmp_path).max_transfer_attempts == 3
