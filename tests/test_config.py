"""
Tests for configuration management.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dimcli.config import (
    DEFAULT_NETWORKS,
    Settings,
    get_default_plugin_dir,
    get_xdg_data_dir,
    get_xdg_state_dir,
)


class TestSettings:
    """Tests for Settings class."""

    def test_default_settings(self, monkeypatch):
        """Test default values when no environment is set."""
        for name in ("DIMCLI_NETWORKS", "DIMCLI_LOG_LEVEL", "DIMCLI_PLUGIN_DIR"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.networks == DEFAULT_NETWORKS
        assert settings.log_level == "WARNING"
        assert settings.log_format == "standard"
        assert settings.log_file_enabled is False
        assert settings.plugin_dir == get_default_plugin_dir()
        assert settings.database_url.startswith("sqlite+aiosqlite:///")
        assert settings.database_url.endswith("dimcli.db")

    def test_settings_from_env_vars(self, monkeypatch, tmp_path):
        """Test loading settings from DIMCLI_* environment variables."""
        monkeypatch.setenv("DIMCLI_PLUGIN_DIR", str(tmp_path))
        monkeypatch.setenv("DIMCLI_DATABASE_URL", "sqlite+aiosqlite://")
        monkeypatch.setenv("DIMCLI_LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.plugin_dir == tmp_path
        assert settings.database_url == "sqlite+aiosqlite://"
        assert settings.log_level == "DEBUG"

    def test_case_insensitive_env_vars(self, monkeypatch):
        """Test that environment variables are case insensitive."""
        monkeypatch.setenv("dimcli_log_format", "json")

        settings = Settings(_env_file=None)

        assert settings.log_format == "json"

    def test_networks_from_comma_separated_string(self, monkeypatch):
        """Test networks can be given as a comma-separated list."""
        monkeypatch.setenv("DIMCLI_NETWORKS", "Mainnet, devnet")

        settings = Settings(_env_file=None)

        assert settings.networks == ["mainnet", "devnet"]

    @pytest.mark.parametrize("networks", ["", " , ", "main net", "test|net"])
    def test_invalid_networks(self, networks):
        """Test empty or malformed network names are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, networks=networks)

    def test_invalid_log_format(self):
        """Test unknown log formats are rejected."""
        with pytest.raises(ValidationError, match="log_format"):
            Settings(_env_file=None, log_format="xml")

    def test_log_directory_override(self, tmp_path):
        """Test an explicit log_dir takes precedence."""
        settings = Settings(_env_file=None, log_dir=str(tmp_path / "logs"))

        assert settings.log_directory == tmp_path / "logs"

    def test_log_directory_default(self, monkeypatch, tmp_path):
        """Test log_directory falls back to the XDG state directory."""
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))

        settings = Settings(_env_file=None, log_dir="")

        assert settings.log_directory == tmp_path / "dimcli" / "logs"


class TestXdgDirectories:
    """Tests for XDG directory helpers."""

    def test_data_dir_from_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

        assert get_xdg_data_dir() == str(tmp_path / "dimcli")

    def test_data_dir_from_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_xdg_data_dir() == str(tmp_path / ".local" / "share" / "dimcli")

    def test_data_dir_without_home(self, monkeypatch):
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.delenv("HOME", raising=False)

        assert get_xdg_data_dir() == ".dimcli"

    def test_state_dir_from_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_STATE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_xdg_state_dir() == str(tmp_path / ".local" / "state" / "dimcli" / "logs")

    def test_default_plugin_dir_is_bundled(self):
        """Test the default plugin directory ships with the package."""
        plugin_dir = get_default_plugin_dir()

        assert plugin_dir.name == "commands"
        assert (plugin_dir / "__init__.py").exists()
        assert isinstance(plugin_dir, Path)
