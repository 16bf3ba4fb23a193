"""
dim-cli Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from DIMCLI_* environment variables and an optional .env file.
"""

import os
import re
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_NETWORKS = ["mainnet", "testnet", "mijin"]


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for dim-cli.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/dimcli if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/dimcli if not set
    - Returns relative path .dimcli if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "dimcli")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "dimcli")

    return ".dimcli"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for dim-cli logs.

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "dimcli" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "dimcli" / "logs")

    return "./logs"


def get_default_plugin_dir() -> Path:
    """Directory of the bundled command plugins."""
    return Path(__file__).resolve().parent / "commands"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DIMCLI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Plugins
    plugin_dir: Path = get_default_plugin_dir()
    package_file: Optional[Path] = None  # Alternate package metadata JSON

    # Data store (opened by the startup gate)
    database_url: str = f"sqlite+aiosqlite:///{get_xdg_data_dir()}/dimcli.db"
    database_echo: bool = False

    # Accepted values for -N/--network (comma-separated in the environment)
    networks: list[str] | str = list(DEFAULT_NETWORKS)

    # Logging
    log_level: str = "WARNING"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = False
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5
    log_to_stdout: bool = False  # Log INFO/DEBUG to stdout
    log_to_stderr: bool = True  # Log WARNING/ERROR/CRITICAL to stderr

    @field_validator("networks")
    @classmethod
    def validate_networks(cls, value: list[str] | str) -> list[str]:
        """Accept a comma-separated string and normalize names to lower case."""
        if isinstance(value, str):
            value = [name for name in value.split(",")]
        networks = [name.strip().lower() for name in value if name.strip()]
        if not networks:
            raise ValueError("at least one network name is required")
        for name in networks:
            if not re.fullmatch(r"[a-z0-9_-]+", name):
                raise ValueError(f"invalid network name: {name!r}")
        return networks

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("standard", "json"):
            raise ValueError(f"log_format must be 'standard' or 'json', got: {value}")
        return value

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
