"""Configuration management for peerrelay.

Provides centralized configuration with TOML support and validation, loaded
hierarchically from defaults -> config file -> environment -> CLI overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import toml

from peerrelay.exceptions import ConfigurationError
from peerrelay.logging_config import setup_logging
from peerrelay.models import (
    Config,
    NetworkConfig,
    RelayConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "peerrelay.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Network
    "PEERRELAY_TRACKER_TIMEOUT": "network.tracker_timeout",
    "PEERRELAY_ANNOUNCE_PORT": "network.announce_port",
    "PEERRELAY_ANNOUNCE_EVENT": "network.announce_event",
    "PEERRELAY_PEER_ID_PREFIX": "network.peer_id_prefix",
    "PEERRELAY_USER_AGENT": "network.user_agent",
    # Server
    "PEERRELAY_HOST": "server.host",
    "PEERRELAY_PORT": "server.port",
    # Store
    "PEERRELAY_STORE_BACKEND": "store.backend",
    "PEERRELAY_STORE_PATH": "store.path",
    # Relay
    "PEERRELAY_TORRENT_DIR": "relay.torrent_dir",
    "PEERRELAY_OUTPUT_DIR": "relay.output_dir",
    "PEERRELAY_ANNOUNCE_URL": "relay.announce_url",
    # Observability
    "PEERRELAY_LOG_LEVEL": "observability.log_level",
    "PEERRELAY_LOG_FILE": "observability.log_file",
    "PEERRELAY_STRUCTURED_LOGGING": "observability.structured_logging",
}

_config_manager: ConfigManager | None = None


def _parse_env_value(raw: str) -> bool | int | float | str:
    low = raw.lower()
    if low in {"true", "yes", "on"}:
        return True
    if low in {"false", "no", "off"}:
        return False
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge configuration dictionaries recursively."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for peerrelay.toml
            overrides: Nested values applied last (e.g. from CLI options)

        """
        self.overrides = overrides or {}
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._setup_logging()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                msg = f"Config file not found: {path}"
                raise ConfigurationError(msg)
            return path

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / ".config" / "peerrelay" / CONFIG_FILE_NAME,
            Path.home() / f".{CONFIG_FILE_NAME}",
        ]
        for path in search_paths:
            if path.exists():
                return path
        return None

    def _load_config(self) -> Config:
        """Load configuration from file, environment and overrides."""
        config_data: dict[str, Any] = {}

        if self.config_file:
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data = toml.load(f)
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e

        config_data = merge_config(config_data, self._get_env_config())
        config_data = merge_config(config_data, self.overrides)

        try:
            return Config(**config_data)
        except ValueError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}
        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw))
        return env_config

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)

    def export(self) -> str:
        """Export current configuration as TOML."""
        data = self.config.model_dump(mode="json", exclude_none=True)
        return toml.dumps(data)


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(
    config_file: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file, overrides)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()
    _config_manager._setup_logging()
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None)
    _config_manager.config = new_config
    _config_manager._setup_logging()


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config_manager
    _config_manager = None


def get_network_config() -> NetworkConfig:
    """Get network configuration."""
    return get_config().network


def get_server_config() -> ServerConfig:
    """Get announce server configuration."""
    return get_config().server


def get_relay_config() -> RelayConfig:
    """Get batch relay configuration."""
    return get_config().relay
