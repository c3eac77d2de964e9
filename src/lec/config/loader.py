"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (applied by callers on top of the returned snapshot)
2. Environment variables (LEC_*)
3. Config file (~/.lec/config.toml)
4. Default values

Environment variables:
- LEC_CONFIG_PATH: Path to config file (overrides default location)
- LEC_DATA_DIR: Path to data directory (overrides ~/.lec/)
- LEC_DEVICE_API_URL, LEC_DEVICE_TOKEN, LEC_DEVICE_ORG_GUID
- LEC_CHANNEL_ENDPOINT, LEC_CHANNEL_API_VERSION, LEC_CHANNEL_ORG,
  LEC_CHANNEL_TOKEN
- LEC_INGEST_HOST, LEC_INGEST_RELEASE, LEC_INGEST_TOKEN
- LEC_BYPASS_DEVICE_ERRORS, LEC_SAFE_MODE
- LEC_PORT_MIN, LEC_PORT_MAX, LEC_TOGGLE_CONFIRM_DELAYS, LEC_RESTART_PAUSE
- LEC_LOG_LEVEL, LEC_LOG_FILE, LEC_LOG_FORMAT
- LEC_PROFILES_DIR
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from dataclasses import fields
from pathlib import Path
from typing import Any

from lec.config.env import EnvReader
from lec.config.models import (
    ChannelRegistryConfig,
    DeploymentConfig,
    DeviceApiConfig,
    IngestRegistryConfig,
    LECConfig,
    LoggingConfig,
)

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_DIR = Path.home() / ".lec"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()

# (section, field) -> (env var, reader method)
_ENV_OVERRIDES: dict[tuple[str, str], tuple[str, str]] = {
    ("device", "base_url"): ("LEC_DEVICE_API_URL", "get_str"),
    ("device", "token"): ("LEC_DEVICE_TOKEN", "get_str"),
    ("device", "org_guid"): ("LEC_DEVICE_ORG_GUID", "get_str"),
    ("channel", "api_endpoint"): ("LEC_CHANNEL_ENDPOINT", "get_str"),
    ("channel", "api_version"): ("LEC_CHANNEL_API_VERSION", "get_str"),
    ("channel", "organization_id"): ("LEC_CHANNEL_ORG", "get_str"),
    ("channel", "token"): ("LEC_CHANNEL_TOKEN", "get_str"),
    ("ingest", "base_host"): ("LEC_INGEST_HOST", "get_str"),
    ("ingest", "release"): ("LEC_INGEST_RELEASE", "get_str"),
    ("ingest", "auth_token"): ("LEC_INGEST_TOKEN", "get_str"),
    ("deployment", "bypass_device_errors"): ("LEC_BYPASS_DEVICE_ERRORS", "get_bool"),
    ("deployment", "safe_mode"): ("LEC_SAFE_MODE", "get_bool"),
    ("deployment", "port_min"): ("LEC_PORT_MIN", "get_int"),
    ("deployment", "port_max"): ("LEC_PORT_MAX", "get_int"),
    ("deployment", "toggle_confirm_delays"): (
        "LEC_TOGGLE_CONFIRM_DELAYS",
        "get_float_list",
    ),
    ("deployment", "restart_pause_seconds"): ("LEC_RESTART_PAUSE", "get_float"),
    ("logging", "level"): ("LEC_LOG_LEVEL", "get_str"),
    ("logging", "file"): ("LEC_LOG_FILE", "get_path"),
    ("logging", "format"): ("LEC_LOG_FORMAT", "get_str"),
}

_SECTIONS: dict[str, type] = {
    "device": DeviceApiConfig,
    "channel": ChannelRegistryConfig,
    "ingest": IngestRegistryConfig,
    "deployment": DeploymentConfig,
    "logging": LoggingConfig,
}

_TUPLE_FIELDS = frozenset(
    {"encoder_confirm_delays", "output_confirm_delays", "toggle_confirm_delays"}
)


class ConfigError(Exception):
    """Raised when the configuration file or values are invalid."""


def get_default_config_path() -> Path:
    """Get the default config file path.

    Can be overridden by LEC_CONFIG_PATH environment variable.
    """
    env_path = os.environ.get("LEC_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def get_data_dir() -> Path:
    """Get the data directory (~/.lec/ unless LEC_DATA_DIR is set).

    Holds config.toml and the profiles/ directory.
    """
    env_path = os.environ.get("LEC_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_DIR


def clear_config_cache() -> None:
    """Forget every cached config file."""
    with _config_cache_lock:
        _config_cache.clear()


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from TOML file.

    Results are cached with mtime-based invalidation.

    Args:
        path: Path to config file. If None, uses default location.
        strict: If True, raise ConfigError on parse failures.
                If False (default), return empty dict on errors.

    Returns:
        Parsed configuration dict. Empty dict if file doesn't exist.

    Raises:
        ConfigError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            if strict:
                raise ConfigError(f"Failed to load config file {path}: {e}") from e
            logger.warning("Failed to load config file %s: %s", path, e)
            return {}

        _config_cache[path] = (data, current_mtime)
        logger.debug("Loaded config from %s", path)
        return data


def _build_section(
    name: str,
    cls: type,
    file_values: dict[str, Any],
    reader: EnvReader,
) -> Any:
    """Merge file and environment values for one section into its dataclass."""
    if not isinstance(file_values, dict):
        raise ConfigError(f"[{name}] must be a table")

    expected = {f.name for f in fields(cls)}
    unknown = set(file_values) - expected
    if unknown:
        raise ConfigError(
            f"Unknown keys in [{name}]: {sorted(unknown)}. "
            f"Valid keys are: {sorted(expected)}"
        )

    values = dict(file_values)
    for (section, key), (var, method) in _ENV_OVERRIDES.items():
        if section != name:
            continue
        env_value = getattr(reader, method)(var)
        if env_value is not None:
            values[key] = env_value

    for key in _TUPLE_FIELDS & values.keys():
        values[key] = tuple(float(v) for v in values[key])
    if name == "logging" and values.get("file") is not None:
        values["file"] = Path(values["file"]).expanduser()

    try:
        return cls(**values)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid [{name}] configuration: {e}") from e


def get_config(
    config_path: Path | None = None,
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> LECConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides LEC_CONFIG_PATH).
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise ConfigError on config file parse failures.

    Returns:
        Immutable LECConfig snapshot.

    Raises:
        ConfigError: If a section has unknown keys or invalid values.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    sections = {
        name: _build_section(name, cls, file_config.get(name, {}), reader)
        for name, cls in _SECTIONS.items()
    }

    profiles_dir = reader.get_path("LEC_PROFILES_DIR")
    if profiles_dir is None and file_config.get("profiles_dir"):
        profiles_dir = Path(file_config["profiles_dir"]).expanduser()

    return LECConfig(profiles_dir=profiles_dir, **sections)


def validate_config(config: LECConfig) -> list[str]:
    """Validate cross-field configuration constraints.

    Returns:
        List of error strings. Empty list means configuration is valid.
    """
    errors: list[str] = []

    if not config.device.token:
        errors.append("Device API token is not set")
    if config.channel.api_endpoint and not config.channel.token:
        errors.append("Channel registry endpoint is set but token is not")
    if config.channel.token and not config.channel.organization_id:
        errors.append("Channel registry organization id is not set")
    if config.ingest.base_host and not config.ingest.auth_token:
        errors.append("Ingest registry host is set but auth token is not")

    return errors
