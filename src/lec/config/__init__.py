"""Configuration management for the live encoder configurator.

Configuration is loaded with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (LEC_*)
3. Config file (~/.lec/config.toml)
4. Default values (lowest priority)
"""

from lec.config.env import EnvReader
from lec.config.loader import (
    ConfigError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
    validate_config,
)
from lec.config.logging_factory import (
    build_logging_config,
    configure_logging_from_cli,
)
from lec.config.models import (
    ChannelRegistryConfig,
    DeploymentConfig,
    DeviceApiConfig,
    IngestRegistryConfig,
    LECConfig,
    LoggingConfig,
)

__all__ = [
    # Models
    "ChannelRegistryConfig",
    "DeploymentConfig",
    "DeviceApiConfig",
    "IngestRegistryConfig",
    "LECConfig",
    "LoggingConfig",
    # Loader
    "ConfigError",
    "EnvReader",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "load_config_file",
    "validate_config",
    # Logging
    "build_logging_config",
    "configure_logging_from_cli",
]
