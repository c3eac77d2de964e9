"""Configuration data models.

This module defines dataclasses for configurator options. Every section is
frozen: a loaded LECConfig is an immutable snapshot, so a deployment that
captures it at start is unaffected by later edits.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

DEFAULT_DEVICE_API_URL = "https://api.videoncloud.com/v1"


def _validate_timeout(value: int) -> None:
    if not 1 <= value <= 300:
        raise ValueError("Timeout must be between 1 and 300 seconds")


def _validate_delays(name: str, delays: tuple[float, ...]) -> None:
    if any(d < 0 for d in delays):
        raise ValueError(f"{name} must not contain negative delays")
    if list(delays) != sorted(delays):
        raise ValueError(f"{name} must be ascending, got {list(delays)}")


@dataclass(frozen=True)
class DeviceApiConfig:
    """Connection settings for the device cloud API."""

    base_url: str = DEFAULT_DEVICE_API_URL
    """Root of the device API (e.g., "https://api.videoncloud.com/v1")."""

    token: str = ""
    """Personal access token or JWT. Prefixed with PAT/Bearer automatically."""

    org_guid: str = ""
    """Optional organization GUID appended as the org_guid query parameter."""

    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("Device API URL must start with http:// or https://")
        _validate_timeout(self.timeout_seconds)


@dataclass(frozen=True)
class ChannelRegistryConfig:
    """Connection settings for the channel registry (platform A)."""

    api_endpoint: str = ""
    """Any URL under the registry, e.g. "https://x.example.com/rest/open/v2"."""

    api_version: Literal["v1", "v2"] = "v2"
    """Protocol dialect: v1 (legacy POST verbs) or v2 (REST resources)."""

    organization_id: str = ""
    """Numeric organization id, or an organization name/slug to resolve."""

    token: str = ""

    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.api_version not in ("v1", "v2"):
            raise ValueError(f"api_version must be v1 or v2, got {self.api_version}")
        _validate_timeout(self.timeout_seconds)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_endpoint.strip() and self.token.strip())


@dataclass(frozen=True)
class IngestRegistryConfig:
    """Connection settings for the ingest registry (platform B)."""

    base_host: str = ""
    """Account host, with or without scheme (https is assumed)."""

    release: Literal["older", "current"] = "current"
    """Backend release: "older" uses /v1/api, "current" uses /epub/v1/api."""

    auth_token: str = ""

    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.release not in ("older", "current"):
            raise ValueError(f"release must be older or current, got {self.release}")
        _validate_timeout(self.timeout_seconds)

    @property
    def is_configured(self) -> bool:
        return bool(self.base_host.strip() and self.auth_token.strip())


@dataclass(frozen=True)
class DeploymentConfig:
    """Configuration for the deployment workflow."""

    # Continue with downstream configuration when device configuration fails
    bypass_device_errors: bool = False

    # Refuse every write to devices and registries
    safe_mode: bool = False

    # Inclusive listener port range for platform outputs
    port_min: int = 10001
    port_max: int = 10100

    # Poll schedules (seconds) used to confirm asynchronous device changes
    encoder_confirm_delays: tuple[float, ...] = (1.0, 2.0, 4.0, 8.0, 8.0)
    output_confirm_delays: tuple[float, ...] = (1.0, 2.0, 4.0)
    toggle_confirm_delays: tuple[float, ...] = (0.3, 0.6, 1.2)

    # Pause between the stop and start phases of a bulk restart
    restart_pause_seconds: float = 2.0

    # Pause before looking up the ingest, giving the device time to listen
    downstream_settle_seconds: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port_min <= self.port_max <= 65535:
            raise ValueError(
                f"Invalid port range {self.port_min}-{self.port_max}"
            )
        _validate_delays("encoder_confirm_delays", self.encoder_confirm_delays)
        _validate_delays("output_confirm_delays", self.output_confirm_delays)
        _validate_delays("toggle_confirm_delays", self.toggle_confirm_delays)
        if self.restart_pause_seconds < 0 or self.downstream_settle_seconds < 0:
            raise ValueError("Pauses must not be negative")


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass(frozen=True)
class LECConfig:
    """Top-level configuration snapshot."""

    device: DeviceApiConfig = field(default_factory=DeviceApiConfig)
    channel: ChannelRegistryConfig = field(default_factory=ChannelRegistryConfig)
    ingest: IngestRegistryConfig = field(default_factory=IngestRegistryConfig)
    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Directory holding <profile>.yaml files (None = <data_dir>/profiles)
    profiles_dir: Path | None = None
