"""Logging configuration factory.

Builds LoggingConfig instances with CLI overrides applied to the
configuration loaded from file and environment.
"""

from __future__ import annotations

from pathlib import Path

from lec.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Build LoggingConfig by merging base config with CLI overrides.

    The base already reflects the config file and the LEC_LOG_* environment
    variables; any override that is not None wins over both. Rotation
    settings are never overridden from the command line.

    Args:
        base: Base logging configuration (typically from get_config()).
        level: Override log level (debug, info, warning, error).
            If None, uses base.level.
        file: Override log file path. If None, uses base.file.
        format: Override log format (text, json). If None, uses base.format.
        include_stderr: Override stderr inclusion. False is an override,
            only None keeps base.include_stderr.

    Returns:
        New LoggingConfig with overrides applied. Invalid values raise
        ValueError from LoggingConfig.__post_init__.

    Example:
        logging_config = build_logging_config(
            config.logging,
            level=log_level,
            format="json" if log_json else None,
        )
        configure_logging(logging_config)
    """
    return LoggingConfig(
        level=level if level is not None else base.level,
        file=file if file is not None else base.file,
        format=format if format is not None else base.format,
        include_stderr=(
            include_stderr if include_stderr is not None else base.include_stderr
        ),
        max_bytes=base.max_bytes,
        backup_count=base.backup_count,
    )


def configure_logging_from_cli(
    *,
    config_path: Path | None = None,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> None:
    """Configure logging for a CLI invocation.

    Loads the configuration (file and LEC_* environment), applies the
    overrides given on the lec command line and installs the handlers.
    Called once per process from the root click group.

    Args:
        config_path: Path to config file (None uses LEC_CONFIG_PATH or
            ~/.lec/config.toml).
        level: Override log level from --log-level.
        file: Override log file path from --log-file.
        format: "json" when --log-json is given, otherwise None.
        include_stderr: Override stderr inclusion.
    """
    from lec.config.loader import get_config
    from lec.logging import configure_logging

    config = get_config(config_path=config_path)
    final_config = build_logging_config(
        config.logging,
        level=level,
        file=file,
        format=format,
        include_stderr=include_stderr,
    )
    configure_logging(final_config)
