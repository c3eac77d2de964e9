"""Logging configuration for the live encoder configurator.

Provides configure_logging() to set up the root logger from LoggingConfig.
Every handler carries RunContextFilter, so records emitted while a
deployment runs are tagged with its device, profile and run id.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from lec.logging.context import RunContextFilter
from lec.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from lec.config.models import LoggingConfig

# Lowercase level names accepted in config, env and --log-level.
# CRITICAL is not exposed.
_LEVEL_MAP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# httpx logs every request at INFO; keep it out of operator output
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(config: LoggingConfig) -> None:
    """Configure the root logger from LoggingConfig.

    Replaces any existing root handlers with a rotating file handler, a
    stderr handler, or both. Stderr is always used when no file is
    configured or the file cannot be opened. Device and registry HTTP
    traffic from httpx is only shown at WARNING and above; the clients log
    their own requests at DEBUG.

    Args:
        config: Logging configuration (level, file, format, rotation).
    """
    level = _LEVEL_MAP.get(config.level.casefold(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if config.format.casefold() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        # run_tag is "[dev-1:Studio-A] " inside a deployment, "" elsewhere
        formatter = logging.Formatter(
            "%(asctime)s - %(run_tag)s%(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    context_filter = RunContextFilter()

    file_handler_added = False
    if config.file:
        try:
            file_path = Path(config.file).expanduser()
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(context_filter)
            root_logger.addHandler(file_handler)
            file_handler_added = True
        except OSError as e:
            # Log file unavailable - fall back to stderr
            sys.stderr.write(f"Warning: Could not open log file {config.file}: {e}\n")

    # Requested explicitly, or the only handler left
    if config.include_stderr or not file_handler_added:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level)
        stderr_handler.setFormatter(formatter)
        stderr_handler.addFilter(context_filter)
        root_logger.addHandler(stderr_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
