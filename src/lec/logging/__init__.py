"""Structured logging.

Provides configurable logging with JSON format support and file rotation,
tagged with the device and profile of the deployment in progress.
"""

from lec.logging.config import configure_logging
from lec.logging.context import (
    RunContextFilter,
    clear_run_context,
    get_run_context,
    run_context,
    set_run_context,
)
from lec.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "RunContextFilter",
    "clear_run_context",
    "configure_logging",
    "get_run_context",
    "run_context",
    "set_run_context",
]
