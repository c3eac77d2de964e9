"""Run context for structured logging.

Deployment runs set device_id, profile_name and run_id in contextvars so
every log record emitted during the run carries them, including records
from the HTTP clients the orchestrator calls.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_device_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "device_id", default=None
)
_profile_name: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "profile_name", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)


def set_run_context(
    device_id: str,
    profile_name: str | None = None,
    run_id: str | None = None,
) -> None:
    """Set the current run context."""
    _device_id.set(device_id)
    _profile_name.set(profile_name)
    _run_id.set(run_id)


def clear_run_context() -> None:
    """Clear the current run context."""
    _device_id.set(None)
    _profile_name.set(None)
    _run_id.set(None)


@contextmanager
def run_context(
    device_id: str,
    profile_name: str | None = None,
    run_id: str | None = None,
) -> Generator[None, None, None]:
    """Context manager that scopes log context to one deployment run.

    Example:
        with run_context("dev-1", "Studio-A", "a1b2c3"):
            logger.info("Writing encoders")  # tagged [dev-1:Studio-A]
    """
    old = get_run_context()
    try:
        set_run_context(device_id, profile_name, run_id)
        yield
    finally:
        _device_id.set(old[0])
        _profile_name.set(old[1])
        _run_id.set(old[2])


def get_run_context() -> tuple[str | None, str | None, str | None]:
    """Get current run context as (device_id, profile_name, run_id)."""
    return _device_id.get(), _profile_name.get(), _run_id.get()


class RunContextFilter(logging.Filter):
    """Logging filter that injects run context into log records.

    Adds device_id, profile_name and run_id attributes, plus a compact
    run_tag ("[dev-1:Studio-A] ") for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        device_id, profile_name, run_id = get_run_context()

        record.device_id = device_id
        record.profile_name = profile_name
        record.run_id = run_id

        if device_id:
            if profile_name:
                record.run_tag = f"[{device_id}:{profile_name}] "
            else:
                record.run_tag = f"[{device_id}] "
        else:
            record.run_tag = ""

        return True  # Never filter out records
