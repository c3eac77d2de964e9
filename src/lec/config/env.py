"""Environment variable reader with dependency injection support.

EnvReader reads LEC_* variables with type conversion. It accepts an optional
env mapping so tests never have to touch os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class EnvReader:
    """Environment variable reader with type conversion and validation.

    Example:
        # Production usage (reads os.environ)
        reader = EnvReader()
        timeout = reader.get_float("LEC_DEVICE_TIMEOUT", 30.0)

        # Testing usage (inject custom env)
        reader = EnvReader(env={"LEC_SAFE_MODE": "yes"})
        reader.get_bool("LEC_SAFE_MODE")  # True
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the environment reader.

        Args:
            env: Optional mapping to use instead of os.environ. Tests pass
                 a plain dict here.
        """
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Get a string from environment variable, or default if unset."""
        value = self._env.get(var)
        if value is None:
            return default
        return value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Get an integer from environment variable.

        Args:
            var: Environment variable name.
            default: Default value if not set or invalid.

        Returns:
            Parsed integer, or default if not set or invalid. A set but
            unparseable value is logged as a warning.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Get a float from environment variable.

        Logs a warning and returns default if the value cannot be parsed.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s", var, value)
            return default

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Get a boolean from environment variable.

        "true", "1", "yes" and "on" (case-insensitive) are true; any other
        set value is false.
        """
        value = self._env.get(var)
        if value is None:
            return default
        return value.lower() in _TRUE_VALUES

    def get_path(self, var: str, default: Path | None = None) -> Path | None:
        """Get a tilde-expanded path from environment variable."""
        value = self._env.get(var)
        if not value:
            return default
        return Path(value).expanduser()

    def get_float_list(
        self, var: str, default: tuple[float, ...] | None = None
    ) -> tuple[float, ...] | None:
        """Get a comma-separated list of floats (e.g., "0.3,0.6,1.2").

        Used for confirmation backoff delays. Empty elements are skipped.

        Args:
            var: Environment variable name.
            default: Default tuple if not set or invalid.

        Returns:
            Tuple of floats, or default (with a warning) if any element
            cannot be parsed.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return tuple(float(part) for part in value.split(",") if part.strip())
        except ValueError:
            logger.warning("Invalid float list for %s: %s", var, value)
            return default
