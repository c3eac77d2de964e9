"""Write guards shared by the device workflows."""

from __future__ import annotations

import logging

from lec.config.models import LECConfig
from lec.errors import WriteBlocked

logger = logging.getLogger(__name__)


def ensure_writable(config: LECConfig, action: str) -> None:
    """Refuse a write while safe mode is on.

    Raises:
        WriteBlocked: If config.deployment.safe_mode is set.
    """
    if config.deployment.safe_mode:
        logger.warning("Safe mode is on, refusing to %s", action)
        raise WriteBlocked(f"Safe mode is on: refusing to {action}")
