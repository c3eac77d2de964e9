"""Per-device single-flight lease."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from lec.errors import Busy

logger = logging.getLogger(__name__)


class DeviceLease:
    """Allow one deployment at a time per device within this process.

    Acquisition happens on the event loop thread without awaiting, so the
    check-and-set cannot interleave with another coroutine.
    """

    def __init__(self) -> None:
        self._held: set[str] = set()

    def is_held(self, device_id: str) -> bool:
        return device_id in self._held

    @asynccontextmanager
    async def hold(self, device_id: str) -> AsyncIterator[None]:
        """Hold the lease for device_id for the duration of the block.

        Raises:
            Busy: If another holder already has this device.
        """
        if device_id in self._held:
            raise Busy(f"A deployment to device {device_id} is already running")
        self._held.add(device_id)
        logger.debug("Acquired lease on %s", device_id)
        try:
            yield
        finally:
            self._held.discard(device_id)
            logger.debug("Released lease on %s", device_id)


# Shared by every orchestrator that is not given its own lease
default_lease = DeviceLease()
