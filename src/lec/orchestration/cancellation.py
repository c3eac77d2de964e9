"""Cooperative cancellation for long-running device workflows."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from lec.errors import Cancelled

SleepFunc = Callable[[float], Awaitable[object]]


class CancellationToken:
    """Signal checked at every suspension point of a workflow.

    Cancelling never interrupts an HTTP request that is already in flight;
    it interrupts waits and is observed before the next step starts.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by operator") -> None:
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise Cancelled if cancellation was requested."""
        if self._event.is_set():
            raise Cancelled(self._reason)

    async def sleep(self, delay: float, sleep: SleepFunc = asyncio.sleep) -> None:
        """Wait for delay seconds, returning early with Cancelled if cancelled."""
        self.raise_if_cancelled()
        sleeper = asyncio.ensure_future(sleep(delay))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        self.raise_if_cancelled()


async def pause(
    delay: float,
    cancel: CancellationToken | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> None:
    """Sleep through the cancellation token when one is given."""
    if cancel is not None:
        await cancel.sleep(delay, sleep)
    else:
        await sleep(delay)


def checkpoint(cancel: CancellationToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
