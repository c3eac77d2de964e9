"""Confirmation poller: retry a read until a predicate holds.

Device state propagates asynchronously and the write API gives no "done"
signal, so every check that a write took effect goes through confirm().
It is the only retry primitive; failed writes are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from lec.orchestration.cancellation import (
    CancellationToken,
    SleepFunc,
    checkpoint,
    pause,
)

logger = logging.getLogger(__name__)

S = TypeVar("S")


@dataclass(frozen=True)
class Confirmation(Generic[S]):
    """Result of a confirm() call.

    Attributes:
        state: Last observed state.
        ok: Whether the predicate held on that state.
        waits: Number of delays waited before returning.
    """

    state: S
    ok: bool
    waits: int


async def confirm(
    fetch: Callable[[], Awaitable[S]],
    predicate: Callable[[S], bool],
    delays: Sequence[float],
    *,
    cancel: CancellationToken | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> Confirmation[S]:
    """Poll fetch() until predicate(state) is true.

    For each delay: wait, fetch, test, and return early on success. After
    the last delay one final fetch is tested without waiting.

    Args:
        fetch: Async read of the current state.
        predicate: Test applied to each observed state.
        delays: Ascending wait schedule in seconds.
        cancel: Optional token checked before every wait and fetch.
        sleep: Sleep function (injected by tests).

    Raises:
        Cancelled: If the token fires during the poll.
    """
    waits = 0
    for delay in delays:
        await pause(delay, cancel, sleep)
        waits += 1
        checkpoint(cancel)
        state = await fetch()
        if predicate(state):
            logger.debug("Confirmed after %d wait(s)", waits)
            return Confirmation(state, True, waits)

    checkpoint(cancel)
    state = await fetch()
    ok = predicate(state)
    if not ok:
        logger.debug("Not confirmed after %d wait(s) and a final check", waits)
    return Confirmation(state, ok, waits)
