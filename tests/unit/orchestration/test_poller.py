"""Tests for the confirmation poller."""

import pytest

from lec.errors import Cancelled
from lec.orchestration.cancellation import CancellationToken
from lec.orchestration.poller import confirm


class Counter:
    """Fetch function returning 1, 2, 3, ... on successive calls."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> int:
        self.calls += 1
        return self.calls


class TestConfirm:
    """Tests for confirm()."""

    @pytest.mark.asyncio
    async def test_returns_after_second_delay(self, recording_sleep) -> None:
        """A predicate true on the second read uses exactly two waits."""
        fetch = Counter()
        result = await confirm(
            fetch, lambda n: n >= 2, [0.3, 0.6, 1.2], sleep=recording_sleep
        )

        assert result.ok
        assert result.waits == 2
        assert result.state == 2
        assert recording_sleep.delays == [0.3, 0.6]

    @pytest.mark.asyncio
    async def test_exhausts_schedule_then_checks_once_more(self, recording_sleep) -> None:
        """A never-true predicate waits every delay and fetches one extra time."""
        fetch = Counter()
        result = await confirm(
            fetch, lambda n: False, [0.3, 0.6, 1.2], sleep=recording_sleep
        )

        assert not result.ok
        assert result.waits == 3
        assert fetch.calls == 4
        assert result.state == 4
        assert recording_sleep.delays == [0.3, 0.6, 1.2]

    @pytest.mark.asyncio
    async def test_final_check_can_succeed(self, recording_sleep) -> None:
        """The extra fetch after the schedule counts as a success."""
        fetch = Counter()
        result = await confirm(fetch, lambda n: n == 3, [1, 1], sleep=recording_sleep)

        assert result.ok
        assert result.waits == 2

    @pytest.mark.asyncio
    async def test_empty_schedule_fetches_once(self, recording_sleep) -> None:
        fetch = Counter()
        result = await confirm(fetch, lambda n: True, [], sleep=recording_sleep)

        assert result.ok
        assert result.waits == 0
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_polling(self, recording_sleep) -> None:
        """A cancelled token raises before any fetch."""
        cancel = CancellationToken()
        cancel.cancel()
        fetch = Counter()

        with pytest.raises(Cancelled):
            await confirm(
                fetch, lambda n: True, [1, 2], cancel=cancel, sleep=recording_sleep
            )
        assert fetch.calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_poll(self, recording_sleep) -> None:
        """Cancelling from inside a fetch stops before the next one."""
        cancel = CancellationToken()
        calls = 0

        async def fetch() -> int:
            nonlocal calls
            calls += 1
            cancel.cancel("stop")
            return calls

        with pytest.raises(Cancelled, match="stop"):
            await confirm(
                fetch, lambda n: False, [1, 2, 3], cancel=cancel, sleep=recording_sleep
            )
        assert calls == 1
