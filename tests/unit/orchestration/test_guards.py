"""Tests for cancellation, the device lease and the safe-mode guard."""

import asyncio

import pytest

from lec.config import DeploymentConfig, LECConfig
from lec.errors import Busy, Cancelled, WriteBlocked
from lec.orchestration.cancellation import CancellationToken, checkpoint, pause
from lec.orchestration.guards import ensure_writable
from lec.orchestration.lease import DeviceLease


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_not_cancelled_by_default(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_carries_reason(self) -> None:
        token = CancellationToken()
        token.cancel("closed by operator")

        assert token.cancelled
        with pytest.raises(Cancelled, match="closed by operator"):
            token.raise_if_cancelled()

    def test_checkpoint_without_token_is_noop(self) -> None:
        checkpoint(None)

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep(self) -> None:
        """A long wait returns as soon as the token fires."""
        token = CancellationToken()

        async def cancel_soon() -> None:
            await asyncio.sleep(0)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(Cancelled):
            await asyncio.wait_for(token.sleep(3600), timeout=5)
        await canceller

    @pytest.mark.asyncio
    async def test_pause_uses_injected_sleep(self, recording_sleep) -> None:
        await pause(2.0, None, recording_sleep)
        await pause(0.5, CancellationToken(), recording_sleep)

        assert recording_sleep.delays == [2.0, 0.5]


class TestDeviceLease:
    """Tests for DeviceLease."""

    @pytest.mark.asyncio
    async def test_second_holder_is_busy(self) -> None:
        lease = DeviceLease()
        async with lease.hold("dev-1"):
            assert lease.is_held("dev-1")
            with pytest.raises(Busy):
                async with lease.hold("dev-1"):
                    pass
        assert not lease.is_held("dev-1")

    @pytest.mark.asyncio
    async def test_different_devices_do_not_conflict(self) -> None:
        lease = DeviceLease()
        async with lease.hold("dev-1"), lease.hold("dev-2"):
            assert lease.is_held("dev-1") and lease.is_held("dev-2")

    @pytest.mark.asyncio
    async def test_released_on_error(self) -> None:
        lease = DeviceLease()
        with pytest.raises(RuntimeError):
            async with lease.hold("dev-1"):
                raise RuntimeError("boom")
        assert not lease.is_held("dev-1")


class TestEnsureWritable:
    """Tests for ensure_writable."""

    def test_allows_writes_by_default(self) -> None:
        ensure_writable(LECConfig(), "deploy")

    def test_safe_mode_blocks(self) -> None:
        config = LECConfig(deployment=DeploymentConfig(safe_mode=True))
        with pytest.raises(WriteBlocked, match="deploy"):
            ensure_writable(config, "deploy")
