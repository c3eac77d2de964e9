"""Tests for OutputReconciler."""

from dataclasses import replace

import pytest
import pytest_asyncio

from lec.config import DeploymentConfig
from lec.device.client import DeviceClient
from lec.errors import Cancelled, WriteBlocked
from lec.orchestration.cancellation import CancellationToken
from lec.orchestration.reconciler import OutputReconciler


def srt(output_id: int, enable: bool, port: int) -> dict:
    return {
        "id": output_id,
        "output_id": output_id,
        "type": "srt",
        "config": {"enable": enable, "destination_port": port, "name": f"out-{output_id}"},
    }


@pytest_asyncio.fixture
async def build(lec_config, recording_sleep):
    clients = []

    def _build(device, config=None):
        client = DeviceClient(lec_config.device, transport=device.transport())
        clients.append(client)
        return OutputReconciler(client, config=config or lec_config, sleep=recording_sleep)

    yield _build
    for client in clients:
        await client.aclose()


class TestToggle:
    """Tests for OutputReconciler.toggle."""

    @pytest.mark.asyncio
    async def test_toggle_confirms_reported_flag(self, build, make_device, recording_sleep) -> None:
        device = make_device(outputs=[srt(20, True, 10001)])
        result = await build(device).toggle("dev-1", 20, False)

        assert result.ok
        assert result.waits == 1
        assert device.output_posts == [[{"output_id": 20, "enable": False}]]
        assert recording_sleep.delays == [0.3]

    @pytest.mark.asyncio
    async def test_toggle_confirms_entry_reported_by_id_only(
        self, build, make_device
    ) -> None:
        """Entries without an output_id field are matched through their id."""
        entry = {"id": 20, "type": "srt", "config": {"enable": True}}
        device = make_device(outputs=[entry])

        result = await build(device).toggle("dev-1", 20, False)

        assert result.ok
        assert result.waits == 1
        assert "output_id" not in device.entries("Outputs")[0]
        assert device.entries("Outputs")[0]["config"]["enable"] is False

    @pytest.mark.asyncio
    async def test_toggle_accepts_string_id(self, build, make_device) -> None:
        device = make_device(outputs=[srt(20, False, 10001)])

        result = await build(device).toggle("dev-1", "20", True)

        assert result.ok

    @pytest.mark.asyncio
    async def test_toggle_not_confirmed(self, build, make_device, recording_sleep) -> None:
        """An output the device never reports gives ok=False after the schedule."""
        device = make_device(outputs=[srt(20, True, 10001)])
        result = await build(device).toggle("dev-1", 99, True)

        assert not result.ok
        assert recording_sleep.delays == [0.3, 0.6, 1.2]

    @pytest.mark.asyncio
    async def test_toggle_blocked_in_safe_mode(self, build, make_device, lec_config) -> None:
        device = make_device(outputs=[srt(20, True, 10001)])
        config = replace(lec_config, deployment=DeploymentConfig(safe_mode=True))

        with pytest.raises(WriteBlocked):
            await build(device, config).toggle("dev-1", 20, False)
        assert device.output_posts == []


class TestRestart:
    """Tests for OutputReconciler.restart."""

    @pytest.mark.asyncio
    async def test_noop_when_nothing_enabled(self, build, make_device) -> None:
        """Zero enabled outputs is a success with no writes."""
        device = make_device(outputs=[srt(20, False, 10001)])
        result = await build(device).restart("dev-1")

        assert result.ok
        assert result.restarted_ids == ()
        assert device.commands == []

    @pytest.mark.asyncio
    async def test_stop_then_start_with_fresh_version(
        self, build, make_device, recording_sleep
    ) -> None:
        device = make_device(outputs=[srt(20, True, 10001), srt(21, True, 10002)])
        result = await build(device).restart("dev-1")

        stop, start = device.commands_for("Outputs")
        assert stop["target_version"] == 1
        assert start["target_version"] == 2
        assert [e["config"]["enable"] for e in stop["state"]] == [False, False]
        assert [e["config"]["enable"] for e in start["state"]] == [True, True]
        assert result.ok
        assert result.restarted_ids == (20, 21)
        assert result.skipped_ids == ()
        assert recording_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_only_enabled_outputs_are_restarted(self, build, make_device) -> None:
        device = make_device(outputs=[srt(20, True, 10001), srt(21, False, 10002)])
        result = await build(device).restart("dev-1")

        stop, _ = device.commands_for("Outputs")
        assert [e["id"] for e in stop["state"]] == [20]
        assert result.restarted_ids == (20,)

    @pytest.mark.asyncio
    async def test_vanished_outputs_are_skipped(self, build, make_device) -> None:
        """Outputs removed between the phases are reported, not re-created."""
        device = make_device(outputs=[srt(20, True, 10001), srt(21, True, 10002)])
        reconciler = build(device)

        async def remove_output(delay: float) -> None:
            device.shadows["Outputs"]["state"] = [
                e for e in device.entries("Outputs") if e["id"] != 21
            ]
            device.shadows["Outputs"]["version"] += 1

        reconciler.sleep = remove_output
        result = await reconciler.restart("dev-1")

        _, start = device.commands_for("Outputs")
        assert [e["id"] for e in start["state"]] == [20]
        assert result.restarted_ids == (20,)
        assert result.skipped_ids == (21,)

    @pytest.mark.asyncio
    async def test_cancel_between_phases(self, build, make_device) -> None:
        device = make_device(outputs=[srt(20, True, 10001)])
        cancel = CancellationToken()
        cancel.cancel()

        with pytest.raises(Cancelled):
            await build(device).restart("dev-1", cancel=cancel)
        assert len(device.commands_for("Outputs")) == 1
