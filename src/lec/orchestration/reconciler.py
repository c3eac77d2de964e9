"""Post-deployment output maintenance: toggle one output, restart all."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from lec.config.models import LECConfig
from lec.device.client import DeviceClient
from lec.device.outputs import OutputStatus, parse_outputs
from lec.device.shadows import (
    OUTPUTS,
    Shadow,
    ShadowClient,
    entry_enabled,
    entry_id,
    entry_kind,
)
from lec.errors import Cancelled
from lec.orchestration.cancellation import CancellationToken, SleepFunc, checkpoint, pause
from lec.orchestration.guards import ensure_writable
from lec.orchestration.poller import Confirmation, confirm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestartResult:
    """Outcome of a bulk restart.

    Attributes:
        ok: True if every write was accepted.
        restarted_ids: Outputs disabled and enabled again.
        skipped_ids: Outputs disabled but gone when re-enabling.
    """

    ok: bool
    restarted_ids: tuple[Any, ...]
    skipped_ids: tuple[Any, ...]


def _toggle_entry(entry: dict[str, Any], enable: bool) -> dict[str, Any]:
    # Partial write: only the enable flag changes, id and type identify the entry
    return {
        "id": entry_id(entry),
        "type": entry_kind(entry) or "srt",
        "config": {"enable": enable},
    }


class OutputReconciler:
    """Toggle or restart a device's outputs and confirm the result."""

    def __init__(
        self,
        device_client: DeviceClient,
        shadow_client: ShadowClient | None = None,
        config: LECConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.device = device_client
        self.shadows = shadow_client or ShadowClient(device_client)
        self.config = config or LECConfig()
        self.sleep = sleep

    async def list_outputs(self, device_id: str) -> list[OutputStatus]:
        """Read every output on the device with its kind, port and enable flag."""
        return parse_outputs(await self.device.get_shadows(device_id))

    async def toggle(
        self,
        device_id: str,
        output_id: Any,
        enable: bool,
        cancel: CancellationToken | None = None,
    ) -> Confirmation[Shadow]:
        """Set one output's enable flag and wait until the device reports it.

        The Outputs shadow is re-read on the toggle_confirm_delays schedule
        and the entry is looked up by its device id, whichever id field the
        device reports it under.

        Args:
            device_id: Device guid.
            output_id: Device-assigned output id.
            enable: Desired enable flag.
            cancel: Optional token checked between confirmation reads.

        Returns:
            Confirmation carrying the last Outputs shadow read; ok is False
            if the reported flag never matched.

        Raises:
            WriteBlocked: If safe mode is on.
        """
        ensure_writable(self.config, f"toggle output {output_id}")
        await self.device.post_outputs(
            device_id, [{"output_id": output_id, "enable": enable}]
        )

        def matches(outputs: Shadow) -> bool:
            entry = outputs.find_by_id(output_id)
            return entry is not None and entry_enabled(entry) == enable

        result = await confirm(
            lambda: self.shadows.read_one(device_id, OUTPUTS),
            matches,
            self.config.deployment.toggle_confirm_delays,
            cancel=cancel,
            sleep=self.sleep,
        )
        if result.ok:
            logger.info("Output %s %s", output_id, "enabled" if enable else "disabled")
        else:
            logger.warning("Output %s did not report enable=%s", output_id, enable)
        return result

    async def restart(
        self, device_id: str, cancel: CancellationToken | None = None
    ) -> RestartResult:
        """Disable every enabled output, pause, then enable them again.

        Each phase writes with the version read immediately before it.
        A device with no enabled outputs is left untouched.
        """
        ensure_writable(self.config, f"restart outputs of {device_id}")
        outputs = await self.shadows.read_one(device_id, OUTPUTS)
        targets = [
            e for e in outputs.entries if entry_enabled(e) and entry_id(e) is not None
        ]
        if not targets:
            logger.info("No enabled outputs on %s; nothing to restart", device_id)
            return RestartResult(True, (), ())

        target_ids = [entry_id(e) for e in targets]
        logger.info("Stopping %d output(s) on %s", len(targets), device_id)
        await self.shadows.write(
            device_id,
            OUTPUTS,
            outputs.version,
            [_toggle_entry(e, False) for e in targets],
        )

        try:
            await pause(self.config.deployment.restart_pause_seconds, cancel, self.sleep)
            checkpoint(cancel)
            fresh = await self.shadows.read_one(device_id, OUTPUTS)
        except Cancelled:
            logger.warning(
                "Restart cancelled; outputs %s left disabled", target_ids
            )
            raise

        present = fresh.ids()
        restart = [e for e in targets if entry_id(e) in present]
        skipped = tuple(eid for eid in target_ids if eid not in present)
        if skipped:
            logger.warning("Outputs %s disappeared during restart", list(skipped))

        if restart:
            logger.info("Starting %d output(s) on %s", len(restart), device_id)
            await self.shadows.write(
                device_id,
                OUTPUTS,
                fresh.version,
                [_toggle_entry(e, True) for e in restart],
            )
        return RestartResult(True, tuple(entry_id(e) for e in restart), skipped)
