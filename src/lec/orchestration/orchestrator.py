"""Device configuration orchestrator.

Deploying a profile to a device is a strictly sequential state machine:

    INIT -> FETCH_STATE -> WRITE_ENCODERS -> AWAIT_ENCODERS -> VERIFY_ENCODERS
         -> WRITE_OUTPUTS -> AWAIT_OUTPUTS -> VERIFY_OUTPUTS
         -> CONFIGURE_DOWNSTREAM -> DONE

with FAILED reachable from any state. Each step needs an id or a shadow
version produced by the step before it, so nothing here runs in parallel
except independent reads.

A failure between FETCH_STATE and VERIFY_OUTPUTS fails the run unless
bypass is enabled, in which case downstream configuration continues with
the provisional port assignment. Downstream failures are never bypassed;
each platform is reported on its own.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from lec.config.models import LECConfig
from lec.device.client import Device, DeviceClient
from lec.device.shadows import (
    ENCODERS,
    INPUTS,
    OUTPUTS,
    Shadow,
    ShadowClient,
    entry_id,
    entry_kind,
    entry_name,
    entry_port,
    get_shadow,
)
from lec.errors import (
    Cancelled,
    EncoderNotFound,
    LECError,
    NotFound,
    OutputNotFound,
    TransportError,
    ValidationError,
)
from lec.logging import run_context
from lec.orchestration.cancellation import CancellationToken, SleepFunc, checkpoint, pause
from lec.orchestration.encoders import (
    CALLER,
    LISTENER,
    build_audio_encoder,
    build_srt_output,
    build_video_encoder,
    encoder_names,
)
from lec.orchestration.guards import ensure_writable
from lec.orchestration.lease import DeviceLease, default_lease
from lec.orchestration.poller import confirm
from lec.orchestration.ports import PortAllocator
from lec.profiles.models import (
    TARGET_CHANNEL,
    TARGET_INGEST,
    OutputIntent,
    Profile,
)
from lec.registry.channel import ChannelRegistryClient
from lec.registry.ingest import IngestRegistryClient
from lec.registry.payloads import (
    build_channel_payload,
    build_ingest_payload,
    channel_label,
    ingest_label,
    srt_url,
)

logger = logging.getLogger(__name__)


class DeployState(Enum):
    """States of a deployment run."""

    INIT = "init"
    FETCH_STATE = "fetch_state"
    WRITE_ENCODERS = "write_encoders"
    AWAIT_ENCODERS = "await_encoders"
    VERIFY_ENCODERS = "verify_encoders"
    WRITE_OUTPUTS = "write_outputs"
    AWAIT_OUTPUTS = "await_outputs"
    VERIFY_OUTPUTS = "verify_outputs"
    CONFIGURE_DOWNSTREAM = "configure_downstream"
    DONE = "done"
    FAILED = "failed"


class StepStatus(Enum):
    """Outcome of one deployment step as shown in the run report."""

    RUNNING = "running"
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"


@dataclass(frozen=True)
class StepEvent:
    """One entry of a run's ordered step log."""

    state: DeployState
    status: StepStatus
    message: str


@dataclass
class PlatformOutcome:
    """Result of configuring one downstream platform."""

    platform: str
    status: str  # "success" or "error"
    message: str
    remote_id: Any = None
    stream_url: str | None = None
    created: bool | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class DeploymentReport:
    """Everything a deployment run observed and changed.

    profile is the updated copy (device output ids, remote ids and stream
    URLs recorded); the caller decides whether to save it.
    """

    device_id: str
    profile: Profile
    run_id: str
    state: DeployState = DeployState.INIT
    steps: list[StepEvent] = field(default_factory=list)
    outcomes: dict[str, PlatformOutcome] = field(default_factory=dict)
    device_ok: bool = False
    bypassed: bool = False
    device_error: str | None = None
    ports: dict[str, int] = field(default_factory=dict)
    encoder_ids: tuple[Any, Any] | None = None
    error: LECError | None = None

    @property
    def ok(self) -> bool:
        """True if the run reached DONE and no platform failed."""
        return self.state is DeployState.DONE and all(
            o.ok for o in self.outcomes.values()
        )


StepCallback = Callable[[StepEvent], None]


# --- Pure matching helpers --------------------------------------------------


def resolve_encoder_ids(
    encoders: Shadow,
    names: tuple[str, str],
    before: Shadow,
    stale_ids: frozenset[Any] = frozenset(),
) -> tuple[Any, Any]:
    """Resolve the device-assigned ids of the video and audio encoders.

    Each encoder is found by name, ignoring ids in stale_ids (entries that
    the write replaced). If the name lookup fails, the first entry of the
    right kind whose id did not exist before the write is used.

    Returns:
        (video_id, audio_id); either may be None if unresolved.
    """
    resolved: list[Any] = []
    for name, kind in zip(names, ("video", "audio"), strict=True):
        match = encoders.find_by_name(name, exclude_ids=stale_ids)
        found = entry_id(match) if match is not None else None
        if found is None:
            previous = before.ids(kind)
            for entry in encoders.entries:
                eid = entry_id(entry)
                if entry_kind(entry) == kind and eid is not None and eid not in previous:
                    found = eid
                    break
        resolved.append(found)
    return resolved[0], resolved[1]


@dataclass(frozen=True)
class WrittenOutput:
    """An output entry written for one intent."""

    intent_id: str
    name: str
    port: int
    platform: bool


def match_outputs(
    outputs: Shadow,
    written: Sequence[WrittenOutput],
    kept_ids: frozenset[Any] = frozenset(),
) -> dict[str, Any]:
    """Match reported output entries back to the outputs written for intents.

    Entries kept from before the write (kept_ids) are ignored. Each written
    output is matched by reported port first, then by name; an entry is
    matched at most once.

    Returns:
        Mapping of intent id to device-assigned output id.
    """
    candidates = [
        e
        for e in outputs.entries
        if entry_id(e) is not None
        and entry_id(e) not in kept_ids
        and entry_kind(e) in ("", "srt")
    ]
    matched: dict[str, Any] = {}
    used: set[Any] = set()

    for rule in (
        lambda e, w: entry_port(e) == w.port,
        lambda e, w: entry_name(e) == w.name,
    ):
        for w in written:
            if w.intent_id in matched:
                continue
            for entry in candidates:
                eid = entry_id(entry)
                if eid not in used and rule(entry, w):
                    matched[w.intent_id] = eid
                    used.add(eid)
                    break
    return matched


def _id_key(value: Any) -> str:
    return str(value).strip()


# --- Orchestrator -----------------------------------------------------------


class DeviceOrchestrator:
    """Deploy profiles to devices and manage their downstream entities."""

    def __init__(
        self,
        device_client: DeviceClient,
        channel_client: ChannelRegistryClient | None = None,
        ingest_client: IngestRegistryClient | None = None,
        config: LECConfig | None = None,
        lease: DeviceLease | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            device_client: Device API client.
            channel_client: Channel registry client (platform A), if any.
            ingest_client: Ingest registry client (platform B), if any.
            config: Configuration snapshot; defaults apply if None.
            lease: Per-device lease; the process-wide lease if None.
            sleep: Sleep function (injected by tests).
        """
        self.device = device_client
        self.shadows = ShadowClient(device_client)
        self.channel = channel_client
        self.ingest = ingest_client
        self.config = config or LECConfig()
        self.lease = lease or default_lease
        self.sleep = sleep

    async def deploy(
        self,
        device: Device,
        profile: Profile,
        *,
        manual_ip: str | None = None,
        manual_port: int | None = None,
        bypass: bool | None = None,
        cancel: CancellationToken | None = None,
        on_step: StepCallback | None = None,
    ) -> DeploymentReport:
        """Deploy a profile to a device and configure its downstream platforms.

        Args:
            device: Target device.
            profile: Profile to apply; it is copied, never mutated.
            manual_ip: Destination IP for manual outputs (caller mode).
            manual_port: Base destination port for manual outputs; the
                intent's index is added to it.
            bypass: Continue downstream after a device failure. Defaults to
                the configured bypass_device_errors.
            cancel: Optional cancellation token.
            on_step: Called with every StepEvent as it is logged.

        Returns:
            The run's report. Failures inside the run end in FAILED and are
            recorded on the report rather than raised.

        Raises:
            WriteBlocked: If safe mode is on.
            Busy: If another deployment to the same device is running.
        """
        ensure_writable(self.config, f"deploy to device {device.id}")
        async with self.lease.hold(device.id):
            run = _DeploymentRun(
                self,
                device,
                profile,
                manual_ip=manual_ip,
                manual_port=manual_port,
                bypass=bypass,
                cancel=cancel,
                on_step=on_step,
            )
            with run_context(device.id, profile.name, run.report.run_id):
                return await run.execute()

    # --- Downstream maintenance ---------------------------------------------

    async def toggle_ingest_always_on(self, profile: Profile) -> Profile:
        """Flip the always-on flag of the profile's deployed ingest.

        Returns:
            Updated copy of the profile.

        Raises:
            ValidationError: If no ingest was deployed or the registry is
                not configured.
        """
        ensure_writable(self.config, "toggle the ingest feed")
        ingest_id = profile.ingest.last_ingest_id
        if ingest_id is None:
            raise ValidationError("Profile has no deployed ingest", field="ingest.last_ingest_id")
        client = self._require_ingest()

        updated = profile.model_copy(deep=True)
        next_state = not profile.ingest.always_on
        url = profile.ingest.last_stream_url or profile.ingest.stream_url
        payload = build_ingest_payload(
            updated, updated.ingest, url, client.account_domain, always_on=next_state
        )
        await client.set_always_on(ingest_id, payload, next_state)
        updated.ingest.always_on = next_state
        logger.info(
            "Ingest %s feed %s", ingest_id, "enabled" if next_state else "disabled"
        )
        return updated

    async def delete_channel(self, profile: Profile) -> Profile:
        """Delete the profile's deployed channel and forget its id."""
        ensure_writable(self.config, "delete the channel")
        channel_id = profile.channel.last_channel_id
        if channel_id is None:
            raise ValidationError(
                "Profile has no deployed channel", field="channel.last_channel_id"
            )
        client = self._require_channel()
        await client.delete(channel_id)

        updated = profile.model_copy(deep=True)
        updated.channel.last_channel_id = None
        updated.channel.last_stream_url = None
        _forget_remote(updated.intents_for(TARGET_CHANNEL))
        return updated

    async def delete_ingest(self, profile: Profile) -> Profile:
        """Delete the profile's deployed ingest and forget its id."""
        ensure_writable(self.config, "delete the ingest")
        ingest_id = profile.ingest.last_ingest_id
        if ingest_id is None:
            raise ValidationError("Profile has no deployed ingest", field="ingest.last_ingest_id")
        client = self._require_ingest()
        await client.delete(ingest_id)

        updated = profile.model_copy(deep=True)
        updated.ingest.last_ingest_id = None
        updated.ingest.last_stream_url = None
        _forget_remote(updated.intents_for(TARGET_INGEST))
        return updated

    def _require_channel(self) -> ChannelRegistryClient:
        if self.channel is None or not self.channel.is_configured:
            raise ValidationError("Channel registry settings missing", field="channel")
        return self.channel

    def _require_ingest(self) -> IngestRegistryClient:
        if self.ingest is None or not self.ingest.is_configured:
            raise ValidationError("Ingest registry settings missing", field="ingest")
        return self.ingest


def _forget_remote(intents: list[OutputIntent]) -> None:
    for intent in intents:
        intent.remote_id = None
        intent.last_stream_url = None


class _DeploymentRun:
    """State of a single deploy() call."""

    def __init__(
        self,
        orchestrator: DeviceOrchestrator,
        device: Device,
        profile: Profile,
        *,
        manual_ip: str | None,
        manual_port: int | None,
        bypass: bool | None,
        cancel: CancellationToken | None,
        on_step: StepCallback | None,
    ) -> None:
        self.o = orchestrator
        self.device = device
        # The configuration is frozen, so holding it is a snapshot
        self.config = orchestrator.config
        self.settings = self.config.deployment
        self.bypass = self.settings.bypass_device_errors if bypass is None else bypass
        self.manual_ip = (manual_ip or "").strip() or None
        self.manual_port = manual_port
        self.cancel = cancel
        self.on_step = on_step

        self.profile = profile.model_copy(deep=True)
        self.report = DeploymentReport(
            device_id=device.id, profile=self.profile, run_id=uuid.uuid4().hex[:8]
        )
        self.device_ip: str | None = device.ip or device.local_ip
        self.shadows: dict[str, Shadow] = {}
        self.input_id: Any = None

    # --- Step log -----------------------------------------------------------

    def _event(self, state: DeployState, status: StepStatus, message: str) -> None:
        event = StepEvent(state, status, message)
        self.report.steps.append(event)
        if self.on_step is not None:
            self.on_step(event)

    def _enter(self, state: DeployState, message: str) -> None:
        checkpoint(self.cancel)
        self.report.state = state
        logger.info("%s: %s", state.value, message)
        self._event(state, StepStatus.RUNNING, message)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._event(self.report.state, StepStatus.WARNING, message)

    # --- Driver -------------------------------------------------------------

    async def execute(self) -> DeploymentReport:
        try:
            self._init()
            try:
                await self._configure_device()
                self.report.device_ok = True
            except Cancelled:
                raise
            except LECError as e:
                if not self.bypass:
                    raise
                self.report.bypassed = True
                self.report.device_error = str(e)
                self._warn(f"Device configuration failed (bypassed): {e}")
            await self._configure_downstream()
        except LECError as e:
            self._fail(e)
            return self.report

        self.report.state = DeployState.DONE
        logger.info("Deployment finished")
        self._event(DeployState.DONE, StepStatus.OK, "Deployment finished")
        return self.report

    def _fail(self, error: LECError) -> None:
        failed_in = self.report.state
        if failed_in not in (DeployState.INIT, DeployState.CONFIGURE_DOWNSTREAM):
            self.report.device_error = str(error)
        self.report.error = error
        self.report.state = DeployState.FAILED
        logger.error("Deployment failed in %s: %s", failed_in.value, error)
        self._event(DeployState.FAILED, StepStatus.FAILED, f"{failed_in.value}: {error}")

    # --- INIT ---------------------------------------------------------------

    def _init(self) -> None:
        self._enter(DeployState.INIT, "Initializing configuration")
        allocator = PortAllocator(self.settings.port_min, self.settings.port_max)
        self.report.ports = allocator.allocate(self.profile.outputs)

    # --- Device steps -------------------------------------------------------

    async def _configure_device(self) -> None:
        await self._fetch_state()
        await self._write_encoders()
        await self._write_outputs()

    async def _read_state(self) -> dict[str, Any]:
        try:
            return await self.o.device.get_state(self.device.id)
        except TransportError as e:
            logger.debug("Device state unavailable: %s", e)
            return {}

    async def _fetch_state(self) -> None:
        self._enter(DeployState.FETCH_STATE, "Fetching device state")
        self.shadows, state = await asyncio.gather(
            self.o.shadows.read(self.device.id), self._read_state()
        )
        if state.get("external_ip"):
            self.device_ip = state["external_ip"]

        inputs = get_shadow(self.shadows, INPUTS)
        self.input_id = next(
            (entry_id(e) for e in inputs.entries if entry_id(e) is not None), None
        )
        if self.input_id is None:
            raise NotFound("Device reports no input source")

        self._reallocate_colliding_ports(get_shadow(self.shadows, OUTPUTS))

    def _replaced_output_ids(self) -> set[str]:
        return {
            _id_key(i.device_output_id)
            for i in self.profile.outputs
            if i.device_output_id is not None
        }

    def _reallocate_colliding_ports(self, outputs: Shadow) -> None:
        replaced = self._replaced_output_ids()
        in_use = {
            port
            for e in outputs.entries
            if _id_key(entry_id(e)) not in replaced
            and (port := entry_port(e)) is not None
        }
        if not in_use & set(self.report.ports.values()):
            return
        allocator = PortAllocator(self.settings.port_min, self.settings.port_max)
        self.report.ports = allocator.allocate(self.profile.outputs, in_use=in_use)
        logger.info("Reallocated ports around existing outputs: %s", self.report.ports)

    async def _read_shadows(self) -> dict[str, Shadow]:
        return await self.o.shadows.read(self.device.id)

    async def _write_encoders(self) -> None:
        self._enter(DeployState.WRITE_ENCODERS, "Configuring encoders")
        names = encoder_names(self.profile)
        before = get_shadow(self.shadows, ENCODERS)
        stale = frozenset(
            eid
            for e in before.entries
            if entry_name(e) in names and (eid := entry_id(e)) is not None
        )
        next_encoders = [e for e in before.entries if entry_name(e) not in names]
        next_encoders.append(build_video_encoder(self.profile, self.input_id))
        next_encoders.append(build_audio_encoder(self.profile, self.input_id))
        await self.o.shadows.write(self.device.id, ENCODERS, before.version, next_encoders)

        self._enter(DeployState.AWAIT_ENCODERS, "Waiting for encoders to initialize")
        confirmation = await confirm(
            self._read_shadows,
            lambda s: None
            not in resolve_encoder_ids(get_shadow(s, ENCODERS), names, before, stale),
            self.settings.encoder_confirm_delays,
            cancel=self.cancel,
            sleep=self.o.sleep,
        )
        self.shadows = confirmation.state

        self._enter(DeployState.VERIFY_ENCODERS, "Verifying encoder creation")
        encoders = get_shadow(self.shadows, ENCODERS)
        video_id, audio_id = resolve_encoder_ids(encoders, names, before, stale)
        if video_id is None or audio_id is None:
            # The device may have kept the replaced entries' ids
            video_id, audio_id = resolve_encoder_ids(encoders, names, before)
        if video_id is None:
            raise EncoderNotFound(f"Video encoder '{names[0]}' not found after creation")
        if audio_id is None:
            raise EncoderNotFound(f"Audio encoder '{names[1]}' not found after creation")
        self.report.encoder_ids = (video_id, audio_id)

    async def _write_outputs(self) -> None:
        self._enter(DeployState.WRITE_OUTPUTS, "Configuring outputs")
        video_id, audio_id = self.report.encoder_ids or (None, None)
        outputs = get_shadow(self.shadows, OUTPUTS)
        replaced = self._replaced_output_ids()
        next_outputs = [e for e in outputs.entries if _id_key(entry_id(e)) not in replaced]
        kept_ids = frozenset(
            eid for e in next_outputs if (eid := entry_id(e)) is not None
        )

        written: list[WrittenOutput] = []
        for index, intent in enumerate(self.profile.outputs):
            if intent.is_platform:
                port = self.report.ports[intent.id]
                call_mode, destination_ip = LISTENER, ""
            elif self.manual_ip and self.manual_port:
                port = int(self.manual_port) + index
                call_mode, destination_ip = CALLER, self.manual_ip
            else:
                self._warn(
                    f"Skipping manual output {intent.name or intent.id}: "
                    "no manual IP and port given"
                )
                continue
            if intent.is_platform:
                name = intent.name or f"{intent.target} {index + 1}"
            else:
                name = intent.name or f"Manual Output {index + 1}"
            next_outputs.append(
                build_srt_output(
                    name,
                    port=port,
                    video_id=video_id,
                    audio_id=audio_id,
                    call_mode=call_mode,
                    destination_ip=destination_ip,
                )
            )
            written.append(WrittenOutput(intent.id, name, port, intent.is_platform))

        if not written:
            self._warn("Profile has no outputs to write")
            return

        await self.o.shadows.write(self.device.id, OUTPUTS, outputs.version, next_outputs)

        self._enter(DeployState.AWAIT_OUTPUTS, "Waiting for outputs")
        confirmation = await confirm(
            self._read_shadows,
            lambda s: len(match_outputs(get_shadow(s, OUTPUTS), written, kept_ids))
            == len(written),
            self.settings.output_confirm_delays,
            cancel=self.cancel,
            sleep=self.o.sleep,
        )
        self.shadows = confirmation.state

        self._enter(DeployState.VERIFY_OUTPUTS, "Verifying outputs")
        matched = match_outputs(get_shadow(self.shadows, OUTPUTS), written, kept_ids)
        missing = []
        for w in written:
            intent = next(i for i in self.profile.outputs if i.id == w.intent_id)
            if w.intent_id in matched:
                intent.device_output_id = matched[w.intent_id]
            elif w.platform:
                missing.append(f"{w.name} (port {w.port})")
            else:
                self._warn(f"Manual output {w.name} was not reported by the device")
        if missing:
            raise OutputNotFound(f"Outputs not reported by device: {', '.join(missing)}")

    # --- Downstream ---------------------------------------------------------

    async def _configure_downstream(self) -> None:
        self._enter(DeployState.CONFIGURE_DOWNSTREAM, "Configuring external services")
        for platform, handler in (
            (TARGET_CHANNEL, self._configure_channel),
            (TARGET_INGEST, self._configure_ingest),
        ):
            intents = self.profile.intents_for(platform)
            if not intents:
                continue
            checkpoint(self.cancel)
            try:
                outcome = await handler(intents[0])
            except Cancelled:
                raise
            except LECError as e:
                outcome = PlatformOutcome(platform, "error", str(e))
                logger.error("%s configuration failed: %s", platform, e)
                self._event(
                    DeployState.CONFIGURE_DOWNSTREAM, StepStatus.FAILED, f"{platform}: {e}"
                )
            else:
                self._event(
                    DeployState.CONFIGURE_DOWNSTREAM,
                    StepStatus.OK,
                    f"{platform}: {outcome.message}",
                )
            self.report.outcomes[platform] = outcome

    def _stream_url(self, intent: OutputIntent) -> str:
        if not self.device_ip:
            raise ValidationError("Device IP is unknown; cannot build stream URL")
        return srt_url(self.device_ip, self.report.ports[intent.id])

    async def _configure_channel(self, intent: OutputIntent) -> PlatformOutcome:
        client = self.o._require_channel()
        url = self._stream_url(intent)
        label = channel_label(self.profile)
        payload = build_channel_payload(self.profile, self.profile.channel, url)
        result = await client.upsert(
            label, payload, remembered_id=self.profile.channel.last_channel_id
        )

        if result.entity_id is not None:
            self.profile.channel.last_channel_id = result.entity_id
        self.profile.channel.last_stream_url = url
        intent.remote_id = result.entity_id
        intent.last_stream_url = url
        return PlatformOutcome(
            TARGET_CHANNEL,
            "success",
            "Channel created" if result.created else "Channel updated",
            remote_id=result.entity_id,
            stream_url=url,
            created=result.created,
        )

    async def _configure_ingest(self, intent: OutputIntent) -> PlatformOutcome:
        client = self.o._require_ingest()
        url = self._stream_url(intent)
        label = ingest_label(self.profile)
        payload = build_ingest_payload(
            self.profile, self.profile.ingest, url, client.account_domain
        )
        # Give the device time to start listening before the ingest pulls
        await pause(self.settings.downstream_settle_seconds, self.cancel, self.o.sleep)
        result = await client.upsert(label, payload)

        if result.entity_id is not None:
            self.profile.ingest.last_ingest_id = result.entity_id
        self.profile.ingest.last_stream_url = url
        intent.remote_id = result.entity_id
        intent.last_stream_url = url
        return PlatformOutcome(
            TARGET_INGEST,
            "success",
            "Ingest created" if result.created else "Ingest updated",
            remote_id=result.entity_id,
            stream_url=url,
            created=result.created,
        )
