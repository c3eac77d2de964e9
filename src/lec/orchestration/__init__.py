"""Deployment workflows: the configuration state machine and its helpers."""

from lec.orchestration.cancellation import CancellationToken, checkpoint, pause
from lec.orchestration.encoders import (
    build_audio_encoder,
    build_srt_output,
    build_video_encoder,
    encoder_names,
)
from lec.orchestration.guards import ensure_writable
from lec.orchestration.lease import DeviceLease, default_lease
from lec.orchestration.orchestrator import (
    DeploymentReport,
    DeployState,
    DeviceOrchestrator,
    PlatformOutcome,
    StepEvent,
    StepStatus,
    match_outputs,
    resolve_encoder_ids,
)
from lec.orchestration.poller import Confirmation, confirm
from lec.orchestration.ports import PortAllocator
from lec.orchestration.reconciler import OutputReconciler, RestartResult

__all__ = [
    "CancellationToken",
    "Confirmation",
    "DeployState",
    "DeploymentReport",
    "DeviceLease",
    "DeviceOrchestrator",
    "OutputReconciler",
    "PlatformOutcome",
    "PortAllocator",
    "RestartResult",
    "StepEvent",
    "StepStatus",
    "build_audio_encoder",
    "build_srt_output",
    "build_video_encoder",
    "checkpoint",
    "confirm",
    "default_lease",
    "encoder_names",
    "ensure_writable",
    "match_outputs",
    "pause",
    "resolve_encoder_ids",
]
