"""Pydantic models for deployment profiles.

A profile bundles encoder settings, the ordered list of output intents and
the downstream channel and ingest records. Profiles live in YAML files and
are applied to devices; the deployment workflow records device and remote
identifiers back onto them.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TARGET_CHANNEL = "tellyo"
TARGET_INGEST = "cloudport"
TARGET_MANUAL = "manual"

PLATFORM_TARGETS = (TARGET_CHANNEL, TARGET_INGEST)

_CHANNEL_LAYOUTS = {"mono": 1, "stereo": 2, "5.1": 6}


def _new_intent_id() -> str:
    return uuid.uuid4().hex[:8]


class VideoEncoderSettings(BaseModel):
    """Video encoder parameters."""

    model_config = ConfigDict(extra="forbid")

    codec: Literal["h264", "hevc"] = "h264"
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)
    fps: float = Field(default=60, gt=0)
    mode: Literal["CBR", "VBR"] = "CBR"
    bitrate_kbps: int = Field(default=5000, gt=0)
    keyint: int | None = Field(default=None, gt=0)
    keyunit: Literal["frames", "seconds"] = "frames"
    priority: Literal["quality", "latency"] = "latency"
    klv: bool = False
    captions: bool = False


class AudioEncoderSettings(BaseModel):
    """Audio encoder parameters."""

    model_config = ConfigDict(extra="forbid")

    codec: Literal["aac", "opus"] = "aac"
    bitrate_kbps: int = Field(default=128, gt=0)
    channels: int = 2
    sample_rate: int = 48000

    @field_validator("channels", mode="before")
    @classmethod
    def parse_channels(cls, v: object) -> object:
        """Accept a layout name (mono, stereo, 5.1) or a channel count."""
        if isinstance(v, str):
            key = v.strip().casefold()
            if key in _CHANNEL_LAYOUTS:
                return _CHANNEL_LAYOUTS[key]
            if key.isdigit():
                v = int(key)
            else:
                raise ValueError(
                    f"Invalid channel layout '{v}'. Must be one of: "
                    f"{', '.join(_CHANNEL_LAYOUTS)}"
                )
        if v not in (1, 2, 6):
            raise ValueError(f"Invalid channel count {v}. Must be 1, 2 or 6")
        return v


class EncoderSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video: VideoEncoderSettings = Field(default_factory=VideoEncoderSettings)
    audio: AudioEncoderSettings = Field(default_factory=AudioEncoderSettings)


class OutputIntent(BaseModel):
    """One egress target of a profile.

    device_output_id, remote_id and last_stream_url are filled in by a
    deployment and cleared when the downstream entity is deleted.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_intent_id, min_length=1)
    target: Literal["tellyo", "cloudport", "manual"] = TARGET_CHANNEL
    name: str = ""
    device_output_id: int | str | None = None
    remote_id: int | str | None = None
    last_stream_url: str | None = None

    @property
    def is_platform(self) -> bool:
        return self.target in PLATFORM_TARGETS


class ChannelConfig(BaseModel):
    """Downstream channel record (platform A)."""

    model_config = ConfigDict(extra="forbid")

    channel_name: str = ""
    # Channel registry profile name, e.g. "1080p60"; required to deploy
    profile: str = ""
    chunk_length: int = Field(default=0, ge=0)
    start_data_collection: bool = False
    # Unix timestamp (seconds) for the 24h recording start
    twenty_four_start_time: int | None = None
    stream_url: str = ""
    last_channel_id: int | str | None = None
    last_stream_url: str | None = None


class IngestConfig(BaseModel):
    """Downstream ingest record (platform B)."""

    model_config = ConfigDict(extra="forbid")

    ingest_label: str = ""
    flow_name: str = "primary"
    compute_profile: Literal["medium", "high"] = "medium"
    stream_url: str = ""
    protocol: Literal["udp", "rtp"] = "udp"
    stream_mode: Literal["ts", "tr07"] = "ts"
    head_start: float = 11.9
    elic_delay: float = 6.8
    pcr_pid: int = 256
    enable_stream_parsing: bool = True
    record: bool = False
    always_on: bool = False
    include_low_res: bool = True
    include_data: bool = False
    data_codec: str = "scte"
    last_ingest_id: int | str | None = None
    last_stream_url: str | None = None


class Profile(BaseModel):
    """A named deployment profile."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str | None = None
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)
    outputs: list[OutputIntent] = Field(default_factory=list)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)

    @model_validator(mode="after")
    def check_unique_intent_ids(self) -> Profile:
        """Output intent ids key port allocations and must be unique."""
        seen: set[str] = set()
        for intent in self.outputs:
            if intent.id in seen:
                raise ValueError(f"Duplicate output intent id '{intent.id}'")
            seen.add(intent.id)
        return self

    def intents_for(self, target: str) -> list[OutputIntent]:
        return [i for i in self.outputs if i.target == target]
