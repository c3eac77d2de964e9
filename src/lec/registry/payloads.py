"""Payload builders for the downstream registries.

Every function here is pure: given a profile and a stream URL it returns the
JSON body a registry expects.
"""

from __future__ import annotations

import re
import time
from typing import Any
from urllib.parse import urlsplit

from lec.errors import ValidationError
from lec.profiles.models import ChannelConfig, IngestConfig, Profile

VIDEO_PID = 256
AUDIO_PID = 257
DATA_PID = 500

_UNSAFE_LABEL_CHARS = re.compile(r"[^A-Za-z0-9_\-]")


def sanitize_label(label: str | None, fallback: str = "lec_ingest") -> str:
    """Lower-case label with every character outside [A-Za-z0-9_-] as "_".

    >>> sanitize_label("Studio-A")
    'studio-a'
    """
    base = (label or fallback or "lec_ingest").strip()
    return _UNSAFE_LABEL_CHARS.sub("_", base).lower()


def channel_label(profile: Profile) -> str:
    return profile.channel.channel_name or sanitize_label(profile.name, "lec_channel")


def ingest_label(profile: Profile) -> str:
    return profile.ingest.ingest_label or sanitize_label(profile.name, "lec_ingest")


def srt_url(ip: str, port: int) -> str:
    return f"srt://{ip}:{port}"


def account_domain(base_host: str) -> str:
    """First DNS label of the ingest registry host ("acme" for acme.example.com)."""
    host = base_host.strip()
    if not host:
        return ""
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"
    hostname = urlsplit(host).hostname or ""
    return hostname.split(".")[0]


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_channel_payload(
    profile: Profile,
    channel_cfg: ChannelConfig,
    stream_url: str,
    now: float | None = None,
) -> dict[str, Any]:
    """Build a channel registry create/update body.

    Args:
        profile: Profile being deployed (used for the default label).
        channel_cfg: The profile's channel record.
        stream_url: srt:// URL the channel pulls from. The stream URL set on
            the record is used only when this is empty.
        now: Current Unix time, injectable for tests.

    Raises:
        ValidationError: If the channel profile name is missing.
    """
    if not channel_cfg.profile:
        raise ValidationError(
            "Channel profile name is required", field="channel.profile"
        )

    payload: dict[str, Any] = {
        "name": channel_cfg.channel_name or sanitize_label(profile.name, "lec_channel"),
        "profile": channel_cfg.profile,
        "chunkLength": channel_cfg.chunk_length,
        "streamUrl": stream_url or channel_cfg.stream_url.strip(),
        "startDataCollectionWithRecording": channel_cfg.start_data_collection,
    }

    start = channel_cfg.twenty_four_start_time
    if start is not None and start > 0:
        payload["twentyFourStartTime"] = int(start)
    elif channel_cfg.start_data_collection:
        payload["twentyFourStartTime"] = int(time.time() if now is None else now)
    return payload


def build_tracks(profile: Profile, ingest_cfg: IngestConfig) -> list[dict[str, Any]]:
    """Track list of an ingest flow, derived from the encoder settings."""
    video = profile.encoder.video
    audio = profile.encoder.audio
    tracks: list[dict[str, Any]] = [
        {
            "type": "video",
            "tag": "Studio",
            "codec": video.codec,
            "resolution": f"{video.height}p{_fmt_number(video.fps)}",
            "frame_rate": _fmt_number(video.fps),
            "pid": VIDEO_PID,
        },
        {
            "type": "audio",
            "tag": "eng",
            "codec": audio.codec,
            "enable_live_captioning": True,
            "pid": AUDIO_PID,
        },
    ]
    if ingest_cfg.include_data:
        tracks.append(
            {
                "type": "data",
                "tag": "data1",
                "codec": ingest_cfg.data_codec or "scte",
                "pid": DATA_PID,
            }
        )
    return tracks


def build_ingest_payload(
    profile: Profile,
    ingest_cfg: IngestConfig,
    stream_url: str,
    account_domain: str,
    always_on: bool | None = None,
) -> dict[str, Any]:
    """Build an ingest registry create/update body with one primary flow.

    Args:
        always_on: Override for the flow's always-on flag (used by the
            feed toggle); defaults to the record's own flag.
    """
    flow = {
        "name": ingest_cfg.flow_name or "primary",
        "compute_profile": ingest_cfg.compute_profile,
        "stream_url": stream_url,
        "protocol": ingest_cfg.protocol,
        "stream_mode": ingest_cfg.stream_mode,
        "source_head_start": ingest_cfg.head_start,
        "source_elic_delay": ingest_cfg.elic_delay,
        "pcr_pid": ingest_cfg.pcr_pid,
        "enable_stream_parsing": ingest_cfg.enable_stream_parsing,
        "record": ingest_cfg.record,
        "always_on": ingest_cfg.always_on if always_on is None else always_on,
        "enable_low_res": ingest_cfg.include_low_res,
        "tracks": build_tracks(profile, ingest_cfg),
    }
    return {
        "ingest_label": ingest_cfg.ingest_label or sanitize_label(profile.name, "lec_ingest"),
        "account_domain": account_domain,
        "ingest_flows": [flow],
    }
