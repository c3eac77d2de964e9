"""Mapping from profile settings to device shadow entries.

All functions are pure. Encoder entries are named "<profile>_video" and
"<profile>_audio" so they can be found again after the device assigns ids.
"""

from __future__ import annotations

from typing import Any

from lec.profiles.models import Profile

SAMPLE_RATE_TAGS = {
    48000: "SAMPLE_48_khz",
    44100: "SAMPLE_44p1_khz",
    32000: "SAMPLE_32_khz",
}

MIX_MODES = {1: "MONO", 2: "STEREO", 6: "SURROUND_5_1"}

SRT_LATENCY_MS = 120
SRT_BW_OVERHEAD = 25

LISTENER = "LISTENER"
CALLER = "CALLER"


def encoder_names(profile: Profile) -> tuple[str, str]:
    """Deterministic (video, audio) encoder names for a profile."""
    base = profile.name or "Profile"
    return f"{base}_video", f"{base}_audio"


def build_video_encoder(profile: Profile, input_id: Any) -> dict[str, Any]:
    video = profile.encoder.video
    video_name, _ = encoder_names(profile)
    seconds = video.keyunit == "seconds"
    return {
        "type": "video",
        "config": {
            "name": video_name,
            "active": True,
            "in_channel_id": input_id,
            "selected_codec": "H265" if video.codec == "hevc" else "H264",
            "bitrate": video.bitrate_kbps,
            "bitrate_mode": "constant" if video.mode == "CBR" else "variable",
            "scaling_resolution": f"RES_{video.width}X{video.height}",
            "keyframe_interval": video.keyint or (2 if seconds else 60),
            "keyframe_unit": "SECONDS" if seconds else "FRAMES",
            "latency_mode": "NORMAL" if video.priority == "quality" else "LOW",
            "limit_to_30_fps": False,
            "klv_timestamp_enabled": video.klv,
            "cc_processing_enabled": video.captions,
            "allow_outputs_to_adjust_bitrate": False,
            "h264_profile": "PROFILE_HIGH",
            "h265_profile": "PROFILE_MAIN",
        },
    }


def build_audio_encoder(profile: Profile, input_id: Any) -> dict[str, Any]:
    audio = profile.encoder.audio
    _, audio_name = encoder_names(profile)
    return {
        "type": "audio",
        "config": {
            "name": audio_name,
            "active": True,
            "in_channel_id": input_id,
            "codec": "mpeg4_aac" if audio.codec == "aac" else audio.codec,
            "bitrate": audio.bitrate_kbps,
            "sample": SAMPLE_RATE_TAGS.get(audio.sample_rate, "SAMPLE_48_khz"),
            "mix_mode": MIX_MODES.get(audio.channels, "STEREO"),
            "bitrate_mode": "variable",
            "selected_channels": list(range(1, audio.channels + 1)),
        },
    }


def build_srt_output(
    name: str,
    *,
    port: int,
    video_id: Any,
    audio_id: Any,
    call_mode: str = LISTENER,
    destination_ip: str = "",
) -> dict[str, Any]:
    """New SRT output entry; the device assigns its id (pending as False)."""
    return {
        "id": False,
        "type": "srt",
        "config": {
            "enable": True,
            "destination_ip": destination_ip,
            "destination_port": port,
            "latency": SRT_LATENCY_MS,
            "passphrase": "",
            "bw_overhead": SRT_BW_OVERHEAD,
            "key_size": "AES128",
            "sources": {"audio": [audio_id], "video": [video_id], "data": []},
            "stream_id": "",
            "call_mode": call_mode,
            "encryption_enabled": False,
            "name": name,
        },
        "data_sources": {"data_source_ids": []},
    }
