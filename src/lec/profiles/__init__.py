"""Deployment profiles: pydantic models and YAML storage."""

from lec.profiles.models import (
    PLATFORM_TARGETS,
    TARGET_CHANNEL,
    TARGET_INGEST,
    TARGET_MANUAL,
    AudioEncoderSettings,
    ChannelConfig,
    EncoderSettings,
    IngestConfig,
    OutputIntent,
    Profile,
    VideoEncoderSettings,
)
from lec.profiles.store import (
    ProfileError,
    ProfileNotFoundError,
    delete_profile,
    get_profiles_directory,
    list_profiles,
    load_profile,
    save_profile,
)

__all__ = [
    "PLATFORM_TARGETS",
    "TARGET_CHANNEL",
    "TARGET_INGEST",
    "TARGET_MANUAL",
    "AudioEncoderSettings",
    "ChannelConfig",
    "EncoderSettings",
    "IngestConfig",
    "OutputIntent",
    "Profile",
    "ProfileError",
    "ProfileNotFoundError",
    "VideoEncoderSettings",
    "delete_profile",
    "get_profiles_directory",
    "list_profiles",
    "load_profile",
    "save_profile",
]
