"""YAML profile storage.

Each profile is stored as <profiles_dir>/<name>.yaml. The directory comes
from the loaded configuration (profiles_dir), falling back to
<data_dir>/profiles.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pydantic
import yaml

from lec.profiles.models import Profile

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9 _.-]*$")


class ProfileError(Exception):
    """Error loading, validating or saving a profile."""


class ProfileNotFoundError(ProfileError):
    """Profile does not exist."""


def get_profiles_directory(profiles_dir: Path | None = None) -> Path:
    """Resolve the profiles directory.

    Args:
        profiles_dir: Explicit directory (e.g. LECConfig.profiles_dir).

    Returns:
        profiles_dir if given, else <data_dir>/profiles.
    """
    if profiles_dir is not None:
        return profiles_dir
    from lec.config.loader import get_data_dir

    return get_data_dir() / "profiles"


def _profile_path(name: str, profiles_dir: Path | None) -> Path:
    if not _NAME_PATTERN.match(name):
        raise ProfileError(
            f"Profile name must be alphanumeric (with space, ., - or _): {name}"
        )
    return get_profiles_directory(profiles_dir) / f"{name}.yaml"


def list_profiles(profiles_dir: Path | None = None) -> list[str]:
    """List available profile names, sorted."""
    directory = get_profiles_directory(profiles_dir)
    if not directory.exists():
        return []
    return sorted(
        p.stem
        for p in directory.glob("*.yaml")
        if p.is_file() and not p.name.startswith(".")
    )


def load_profile(name: str, profiles_dir: Path | None = None) -> Profile:
    """Load a profile by name.

    Raises:
        ProfileNotFoundError: If the profile file doesn't exist.
        ProfileError: If the file is not valid YAML or fails validation.
    """
    path = _profile_path(name, profiles_dir)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile not found: {name}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in profile {name}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Profile {name} must be a YAML mapping")
    data.setdefault("name", name)

    try:
        return Profile.model_validate(data)
    except pydantic.ValidationError as e:
        raise ProfileError(f"Invalid profile {name}: {e}") from e


def save_profile(profile: Profile, profiles_dir: Path | None = None) -> Path:
    """Write a profile to <profiles_dir>/<profile.name>.yaml.

    The file is written to a temporary sibling first and then renamed, so
    a crash never leaves a half-written profile behind.

    Returns:
        Path of the written file.
    """
    path = _profile_path(profile.name, profiles_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    text = yaml.safe_dump(
        profile.model_dump(mode="json", exclude_none=True),
        sort_keys=False,
        allow_unicode=True,
    )
    tmp_path = path.with_suffix(".yaml.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)
    logger.debug("Saved profile %s to %s", profile.name, path)
    return path


def delete_profile(name: str, profiles_dir: Path | None = None) -> None:
    """Delete a profile file.

    Raises:
        ProfileNotFoundError: If the profile doesn't exist.
    """
    path = _profile_path(name, profiles_dir)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile not found: {name}")
    path.unlink()
    logger.info("Deleted profile %s", name)
