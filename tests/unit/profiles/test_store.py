"""Tests for YAML profile storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from lec.profiles.models import OutputIntent, Profile
from lec.profiles.store import (
    ProfileError,
    ProfileNotFoundError,
    delete_profile,
    get_profiles_directory,
    list_profiles,
    load_profile,
    save_profile,
)


class TestProfilesDirectory:
    def test_explicit_directory(self, tmp_path: Path) -> None:
        assert get_profiles_directory(tmp_path) == tmp_path

    def test_defaults_under_data_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LEC_DATA_DIR", str(tmp_path))
        assert get_profiles_directory() == tmp_path / "profiles"


class TestSaveAndLoad:
    """Tests for save_profile and load_profile."""

    def test_saved_profile_loads_back(self, tmp_path: Path) -> None:
        profile = Profile(
            name="Studio-A",
            outputs=[OutputIntent(id="o1", target="cloudport", remote_id=900)],
        )

        path = save_profile(profile, tmp_path)
        loaded = load_profile("Studio-A", tmp_path)

        assert path == tmp_path / "Studio-A.yaml"
        assert loaded == profile
        assert not (tmp_path / "Studio-A.yaml.tmp").exists()

    def test_unset_fields_are_not_written(self, tmp_path: Path) -> None:
        save_profile(Profile(name="x"), tmp_path)

        text = (tmp_path / "x.yaml").read_text()
        assert "last_channel_id" not in text

    def test_name_defaults_to_file_stem(self, tmp_path: Path) -> None:
        (tmp_path / "Hall.yaml").write_text("description: main hall\n")

        profile = load_profile("Hall", tmp_path)

        assert profile.name == "Hall"
        assert profile.description == "main hall"

    def test_missing_profile(self, tmp_path: Path) -> None:
        with pytest.raises(ProfileNotFoundError):
            load_profile("nope", tmp_path)

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ("name: [unclosed", "Invalid YAML"),
            ("- just\n- a list\n", "must be a YAML mapping"),
            ("encoder:\n  video:\n    bitrate_kbps: -1\n", "Invalid profile"),
        ],
    )
    def test_invalid_files(self, tmp_path: Path, content: str, message: str) -> None:
        (tmp_path / "bad.yaml").write_text(content)

        with pytest.raises(ProfileError, match=message):
            load_profile("bad", tmp_path)

    @pytest.mark.parametrize("name", ["../escape", "a/b", ".hidden"])
    def test_unsafe_names_rejected(self, tmp_path: Path, name: str) -> None:
        with pytest.raises(ProfileError, match="alphanumeric"):
            load_profile(name, tmp_path)


class TestListAndDelete:
    def test_list_sorted(self, tmp_path: Path) -> None:
        for name in ("b", "a"):
            save_profile(Profile(name=name), tmp_path)
        (tmp_path / "notes.txt").write_text("ignored")

        assert list_profiles(tmp_path) == ["a", "b"]

    def test_list_missing_directory(self, tmp_path: Path) -> None:
        assert list_profiles(tmp_path / "absent") == []

    def test_delete(self, tmp_path: Path) -> None:
        save_profile(Profile(name="a"), tmp_path)

        delete_profile("a", tmp_path)

        assert list_profiles(tmp_path) == []
        with pytest.raises(ProfileNotFoundError):
            delete_profile("a", tmp_path)
