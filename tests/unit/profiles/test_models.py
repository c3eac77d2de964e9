"""Tests for profile models."""

from __future__ import annotations

import pydantic
import pytest

from lec.profiles.models import (
    AudioEncoderSettings,
    OutputIntent,
    Profile,
    VideoEncoderSettings,
)


class TestAudioChannels:
    """Tests for the channel layout parser."""

    @pytest.mark.parametrize(
        ("raw", "count"),
        [("mono", 1), ("Stereo", 2), ("5.1", 6), ("2", 2), (6, 6)],
    )
    def test_accepted(self, raw, count: int) -> None:
        assert AudioEncoderSettings(channels=raw).channels == count

    @pytest.mark.parametrize("raw", ["quad", 4, "3"])
    def test_rejected(self, raw) -> None:
        with pytest.raises(pydantic.ValidationError):
            AudioEncoderSettings(channels=raw)


class TestVideoSettings:
    def test_defaults(self) -> None:
        video = VideoEncoderSettings()
        assert (video.width, video.height, video.bitrate_kbps) == (1920, 1080, 5000)
        assert video.keyint is None

    def test_rejects_non_positive_bitrate(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            VideoEncoderSettings(bitrate_kbps=0)

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            VideoEncoderSettings(gop=30)


class TestOutputIntent:
    def test_generated_ids_are_unique(self) -> None:
        assert OutputIntent().id != OutputIntent().id

    def test_platform_targets(self) -> None:
        assert OutputIntent(target="tellyo").is_platform
        assert OutputIntent(target="cloudport").is_platform
        assert not OutputIntent(target="manual").is_platform

    def test_unknown_target(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            OutputIntent(target="youtube")


class TestProfile:
    """Tests for Profile validation."""

    def test_duplicate_intent_ids_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError, match="Duplicate output intent id"):
            Profile(name="x", outputs=[OutputIntent(id="a"), OutputIntent(id="a")])

    def test_name_required(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            Profile(name="")

    def test_intents_for(self) -> None:
        profile = Profile(
            name="x",
            outputs=[
                OutputIntent(id="a", target="tellyo"),
                OutputIntent(id="b", target="manual"),
                OutputIntent(id="c", target="tellyo"),
            ],
        )
        assert [i.id for i in profile.intents_for("tellyo")] == ["a", "c"]
        assert profile.intents_for("cloudport") == []

    def test_nested_dicts_validate(self) -> None:
        profile = Profile.model_validate(
            {
                "name": "Studio-A",
                "encoder": {"audio": {"channels": "mono"}},
                "outputs": [{"id": "o1", "target": "cloudport"}],
                "ingest": {"always_on": True},
            }
        )
        assert profile.encoder.audio.channels == 1
        assert profile.outputs[0].target == "cloudport"
        assert profile.ingest.always_on
