"""Tests for config loader module."""

from __future__ import annotations

from pathlib import Path

import pytest

from lec.config.env import EnvReader
from lec.config.loader import (
    ConfigError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
    validate_config,
)
from lec.config.models import (
    ChannelRegistryConfig,
    DeviceApiConfig,
    IngestRegistryConfig,
    LECConfig,
)


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


class TestPaths:
    """Tests for get_default_config_path and get_data_dir."""

    def test_default_config_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LEC_CONFIG_PATH", raising=False)
        assert get_default_config_path() == Path.home() / ".lec" / "config.toml"

    def test_config_path_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEC_CONFIG_PATH", "/custom/config.toml")
        assert get_default_config_path() == Path("/custom/config.toml")

    def test_data_dir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LEC_DATA_DIR", raising=False)
        assert get_data_dir() == Path.home() / ".lec"
        monkeypatch.setenv("LEC_DATA_DIR", "/srv/lec")
        assert get_data_dir() == Path("/srv/lec")


class TestLoadConfigFile:
    """Tests for load_config_file function."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_config_file(tmp_path / "absent.toml") == {}

    def test_parses_toml(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, '[device]\ntoken = "abc"\n')
        assert load_config_file(path) == {"device": {"token": "abc"}}

    def test_invalid_toml_lenient(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[device\n")
        assert load_config_file(path) == {}

    def test_invalid_toml_strict(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[device\n")
        with pytest.raises(ConfigError, match="Failed to load"):
            load_config_file(path, strict=True)


class TestGetConfig:
    """Tests for get_config precedence."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = get_config(tmp_path / "absent.toml", EnvReader(env={}))

        assert config == LECConfig()
        assert config.deployment.port_min == 10001
        assert config.deployment.encoder_confirm_delays == (1.0, 2.0, 4.0, 8.0, 8.0)

    def test_file_values(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path,
            """
profiles_dir = "/srv/profiles"

[channel]
api_endpoint = "https://x.test/rest/open/v2"
organization_id = "Acme"

[deployment]
port_min = 12000
port_max = 12010
toggle_confirm_delays = [0.5, 1]
""",
        )

        config = get_config(path, EnvReader(env={}))

        assert config.channel.organization_id == "Acme"
        assert config.deployment.port_min == 12000
        assert config.deployment.toggle_confirm_delays == (0.5, 1.0)
        assert config.profiles_dir == Path("/srv/profiles")

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path, '[device]\ntoken = "from-file"\n[deployment]\nsafe_mode = false\n'
        )
        env = EnvReader(
            env={
                "LEC_DEVICE_TOKEN": "from-env",
                "LEC_SAFE_MODE": "yes",
                "LEC_INGEST_RELEASE": "older",
                "LEC_PROFILES_DIR": "/tmp/p",
                "LEC_PORT_MAX": "10200",
                "LEC_TOGGLE_CONFIRM_DELAYS": "0.1,0.2",
                "LEC_RESTART_PAUSE": "0.5",
            }
        )

        config = get_config(path, env)

        assert config.device.token == "from-env"
        assert config.deployment.safe_mode is True
        assert config.ingest.release == "older"
        assert config.profiles_dir == Path("/tmp/p")
        assert config.deployment.port_max == 10200
        assert config.deployment.toggle_confirm_delays == (0.1, 0.2)
        assert config.deployment.restart_pause_seconds == 0.5

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[device]\ntokn = 'x'\n")

        with pytest.raises(ConfigError, match="Unknown keys in \\[device\\]"):
            get_config(path, EnvReader(env={}))

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[deployment]\nport_min = 20000\nport_max = 10000\n")

        with pytest.raises(ConfigError, match="Invalid \\[deployment\\]"):
            get_config(path, EnvReader(env={}))

    def test_section_must_be_table(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, 'device = "x"\n')

        with pytest.raises(ConfigError, match="must be a table"):
            get_config(path, EnvReader(env={}))


class TestValidateConfig:
    """Tests for validate_config cross-field checks."""

    def test_missing_device_token(self) -> None:
        assert validate_config(LECConfig()) == ["Device API token is not set"]

    def test_complete_config_is_valid(self) -> None:
        config = LECConfig(
            device=DeviceApiConfig(token="t"),
            channel=ChannelRegistryConfig(
                api_endpoint="https://x.test", token="t", organization_id="1"
            ),
            ingest=IngestRegistryConfig(base_host="acme.test", auth_token="t"),
        )
        assert validate_config(config) == []

    def test_half_configured_registries(self) -> None:
        config = LECConfig(
            device=DeviceApiConfig(token="t"),
            channel=ChannelRegistryConfig(api_endpoint="https://x.test"),
            ingest=IngestRegistryConfig(base_host="acme.test"),
        )
        errors = validate_config(config)

        assert "Channel registry endpoint is set but token is not" in errors
        assert "Ingest registry host is set but auth token is not" in errors
