"""Shared test fixtures for the live encoder configurator.

FakeDevice and FakeRegistries are scripted in-memory backends served
through httpx.MockTransport, so the real clients are exercised end to end
without any network access.
"""

from __future__ import annotations

import copy
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio

from lec.config import (
    ChannelRegistryConfig,
    DeploymentConfig,
    DeviceApiConfig,
    IngestRegistryConfig,
    LECConfig,
)
from lec.device.client import DeviceClient
from lec.profiles.models import (
    ChannelConfig,
    OutputIntent,
    Profile,
)
from lec.registry.channel import ChannelRegistryClient, clear_org_cache
from lec.registry.ingest import IngestRegistryClient
from lec.registry.transport import RegistryTransport

DEVICE_API = "https://devices.test/v1"
CHANNEL_API = "https://channels.test/rest/open/v2"
INGEST_HOST = "acme.ingest.test"


def _json(data: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=data)


class FakeDevice:
    """In-memory device API.

    Writes to a shadow assign ids to new entries (id missing or False) and
    bump the version. With lag=N a write only becomes visible on the
    (N+1)th shadow read after it.
    """

    def __init__(
        self,
        device_id: str = "dev-1",
        *,
        name: str = "Studio Encoder",
        inputs: list[dict[str, Any]] | None = None,
        encoders: list[dict[str, Any]] | None = None,
        outputs: list[dict[str, Any]] | None = None,
        external_ip: str | None = "203.0.113.7",
        map_shape: bool = False,
        lag: int = 0,
    ) -> None:
        self.device_id = device_id
        self.name = name
        self.external_ip = external_ip
        self.map_shape = map_shape
        self.lag = lag
        self.shadows: dict[str, dict[str, Any]] = {
            "Inputs": {"version": 1, "state": inputs if inputs is not None else [{"id": 1}]},
            "Encoders": {"version": 1, "state": list(encoders or [])},
            "Outputs": {"version": 1, "state": list(outputs or [])},
        }
        self.next_id = {"Encoders": 10, "Outputs": 20}
        self.pending: list[list[Any]] = []
        self.commands: list[dict[str, Any]] = []
        self.output_posts: list[Any] = []
        self.requests: list[tuple[str, str]] = []
        self.shadow_reads = 0
        self.dropped_shadows: set[str] = set()
        self.failures: dict[tuple[str, str], int] = {}
        self.garbled: set[tuple[str, str]] = set()
        self.alerts: list[dict[str, Any]] = []

    # --- Simulation ---------------------------------------------------------

    def _apply(self, name: str, new_state: list[dict[str, Any]]) -> None:
        shadow = self.shadows[name]
        current = {e.get("id"): e for e in shadow["state"] if e.get("id") not in (None, False)}
        result = []
        for entry in copy.deepcopy(new_state):
            eid = entry.get("id")
            if eid in (None, False):
                eid = self.next_id.get(name, 100)
                self.next_id[name] = eid + 1
                entry["id"] = eid
            elif eid in current:
                merged = copy.deepcopy(current[eid])
                merged_cfg = {**merged.get("config", {}), **entry.get("config", {})}
                merged.update(entry)
                merged["config"] = merged_cfg
                entry = merged
            if name == "Outputs":
                entry["output_id"] = entry["id"]
            result.append(entry)
        shadow["state"] = result
        shadow["version"] += 1

    def _settle(self) -> None:
        still = []
        for item in self.pending:
            if item[0] <= 0:
                self._apply(item[1], item[2])
            else:
                item[0] -= 1
                still.append(item)
        self.pending = still

    def entries(self, name: str) -> list[dict[str, Any]]:
        return self.shadows[name]["state"]

    def document(self) -> dict[str, Any]:
        shadows = []
        for name, shadow in self.shadows.items():
            state: Any = shadow["state"]
            if self.map_shape:
                state = {
                    str(e["id"]): {k: v for k, v in e.items() if k != "id"}
                    for e in state
                }
            shadows.append(
                {
                    "shadow_name": name,
                    "current_version": shadow["version"],
                    "reported": {"state": state},
                }
            )
        return {"shadows": shadows}

    # --- HTTP ---------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path.removeprefix("/v1")
        self.requests.append((method, path))

        for (fail_method, fail_suffix), status in self.failures.items():
            if method == fail_method and path.endswith(fail_suffix):
                return httpx.Response(status, text="simulated failure")
        if any(method == m and path.endswith(s) for m, s in self.garbled):
            return httpx.Response(
                200, text="{not json", headers={"content-type": "application/json"}
            )

        base = f"/devices/{self.device_id}"
        if method == "GET" and path == "/devices":
            return _json(
                {
                    "devices": [
                        {
                            "device_guid": self.device_id,
                            "display_name": self.name,
                            "public_ip": "198.51.100.1",
                        }
                    ]
                }
            )
        if method == "GET" and path == f"{base}/state":
            state = {"online": True, "video_bitrate": 4800}
            if self.external_ip:
                state["external_ip"] = self.external_ip
            return _json({"state": state})
        if method == "GET" and path == f"{base}/shadows":
            self.shadow_reads += 1
            self._settle()
            return _json(self.document())
        if method == "POST" and path == f"{base}/shadows/commands":
            body = json.loads(request.content)
            for command in body["commands"]:
                self.commands.append(command)
                name = command["shadow_name"]
                if name in self.dropped_shadows:
                    continue
                if command["target_version"] != self.shadows[name]["version"]:
                    return httpx.Response(409, text="version conflict")
                self.pending.append([self.lag, name, command["state"]])
            if self.lag == 0:
                self._settle()
            return _json({"status": "accepted"})
        if method == "POST" and path == f"{base}/outputs":
            ops = json.loads(request.content)
            self.output_posts.append(ops)
            for op in ops:
                for entry in self.entries("Outputs"):
                    if str(entry.get("id")) == str(op["output_id"]):
                        entry.setdefault("config", {})["enable"] = op["enable"]
            return _json({"status": "ok"})
        if method == "POST" and path == f"{base}/commands":
            return _json({"status": "queued"})
        if method == "PATCH" and path == base:
            body = json.loads(request.content)
            self.name = body.get("display_name", body.get("name", self.name))
            return _json({"device_guid": self.device_id, "display_name": self.name})
        if path == f"/device_alerts/{self.device_id}" and method in ("PATCH", "DELETE"):
            return _json({})
        if method == "GET" and path == "/device_alerts":
            return _json({"alerts": self.alerts})
        return httpx.Response(404, text=f"no route {method} {path}")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def commands_for(self, name: str) -> list[dict[str, Any]]:
        return [c for c in self.commands if c["shadow_name"] == name]


class FakeRegistries:
    """In-memory channel (v2 dialect) and ingest registries on one transport."""

    def __init__(self, org_id: int = 42) -> None:
        self.org_id = org_id
        self.organizations = [{"id": org_id, "name": "Acme"}]
        self.channels: dict[int, dict[str, Any]] = {}
        self.ingests: dict[int, dict[str, Any]] = {}
        self.next_channel = 500
        self.next_ingest = 900
        self.requests: list[tuple[str, str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path, body))

        if request.url.host == "channels.test":
            return self._channel(method, path, body)
        return self._ingest(method, path, body, request)

    def _channel(self, method: str, path: str, body: Any) -> httpx.Response:
        v2 = "/rest/open/v2"
        channels = f"{v2}/organizations/{self.org_id}/channels"
        if method == "GET" and path == f"{v2}/organizations":
            return _json(self.organizations)
        if method == "POST" and path == "/rest/open/v1/channel/get":
            return _json({"channels": list(self.channels.values())})
        if method == "GET" and path == channels:
            return _json({"channels": list(self.channels.values())})
        if method == "POST" and path == channels:
            channel = {**body, "id": self.next_channel}
            self.channels[self.next_channel] = channel
            self.next_channel += 1
            return _json(channel, 201)
        if path.startswith(f"{channels}/"):
            channel_id = int(path.rsplit("/", 1)[1])
            if channel_id not in self.channels:
                return httpx.Response(404, json={"error": "Channel not found"})
            if method == "PUT":
                self.channels[channel_id] = {**body, "id": channel_id}
                return _json(self.channels[channel_id])
            if method == "DELETE":
                del self.channels[channel_id]
                return httpx.Response(204)
        return httpx.Response(404, json={"error": f"no route {method} {path}"})

    def _ingest(
        self, method: str, path: str, body: Any, request: httpx.Request
    ) -> httpx.Response:
        base = "/epub/v1/api/ingests"
        if method == "GET" and path == base:
            label = request.url.params.get("ingest_label")
            found = [
                i for i in self.ingests.values()
                if not label or i["ingest_label"].casefold() == label.casefold()
            ]
            return _json({"ingests": found})
        if method == "POST" and path == base:
            ingest = {**body, "id": self.next_ingest}
            self.ingests[self.next_ingest] = ingest
            self.next_ingest += 1
            return _json({"ingest": ingest}, 201)
        if path.startswith(f"{base}/"):
            ingest_id = int(path.rsplit("/", 1)[1])
            if ingest_id not in self.ingests:
                return httpx.Response(404, json={"message": "Ingest not found"})
            if method == "PUT":
                self.ingests[ingest_id] = {**body, "id": ingest_id}
                return _json(self.ingests[ingest_id])
            if method == "DELETE":
                del self.ingests[ingest_id]
                return httpx.Response(204)
        return httpx.Response(404, json={"message": f"no route {method} {path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, fragment: str) -> int:
        return sum(1 for m, p, _ in self.requests if m == method and fragment in p)


class RecordingSleep:
    """Sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def _reset_org_cache():
    """Organization resolutions must not leak between tests."""
    clear_org_cache()
    yield
    clear_org_cache()


@pytest.fixture
def lec_config(tmp_path) -> LECConfig:
    """Configuration pointing at the fake backends."""
    return LECConfig(
        device=DeviceApiConfig(base_url=DEVICE_API, token="PAT test-token"),
        channel=ChannelRegistryConfig(
            api_endpoint=CHANNEL_API, organization_id="Acme", token="channel-token"
        ),
        ingest=IngestRegistryConfig(base_host=INGEST_HOST, auth_token="ingest-token"),
        deployment=DeploymentConfig(),
        profiles_dir=tmp_path / "profiles",
    )


@pytest.fixture
def make_device():
    """Factory for FakeDevice instances with custom shadows."""
    return FakeDevice


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def registries() -> FakeRegistries:
    return FakeRegistries()


@pytest.fixture
def make_registries():
    return FakeRegistries


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def device_client(lec_config: LECConfig, fake_device: FakeDevice):
    client = DeviceClient(lec_config.device, transport=fake_device.transport())
    yield client
    await client.aclose()


def make_profile(name: str = "Studio-A", *targets: str) -> Profile:
    """Profile with one output intent per target (default: one channel output)."""
    return Profile(
        name=name,
        outputs=[
            OutputIntent(id=f"intent-{i}", target=t)
            for i, t in enumerate(targets or ("tellyo",))
        ],
        channel=ChannelConfig(profile="standard"),
    )


@pytest.fixture(name="make_profile")
def make_profile_fixture():
    """Factory for profiles: make_profile(name, *targets)."""
    return make_profile


@pytest.fixture
def studio_profile() -> Profile:
    return make_profile()


@pytest_asyncio.fixture
async def channel_client(lec_config: LECConfig, registries: FakeRegistries):
    client = ChannelRegistryClient(
        lec_config.channel, RegistryTransport(transport=registries.transport())
    )
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def ingest_client(lec_config: LECConfig, registries: FakeRegistries):
    client = IngestRegistryClient(
        lec_config.ingest, RegistryTransport(transport=registries.transport())
    )
    yield client
    await client.aclose()
