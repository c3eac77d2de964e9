"""Device cloud API client.

This module provides an async HTTP client for the device cloud API: device
listing and state, shadow documents and commands, output operations, device
commands and alerts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from lec.config.models import DeviceApiConfig
from lec.errors import TransportError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

REBOOT_COMMAND = {"command": "reboot_device"}


def auth_header(token: str) -> str:
    """Build the Authorization header value for a device API token.

    Tokens already prefixed with "PAT " or "Bearer " are used verbatim.
    Dotted tokens are JWTs and get "Bearer "; anything else is a personal
    access token and gets "PAT ".
    """
    token = token.strip()
    if not token:
        return ""
    if token.startswith(("PAT ", "Bearer ")):
        return token
    return f"Bearer {token}" if "." in token else f"PAT {token}"


def next_page_token(response: Any) -> str | None:
    """Extract the next pagination token under any of its known names."""
    if not isinstance(response, dict):
        return None
    for key in ("pagination_token_next", "next_pagination_token", "next_page_token"):
        if response.get(key):
            return response[key]
    pagination = response.get("pagination")
    if isinstance(pagination, dict) and pagination.get("next_token"):
        return pagination["next_token"]
    return None


@dataclass(frozen=True)
class Device:
    """Device as listed by the cloud API."""

    id: str
    name: str
    ip: str | None = None  # Public/external address, used in stream URLs
    local_ip: str | None = None


@dataclass
class DeviceSummary:
    """Device listing entry merged with its latest state and shadows."""

    device: Device
    state: dict[str, Any] | None
    shadows: Any | None

    @property
    def online(self) -> bool:
        return bool(self.state and self.state.get("online"))

    @property
    def ip(self) -> str | None:
        """Best address for stream URLs: live external IP, then listed IP."""
        if self.state and self.state.get("external_ip"):
            return self.state["external_ip"]
        return self.device.ip

    @property
    def video_bitrate_kbps(self) -> float:
        state = self.state or {}
        for path in (("encoder", "video"), ("video",), ("metrics", "video")):
            node: Any = state
            for key in path:
                node = node.get(key) if isinstance(node, dict) else None
            if isinstance(node, dict) and node.get("bitrate_kbps") is not None:
                return float(node["bitrate_kbps"])
        return 0.0


@dataclass
class AlertPage:
    """One page of device alerts."""

    alerts: list[dict[str, Any]] = field(default_factory=list)
    next_token: str | None = None


class DeviceClient:
    """Async HTTP client for the device cloud API.

    The underlying httpx.AsyncClient is created lazily; use the client as an
    async context manager or call aclose() when done.
    """

    def __init__(
        self,
        config: DeviceApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Device API connection configuration.
            transport: Optional httpx transport (tests inject MockTransport).
        """
        self._base_url = config.base_url.rstrip("/")
        self._token = config.token
        self._org_guid = config.org_guid.strip()
        self._timeout = config.timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        value = auth_header(self._token)
        if value:
            headers["Authorization"] = value
        return headers

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DeviceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        scoped: bool = True,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            params: Query parameters (repeated keys allowed).
            json: Optional JSON body.
            scoped: Append org_guid when one is configured.

        Returns:
            Decoded JSON, or {} for empty or non-JSON success bodies.

        Raises:
            ValidationError: If no API token is configured.
            TransportError: On network failure or non-2xx response.
        """
        if not self._token:
            raise ValidationError("Device API token is not set", field="device.token")

        query = list(params or [])
        if scoped and self._org_guid:
            query.append(("org_guid", self._org_guid))

        logger.debug("%s %s", method, path)
        client = self._get_client()
        try:
            response = await client.request(
                method, path, params=query or None, json=json
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Device API timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Cannot reach device API: {e}") from e

        if response.is_error:
            text = response.text
            raise TransportError(
                f"{response.status_code} {text or response.reason_phrase}",
                status_code=response.status_code,
                body=text,
            )

        if "application/json" in response.headers.get("content-type", ""):
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(
                    "Invalid JSON response from device API",
                    status_code=response.status_code,
                    body=response.text,
                ) from e
        return {}

    # --- Devices -----------------------------------------------------------

    async def list_devices(self) -> list[Device]:
        """List every device visible to the token."""
        data = await self._request("GET", "/devices")
        raw = data.get("devices", []) if isinstance(data, dict) else data or []
        devices = []
        for entry in raw:
            guid = entry.get("device_guid") or entry.get("id")
            if not guid:
                continue
            devices.append(
                Device(
                    id=guid,
                    name=entry.get("display_name") or entry.get("name") or guid,
                    ip=entry.get("public_ip")
                    or entry.get("external_ip")
                    or entry.get("ip_address"),
                    local_ip=entry.get("ip_address"),
                )
            )
        return devices

    async def get_state(self, device_id: str) -> dict[str, Any]:
        """Get the realtime state of a device (online flag, IP, bitrates)."""
        data = await self._request("GET", f"/devices/{device_id}/state")
        if isinstance(data, dict) and isinstance(data.get("state"), dict):
            return data["state"]
        return data if isinstance(data, dict) else {}

    async def get_shadows(self, device_id: str) -> Any:
        """Get the raw shadows document of a device."""
        return await self._request("GET", f"/devices/{device_id}/shadows")

    async def send_shadow_commands(
        self, device_id: str, commands: list[dict[str, Any]]
    ) -> Any:
        """Send a batch of shadow "set" commands.

        Args:
            device_id: Device GUID.
            commands: Items of {shadow_name, target_version, state}.
        """
        payload = {"command_type": "set", "commands": commands}
        return await self._request(
            "POST", f"/devices/{device_id}/shadows/commands", json=payload
        )

    async def post_outputs(self, device_id: str, ops: list[dict[str, Any]]) -> Any:
        """Apply targeted output operations, e.g. [{output_id, enable}]."""
        return await self._request("POST", f"/devices/{device_id}/outputs", json=ops)

    async def post_command(
        self, device_id: str, payload: dict[str, Any], *, scoped: bool = True
    ) -> Any:
        """Send a device command."""
        return await self._request(
            "POST", f"/devices/{device_id}/commands", json=payload, scoped=scoped
        )

    async def reboot(self, device_id: str) -> Any:
        """Reboot a device. The command is sent without organization scope."""
        return await self.post_command(device_id, REBOOT_COMMAND, scoped=False)

    async def rename_device(self, device_id: str, display_name: str) -> Any:
        """Rename a device.

        Older tenants reject display_name; the rename is retried once with
        the legacy name field.
        """
        try:
            return await self._request(
                "PATCH", f"/devices/{device_id}", json={"display_name": display_name}
            )
        except TransportError as e:
            logger.debug("Rename with display_name failed (%s), retrying", e)
            return await self._request(
                "PATCH", f"/devices/{device_id}", json={"name": display_name}
            )

    # --- Alerts ------------------------------------------------------------

    async def list_alerts(
        self,
        device_ids: list[str],
        *,
        silenced: bool = True,
        size: int = 20,
        token: str | None = None,
    ) -> AlertPage:
        """List alerts for the given devices, one page at a time."""
        params = [("device_guids", d) for d in device_ids if d]
        params.append(("silenced", "true" if silenced else "false"))
        params.append(("pagination_size", str(size)))
        if token:
            params.append(("pagination_token", token))
        data = await self._request("GET", "/device_alerts", params=params)
        alerts = data.get("alerts", []) if isinstance(data, dict) else []
        return AlertPage(alerts=alerts, next_token=next_page_token(data))

    async def patch_alert(self, device_id: str, alert_guid: str, silenced: bool) -> Any:
        """Silence or unsilence an alert."""
        return await self._request(
            "PATCH",
            f"/device_alerts/{device_id}",
            params=[("alert_guid", alert_guid)],
            json={"silenced": silenced},
        )

    async def close_alert(self, device_id: str, alert_guid: str) -> Any:
        """Close (delete) an alert."""
        return await self._request(
            "DELETE",
            f"/device_alerts/{device_id}",
            params=[("alert_guid", alert_guid)],
        )

    # --- Concurrent reads --------------------------------------------------

    async def device_overview(
        self, device_id: str
    ) -> tuple[dict[str, Any], Any, AlertPage]:
        """Fetch state, shadows and recent alerts of one device concurrently."""
        state, shadows, alerts = await asyncio.gather(
            self.get_state(device_id),
            self.get_shadows(device_id),
            self.list_alerts([device_id], size=5),
        )
        return state, shadows, alerts

    async def list_devices_with_state(self) -> list[DeviceSummary]:
        """List devices, then fetch state and shadows of all of them at once.

        A device whose state or shadows cannot be read is still listed,
        with None in place of the missing data.
        """
        devices = await self.list_devices()
        states, shadows = await asyncio.gather(
            asyncio.gather(*(_or_none(self.get_state(d.id)) for d in devices)),
            asyncio.gather(*(_or_none(self.get_shadows(d.id)) for d in devices)),
        )
        return [
            DeviceSummary(device=d, state=st, shadows=sh)
            for d, st, sh in zip(devices, states, shadows, strict=True)
        ]


async def _or_none(call: Awaitable[T]) -> T | None:
    try:
        return await call
    except TransportError as e:
        logger.debug("Ignoring failed device read: %s", e)
        return None
