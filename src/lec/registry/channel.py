"""Channel registry client (platform A).

The registry speaks two dialects:

- v1 (legacy): POST verbs such as ``channel/get`` and ``channel/add`` under
  ``/rest/open/v1`` with the organization id in the body.
- v2 (current): REST resources under
  ``/rest/open/v2/organizations/{org}/channels`` with PUT for updates.

The current dialect needs a numeric organization id. Operators may supply a
name or slug instead, which is resolved once per token, base URL and name
and cached for the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from lec.config.models import ChannelRegistryConfig
from lec.errors import RemoteEntityNotFound, TransportError, ValidationError
from lec.registry.models import UpsertResult, extract_list, same_id, to_numeric_id
from lec.registry.transport import RegistryTransport

logger = logging.getLogger(__name__)

TOKEN_HEADER = "Tellyo-Token"

# Resolved organization ids keyed by "token::base_v2::org"; None is cached too
_org_id_cache: dict[str, int | None] = {}

_ORG_ID_KEYS = ("id", "organizationId", "organization_id")
_ORG_NAME_KEYS = (
    "name",
    "organizationName",
    "organization_name",
    "slug",
    "organizationSlug",
    "organization_slug",
)


def clear_org_cache() -> None:
    """Forget every resolved organization id."""
    _org_id_cache.clear()


@dataclass(frozen=True)
class ChannelEndpoints:
    """Base URLs of both dialects, derived from the configured endpoint."""

    base_v1: str
    base_v2: str


def derive_endpoints(endpoint: str) -> ChannelEndpoints:
    """Derive both dialect base URLs from any URL under the registry.

    Everything from ``rest/open/v1`` or ``rest/open/v2`` onwards is dropped;
    a path without that marker is kept as the root prefix.

    Raises:
        ValidationError: If the endpoint is missing or not an absolute URL.
    """
    endpoint = endpoint.strip()
    if not endpoint:
        raise ValidationError(
            "Channel registry endpoint is missing", field="channel.api_endpoint"
        )
    parts = urlsplit(endpoint)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValidationError(
            "Channel registry endpoint must be a valid URL",
            field="channel.api_endpoint",
        )

    segments = [s for s in parts.path.split("/") if s]
    prefix = segments
    for i, segment in enumerate(segments[:-1]):
        if segment.lower() == "open" and segments[i + 1].lower() in ("v1", "v2"):
            has_rest = i > 0 and segments[i - 1].lower() == "rest"
            prefix = segments[: i - 1 if has_rest else i]
            break

    root = f"{parts.scheme}://{parts.netloc}"
    if prefix:
        root = f"{root}/{'/'.join(prefix)}"
    return ChannelEndpoints(
        base_v1=f"{root}/rest/open/v1",
        base_v2=f"{root}/rest/open/v2",
    )


def _consider_org(entry: Any) -> int | None:
    if not isinstance(entry, dict):
        return None
    for key in _ORG_ID_KEYS:
        numeric = to_numeric_id(entry.get(key))
        if numeric is not None:
            return numeric
    return None


def _norm(value: Any) -> str:
    return str(value if value is not None else "").strip().casefold()


class ChannelRegistryClient:
    """Find, create, update and delete channels on the channel registry."""

    def __init__(
        self,
        config: ChannelRegistryConfig,
        transport: RegistryTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or RegistryTransport(config.timeout_seconds)
        self._org_raw = config.organization_id.strip()
        self._token = config.token.strip()

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    def _endpoints(self) -> ChannelEndpoints:
        endpoints = derive_endpoints(self._config.api_endpoint)
        if not self._token:
            raise ValidationError("Channel registry token is missing", field="channel.token")
        return endpoints

    def _headers(self) -> dict[str, str]:
        return {TOKEN_HEADER: self._token, "Accept": "application/json"}

    async def aclose(self) -> None:
        await self._transport.aclose()

    # --- Organization resolution -------------------------------------------

    async def resolve_org_id(self) -> int | None:
        """Numeric organization id for the configured organization.

        Numeric values are used directly. Names and slugs are looked up in
        the v2 organization listing, then through the legacy
        ``organization/get`` verb. Lookup failures resolve to None, and the
        result (None included) is cached.
        """
        numeric = to_numeric_id(self._org_raw)
        if numeric is not None:
            return numeric
        if not self._org_raw:
            return None

        endpoints = self._endpoints()
        cache_key = f"{self._token}::{endpoints.base_v2}::{self._org_raw}"
        if cache_key in _org_id_cache:
            return _org_id_cache[cache_key]

        resolved = await self._resolve_from_listing(endpoints)
        if resolved is None:
            resolved = await self._resolve_from_legacy(endpoints)

        if resolved is None:
            logger.warning("Could not resolve organization '%s'", self._org_raw)
        else:
            logger.debug("Resolved organization '%s' to %s", self._org_raw, resolved)
        _org_id_cache[cache_key] = resolved
        return resolved

    async def _resolve_from_listing(self, endpoints: ChannelEndpoints) -> int | None:
        target = _norm(self._org_raw)
        try:
            data = await self._transport.request(
                "GET", f"{endpoints.base_v2}/organizations", headers=self._headers()
            )
        except TransportError as e:
            logger.debug("Organization listing failed: %s", e)
            return None
        for entry in extract_list(data, "organizations", "items"):
            ids = {_norm(entry.get(k)) for k in _ORG_ID_KEYS}
            names = {_norm(entry.get(k)) for k in _ORG_NAME_KEYS}
            if target in ids or target in names:
                numeric = _consider_org(entry)
                if numeric is not None:
                    return numeric
        return None

    async def _resolve_from_legacy(self, endpoints: ChannelEndpoints) -> int | None:
        try:
            data = await self._transport.request(
                "POST",
                f"{endpoints.base_v1}/organization/get",
                headers=self._headers(),
                json={"organizationId": self._org_raw},
            )
        except TransportError as e:
            logger.debug("Legacy organization lookup failed: %s", e)
            return None
        if isinstance(data, dict):
            organizations = data.get("organizations")
            if isinstance(data.get("organization"), dict):
                entry: Any = data["organization"]
            elif isinstance(organizations, list) and organizations:
                entry = organizations[0]
            else:
                entry = data
            return _consider_org(entry)
        return None

    async def _scope(self) -> tuple[int | str, bool]:
        """Organization id to send and whether the legacy dialect applies.

        The legacy dialect is used when configured, or when the organization
        could not be resolved to a numeric id.
        """
        if not self._org_raw:
            raise ValidationError(
                "Channel registry organization id is not set",
                field="channel.organization_id",
            )
        numeric = await self.resolve_org_id()
        legacy = self._config.api_version == "v1" or numeric is None
        return (numeric if numeric is not None else self._org_raw), legacy

    # --- Channels ----------------------------------------------------------

    async def list_channels(self) -> list[dict[str, Any]]:
        """List the organization's channels.

        The v2 listing is tried first when it applies; a not-supported error
        or an empty result falls back once to the legacy ``channel/get``.
        """
        endpoints = self._endpoints()
        org, legacy = await self._scope()

        if not legacy:
            try:
                data = await self._transport.request(
                    "GET",
                    f"{endpoints.base_v2}/organizations/{org}/channels",
                    headers=self._headers(),
                )
                channels = extract_list(data, "channels", "items")
                if channels:
                    return channels
                logger.debug("v2 channel listing empty, trying legacy listing")
            except TransportError as e:
                if not e.is_not_supported:
                    raise
                logger.debug("v2 channel listing not supported (%s), trying legacy", e)

        data = await self._transport.request(
            "POST",
            f"{endpoints.base_v1}/channel/get",
            headers=self._headers(),
            json={"organizationId": org},
        )
        return extract_list(data, "channels", "items")

    async def find_by_label(
        self, label: str, remembered_id: Any = None
    ) -> dict[str, Any] | None:
        """Find a channel by remembered id, exact name, then case-insensitive name.

        The listing is never filtered server-side, so there is no
        first-result fallback.
        """
        channels = await self.list_channels()
        if remembered_id is not None:
            for channel in channels:
                if same_id(channel.get("id"), remembered_id):
                    return channel
        for channel in channels:
            if channel.get("name") == label:
                return channel
        wanted = label.casefold()
        for channel in channels:
            if str(channel.get("name") or "").casefold() == wanted:
                return channel
        return None

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a channel and return the created entity."""
        endpoints = self._endpoints()
        org, legacy = await self._scope()
        if legacy:
            data = await self._transport.request(
                "POST",
                f"{endpoints.base_v1}/channel/add",
                headers=self._headers(),
                json={**payload, "organizationId": org},
            )
        else:
            data = await self._transport.request(
                "POST",
                f"{endpoints.base_v2}/organizations/{org}/channels",
                headers=self._headers(),
                json=payload,
            )
        return _unwrap_channel(data)

    async def update(self, channel_id: Any, payload: dict[str, Any]) -> dict[str, Any]:
        """Update a channel in place."""
        endpoints = self._endpoints()
        org, legacy = await self._scope()
        if legacy:
            data = await self._transport.request(
                "POST",
                f"{endpoints.base_v1}/channel/edit",
                headers=self._headers(),
                json={**payload, "id": channel_id, "organizationId": org},
            )
        else:
            data = await self._transport.request(
                "PUT",
                f"{endpoints.base_v2}/organizations/{org}/channels/{channel_id}",
                headers=self._headers(),
                json=payload,
            )
        return _unwrap_channel(data)

    async def delete(self, channel_id: Any) -> None:
        """Delete a channel."""
        endpoints = self._endpoints()
        org, legacy = await self._scope()
        if legacy:
            await self._transport.request(
                "POST",
                f"{endpoints.base_v1}/channel/delete",
                headers=self._headers(),
                json={"id": channel_id, "organizationId": org},
            )
        else:
            await self._transport.request(
                "DELETE",
                f"{endpoints.base_v2}/organizations/{org}/channels/{channel_id}",
                headers=self._headers(),
            )
        logger.info("Deleted channel %s", channel_id)

    async def upsert(
        self, label: str, payload: dict[str, Any], remembered_id: Any = None
    ) -> UpsertResult:
        """Update the channel found by label, or create it."""
        existing = await self.find_by_label(label, remembered_id)
        if existing is not None:
            channel_id = existing.get("id")
            updated = await self.update(channel_id, payload)
            logger.info("Updated channel %s (%s)", label, channel_id)
            return UpsertResult(channel_id, created=False, entity={**existing, **updated})

        created = await self.create(payload)
        channel_id = created.get("id")
        logger.info("Created channel %s (%s)", label, channel_id)
        return UpsertResult(channel_id, created=True, entity=created)

    async def check_connection(self) -> str:
        """Check the token and organization against the registry.

        Returns:
            Human-readable success message.

        Raises:
            RemoteEntityNotFound: If the organization does not exist.
            TransportError: If the registry cannot be reached.
        """
        endpoints = self._endpoints()
        if self._config.api_version == "v1":
            body = (
                {"organizationId": to_numeric_id(self._org_raw) or self._org_raw}
                if self._org_raw
                else {}
            )
            data = await self._transport.request(
                "POST",
                f"{endpoints.base_v1}/organization/get",
                headers=self._headers(),
                json=body,
            )
            orgs = extract_list(data, "organizations")
            if not orgs:
                raise RemoteEntityNotFound(
                    f"Organization '{self._org_raw or '(any)'}' not found"
                )
            return f"Found {len(orgs)} organization(s)"

        data = await self._transport.request(
            "GET", f"{endpoints.base_v2}/organizations", headers=self._headers()
        )
        orgs = extract_list(data, "organizations", "items")
        if not self._org_raw:
            return f"{len(orgs)} organization(s) found"
        target_id = to_numeric_id(self._org_raw)
        target_name = self._org_raw.casefold()
        for org in orgs:
            if (target_id is not None and to_numeric_id(org.get("id")) == target_id) or (
                str(org.get("name") or "").casefold() == target_name
            ):
                return f"Organization '{self._org_raw}' found"
        raise RemoteEntityNotFound(f"Organization '{self._org_raw}' not found")


def _unwrap_channel(data: Any) -> dict[str, Any]:
    if isinstance(data, dict):
        if isinstance(data.get("channel"), dict):
            return data["channel"]
        return data
    return {}
