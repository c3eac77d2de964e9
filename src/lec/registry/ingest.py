"""Ingest registry client (platform B).

Ingests are REST resources under ``/epub/v1/api/ingests`` on current
releases and ``/v1/api/ingests`` on older ones, looked up by the
``ingest_label`` query parameter and addressed by numeric id for updates.
"""

from __future__ import annotations

import logging
from typing import Any

from lec.config.models import IngestRegistryConfig
from lec.errors import TransportError, ValidationError
from lec.registry.models import UpsertResult, extract_list
from lec.registry.payloads import account_domain
from lec.registry.transport import RegistryTransport

logger = logging.getLogger(__name__)

CURRENT_PATH = "/epub/v1/api/ingests"
LEGACY_PATH = "/v1/api/ingests"

# Label used by check_connection; never expected to exist
PROBE_LABEL = "__lec_test__"


def ingest_id(entity: dict[str, Any]) -> Any:
    value = entity.get("id")
    return value if value is not None else entity.get("ingest_id")


def _label_of(entity: dict[str, Any]) -> str:
    return str(
        entity.get("ingest_label") or entity.get("ingestLabel") or entity.get("label") or ""
    )


class IngestRegistryClient:
    """Find, create, update and delete ingests on the ingest registry."""

    def __init__(
        self,
        config: IngestRegistryConfig,
        transport: RegistryTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or RegistryTransport(config.timeout_seconds)
        self._path = LEGACY_PATH if config.release == "older" else CURRENT_PATH

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    @property
    def base_url(self) -> str:
        host = self._config.base_host.strip()
        if not host:
            raise ValidationError("Ingest registry host is missing", field="ingest.base_host")
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"
        return host.rstrip("/")

    @property
    def account_domain(self) -> str:
        return account_domain(self._config.base_host)

    def _url(self, suffix: str = "", path: str | None = None) -> str:
        return f"{self.base_url}{path or self._path}{suffix}"

    def _headers(self) -> dict[str, str]:
        token = self._config.auth_token.strip()
        if not token:
            raise ValidationError(
                "Ingest registry auth token is missing", field="ingest.auth_token"
            )
        return {
            "Authorization": token if token.startswith("Bearer ") else f"Bearer {token}",
            "Accept": "application/json",
        }

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def list_by_label(self, label: str) -> list[dict[str, Any]]:
        """Ingests matching a label (the registry filters server-side).

        If the current release path is rejected as not supported, the
        listing is retried once on the legacy path, and the client keeps
        using the legacy path afterwards.
        """
        params = {"ingest_label": label} if label else None
        try:
            data = await self._transport.request(
                "GET", self._url(), headers=self._headers(), params=params
            )
        except TransportError as e:
            if self._path == LEGACY_PATH or not e.is_not_supported:
                raise
            logger.info("Ingest path %s not supported (%s), using %s", self._path, e, LEGACY_PATH)
            data = await self._transport.request(
                "GET", self._url(path=LEGACY_PATH), headers=self._headers(), params=params
            )
            self._path = LEGACY_PATH
        return extract_list(data, "ingests", "items")

    async def find_by_label(self, label: str) -> dict[str, Any] | None:
        """Find an ingest by exact label, then case-insensitive label.

        Falls back to the first returned ingest, since the listing is
        already filtered by label on the server.
        """
        ingests = await self.list_by_label(label)
        if not ingests:
            return None
        if label:
            for ingest in ingests:
                if _label_of(ingest) == label:
                    return ingest
            wanted = label.casefold()
            for ingest in ingests:
                if _label_of(ingest).casefold() == wanted:
                    return ingest
        return ingests[0]

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an ingest and return the created entity."""
        data = await self._transport.request(
            "POST", self._url(), headers=self._headers(), json=payload
        )
        if isinstance(data, dict):
            if isinstance(data.get("ingest"), dict):
                return data["ingest"]
            if data.get("id") is None:
                created = extract_list(data, "ingests")
                if created:
                    return created[0]
            return data
        return {}

    async def update(self, entity_id: Any, payload: dict[str, Any]) -> Any:
        """Replace an ingest's definition."""
        if entity_id is None:
            raise ValidationError("Missing ingest id")
        return await self._transport.request(
            "PUT", self._url(f"/{entity_id}"), headers=self._headers(), json=payload
        )

    async def delete(self, entity_id: Any) -> None:
        """Delete an ingest."""
        if entity_id is None:
            raise ValidationError("Missing ingest id")
        await self._transport.request(
            "DELETE", self._url(f"/{entity_id}"), headers=self._headers()
        )
        logger.info("Deleted ingest %s", entity_id)

    async def upsert(self, label: str, payload: dict[str, Any]) -> UpsertResult:
        """Update the ingest found by label, or create it."""
        existing = await self.find_by_label(label)
        if existing is not None:
            entity_id = ingest_id(existing)
            await self.update(entity_id, payload)
            logger.info("Updated ingest %s (%s)", label, entity_id)
            return UpsertResult(entity_id, created=False, entity=existing)

        created = await self.create(payload)
        entity_id = ingest_id(created)
        logger.info("Created ingest %s (%s)", label, entity_id)
        return UpsertResult(entity_id, created=True, entity=created)

    async def set_always_on(
        self, entity_id: Any, payload: dict[str, Any], always_on: bool
    ) -> Any:
        """Switch the always-on flag of every flow and save the ingest."""
        flows = [
            {**flow, "always_on": always_on} for flow in payload.get("ingest_flows", [])
        ]
        return await self.update(entity_id, {**payload, "ingest_flows": flows})

    async def check_connection(self) -> str:
        """Probe the ingest listing with a label that never exists."""
        ingests = await self.list_by_label(PROBE_LABEL)
        return f"Ingest registry reachable ({len(ingests)} match(es) for probe label)"
