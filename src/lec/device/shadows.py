"""Typed access to device shadows.

A shadow is a named, versioned sub-document reported by the device
("Inputs", "Encoders", "Outputs", ...). The device API reports shadows in
several shapes: wrapped under "shadows", as a bare list, or as a single
shadow object; each shadow's reported state may be a list of entries or a
map of entries keyed by arbitrary ids. Everything is normalized here so the
orchestration code only ever sees Shadow objects with an ordered tuple of
entries.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from typing import Any

from lec.device.client import DeviceClient
from lec.errors import ShadowNotFound, TransportError, VersionConflict

logger = logging.getLogger(__name__)

INPUTS = "Inputs"
ENCODERS = "Encoders"
OUTPUTS = "Outputs"

# HTTP statuses the device uses to reject a write against a stale version
_CONFLICT_STATUSES = (409, 412)


def _config(entry: Mapping[str, Any]) -> Mapping[str, Any]:
    cfg = entry.get("config")
    return cfg if isinstance(cfg, Mapping) else {}


def entry_id(entry: Mapping[str, Any]) -> Any:
    """Device-assigned id of an entry, or None if not yet assigned.

    Pending entries carry ``id: false`` until the device processes them.
    """
    for key in ("out_stream_id", "id", "output_id"):
        value = entry.get(key)
        if value is not None and value is not False and value != "":
            return value
    return None


def entry_name(entry: Mapping[str, Any]) -> str | None:
    """Return the display name of an entry.

    The device nests it under config; older firmware reports it at the top
    level. Empty names are None.
    """
    return _config(entry).get("name") or entry.get("name") or None


def entry_kind(entry: Mapping[str, Any]) -> str:
    """Entry kind in lower case ("video", "audio", "srt", ...), or ""."""
    output_type = entry.get("output_type")
    kind = (
        entry.get("type")
        or _config(entry).get("type")
        or (output_type.get("value") if isinstance(output_type, Mapping) else None)
        or entry.get("protocol")
        or ""
    )
    return str(kind).lower()


def entry_port(entry: Mapping[str, Any]) -> int | None:
    """Listener or destination port reported for an output entry."""
    cfg = _config(entry)
    output_type = entry.get("output_type")
    srt = output_type.get("srt") if isinstance(output_type, Mapping) else None
    candidates = (
        cfg.get("destination_port"),
        srt.get("dest_port") if isinstance(srt, Mapping) else None,
        entry.get("destination_port"),
        entry.get("source_port"),
        entry.get("port"),
        cfg.get("source_port"),
        cfg.get("port"),
    )
    for value in candidates:
        if value in (None, "", 0):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def entry_enabled(entry: Mapping[str, Any]) -> bool:
    cfg = _config(entry)
    for value in (
        cfg.get("enable"),
        cfg.get("enabled"),
        entry.get("enabled"),
        entry.get("enable"),
    ):
        if value is not None:
            return bool(value)
    return False


def normalize_entries(state: Any) -> tuple[dict[str, Any], ...]:
    """Normalize a reported state (list or map of entries) to a tuple.

    Map-shaped states keep their insertion order. Entries of a map that
    carry no id of their own inherit the map key as their id.
    """
    if isinstance(state, list):
        return tuple(e for e in state if isinstance(e, dict))
    if isinstance(state, Mapping):
        entries = []
        for key, value in state.items():
            if not isinstance(value, dict):
                continue
            if entry_id(value) is None:
                value = {**value, "id": _coerce_key(key)}
            entries.append(value)
        return tuple(entries)
    return ()


def _coerce_key(key: Any) -> Any:
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return key


@dataclass(frozen=True)
class Shadow:
    """One device shadow in canonical form."""

    name: str
    version: int
    entries: tuple[dict[str, Any], ...] = ()

    @classmethod
    def empty(cls, name: str) -> Shadow:
        """A shadow the device did not report (version 0, no entries)."""
        return cls(name=name, version=0, entries=())

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Shadow:
        name = raw.get("shadow_name") or raw.get("name") or ""
        version = raw.get("current_version")
        if version is None:
            version = raw.get("version")
        reported = raw.get("reported")
        state = reported.get("state") if isinstance(reported, Mapping) else None
        return cls(
            name=str(name),
            version=int(version or 0),
            entries=normalize_entries(state),
        )

    def find_by_name(
        self, name: str, exclude_ids: Collection[Any] = ()
    ) -> dict[str, Any] | None:
        """First assigned entry called name whose id is not in exclude_ids."""
        for entry in self.entries:
            eid = entry_id(entry)
            if eid is None or eid in exclude_ids:
                continue
            if entry_name(entry) == name:
                return entry
        return None

    def find_by_id(self, wanted: Any) -> dict[str, Any] | None:
        """Entry whose id matches wanted; ids compare as strings."""
        for entry in self.entries:
            eid = entry_id(entry)
            if eid is not None and str(eid) == str(wanted):
                return entry
        return None

    def ids(self, kind: str | None = None) -> set[Any]:
        """Ids of all assigned entries, optionally restricted to one kind."""
        return {
            entry_id(e)
            for e in self.entries
            if entry_id(e) is not None and (kind is None or entry_kind(e) == kind)
        }


def parse_shadows(document: Any) -> dict[str, Shadow]:
    """Normalize a raw shadows document to a name -> Shadow map."""
    if isinstance(document, Mapping) and "shadows" in document:
        raw_list = document["shadows"]
    elif isinstance(document, list):
        raw_list = document
    elif isinstance(document, Mapping) and document:
        raw_list = [document]
    else:
        raw_list = []

    shadows: dict[str, Shadow] = {}
    for raw in raw_list or []:
        if not isinstance(raw, Mapping):
            continue
        shadow = Shadow.from_raw(raw)
        if shadow.name:
            shadows[shadow.name] = shadow
    return shadows


def get_shadow(
    shadows: Mapping[str, Shadow], name: str, *, required: bool = False
) -> Shadow:
    """Look up a shadow by name.

    Returns an empty shadow when it is missing, unless required is set.

    Raises:
        ShadowNotFound: If required and the device did not report it.
    """
    shadow = shadows.get(name)
    if shadow is None:
        if required:
            raise ShadowNotFound(f"Device did not report the {name} shadow")
        return Shadow.empty(name)
    return shadow


class ShadowClient:
    """Read and write device shadows. Never caches."""

    def __init__(self, device_client: DeviceClient) -> None:
        self._device = device_client

    async def read(self, device_id: str) -> dict[str, Shadow]:
        """Read every shadow of a device."""
        document = await self._device.get_shadows(device_id)
        return parse_shadows(document)

    async def read_one(self, device_id: str, name: str) -> Shadow:
        """Read a single shadow; raises ShadowNotFound if absent."""
        return get_shadow(await self.read(device_id), name, required=True)

    async def write(
        self,
        device_id: str,
        shadow_name: str,
        target_version: int,
        new_state: Any,
    ) -> Any:
        """Write a shadow's state carrying the last observed version.

        A write against a stale version may be silently dropped by the
        device; callers confirm by re-reading.

        Raises:
            VersionConflict: If the device explicitly rejects the version.
            TransportError: On any other failure.
        """
        logger.debug(
            "Writing %s shadow of %s at version %s", shadow_name, device_id, target_version
        )
        command = {
            "shadow_name": shadow_name,
            "target_version": target_version,
            "state": new_state,
        }
        try:
            return await self._device.send_shadow_commands(device_id, [command])
        except TransportError as e:
            if e.status_code in _CONFLICT_STATUSES:
                raise VersionConflict(
                    f"{shadow_name} shadow changed since version {target_version}"
                ) from e
            raise
