"""Output views derived from the raw shadows document."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from lec.device.shadows import (
    OUTPUTS,
    entry_enabled,
    entry_id,
    entry_kind,
    entry_name,
    entry_port,
    parse_shadows,
)


@dataclass(frozen=True)
class OutputStatus:
    """Enable state and addressing of one device output."""

    output_id: int
    name: str
    type: str
    enabled: bool
    port: int | None
    dest_ip: str | None


@dataclass(frozen=True)
class OutputMetric:
    """Runtime status of one device output."""

    output_id: Any
    type: str
    destination_ip: str | None
    destination_port: int | None
    status: str | None


def _status(entry: Mapping[str, Any], raw_id: Any) -> OutputStatus | None:
    try:
        output_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    cfg = entry.get("config") if isinstance(entry.get("config"), Mapping) else {}
    return OutputStatus(
        output_id=output_id,
        name=entry_name(entry) or "",
        type=entry_kind(entry),
        enabled=entry_enabled(entry),
        port=entry_port(entry),
        dest_ip=entry.get("destination_ip") or cfg.get("destination_ip"),
    )


def parse_outputs(document: Any) -> list[OutputStatus]:
    """Collect the outputs reported anywhere in a shadows document.

    Entries of the Outputs shadow are identified with entry_id, like every
    other shadow read. Outputs can also appear under other branches, so the
    whole structure is then walked for objects carrying an output_id.
    Duplicates are collapsed by id, keeping the first occurrence unless a
    later one reports a port and it does not.

    Args:
        document: Raw shadows document as returned by the device API.

    Returns:
        One OutputStatus per numeric output id, in discovery order.
    """
    found: list[OutputStatus | None] = []

    shadow = parse_shadows(document).get(OUTPUTS)
    if shadow is not None:
        found.extend(_status(entry, entry_id(entry)) for entry in shadow.entries)

    def walk(node: Any) -> None:
        if isinstance(node, list):
            for item in node:
                walk(item)
            return
        if not isinstance(node, Mapping):
            return
        if "output_id" in node:
            found.append(_status(node, node["output_id"]))
        for value in node.values():
            walk(value)

    walk(document)

    seen: dict[int, OutputStatus] = {}
    for output in found:
        if output is None:
            continue
        existing = seen.get(output.output_id)
        if existing is None or (output.port and not existing.port):
            seen[output.output_id] = output
    return list(seen.values())


def parse_output_metrics(document: Any) -> list[OutputMetric]:
    """Runtime status of each entry of the Outputs shadow."""
    outputs = parse_shadows(document).get(OUTPUTS)
    if outputs is None:
        return []
    metrics = []
    for entry in outputs.entries:
        cfg = entry.get("config") if isinstance(entry.get("config"), Mapping) else {}
        metrics.append(
            OutputMetric(
                output_id=entry.get("output_id") or entry_id(entry),
                type=str(entry.get("type") or "").lower(),
                destination_ip=cfg.get("destination_ip"),
                destination_port=cfg.get("destination_port"),
                status=entry.get("status_code"),
            )
        )
    return metrics


def is_streaming(metrics: list[OutputMetric]) -> bool:
    """True if any SRT output reports RUNNING."""
    return any(m.type == "srt" and m.status == "RUNNING" for m in metrics)
