"""Downstream registry clients (channel and ingest registries)."""

from lec.registry.channel import (
    ChannelEndpoints,
    ChannelRegistryClient,
    clear_org_cache,
    derive_endpoints,
)
from lec.registry.ingest import IngestRegistryClient, ingest_id
from lec.registry.models import UpsertResult, extract_list, to_numeric_id
from lec.registry.payloads import (
    account_domain,
    build_channel_payload,
    build_ingest_payload,
    build_tracks,
    channel_label,
    ingest_label,
    sanitize_label,
    srt_url,
)
from lec.registry.transport import RegistryTransport

__all__ = [
    "ChannelEndpoints",
    "ChannelRegistryClient",
    "IngestRegistryClient",
    "RegistryTransport",
    "UpsertResult",
    "account_domain",
    "build_channel_payload",
    "build_ingest_payload",
    "build_tracks",
    "channel_label",
    "clear_org_cache",
    "derive_endpoints",
    "extract_list",
    "ingest_id",
    "ingest_label",
    "sanitize_label",
    "srt_url",
    "to_numeric_id",
]
