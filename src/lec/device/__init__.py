"""Device cloud API access: HTTP client, shadows and output views."""

from lec.device.client import (
    AlertPage,
    Device,
    DeviceClient,
    DeviceSummary,
    auth_header,
    next_page_token,
)
from lec.device.outputs import (
    OutputMetric,
    OutputStatus,
    is_streaming,
    parse_output_metrics,
    parse_outputs,
)
from lec.device.shadows import (
    ENCODERS,
    INPUTS,
    OUTPUTS,
    Shadow,
    ShadowClient,
    entry_enabled,
    entry_id,
    entry_kind,
    entry_name,
    entry_port,
    get_shadow,
    normalize_entries,
    parse_shadows,
)

__all__ = [
    "AlertPage",
    "Device",
    "DeviceClient",
    "DeviceSummary",
    "ENCODERS",
    "INPUTS",
    "OUTPUTS",
    "OutputMetric",
    "OutputStatus",
    "Shadow",
    "ShadowClient",
    "auth_header",
    "entry_enabled",
    "entry_id",
    "entry_kind",
    "entry_name",
    "entry_port",
    "get_shadow",
    "is_streaming",
    "next_page_token",
    "normalize_entries",
    "parse_output_metrics",
    "parse_outputs",
    "parse_shadows",
]
