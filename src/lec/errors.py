"""Exception hierarchy for the live encoder configurator.

Every error raised by the device client, the registry clients and the
orchestrator derives from LECError so the CLI can report them uniformly.
"""

from __future__ import annotations


class LECError(Exception):
    """Base class for all configurator errors."""


class TransportError(LECError):
    """Raised when a backend call fails at the network or HTTP level.

    Attributes:
        status_code: HTTP status code, or None for network failures.
        body: Raw response text (may be empty).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @property
    def is_not_supported(self) -> bool:
        """True if the backend rejected the endpoint or verb itself."""
        if self.status_code in (404, 405):
            return True
        text = f"{self.message} {self.body}".casefold()
        return "method not found" in text


class VersionConflict(LECError):
    """Raised when a shadow write was made against a stale version."""


class NotFound(LECError):
    """Raised when an expected entity is absent."""


class DeviceNotFound(NotFound):
    """Raised when no device matches an id or name."""


class EncoderNotFound(NotFound):
    """Raised when a created encoder cannot be located on the device."""


class OutputNotFound(NotFound):
    """Raised when a written output is not reported back by the device."""


class ShadowNotFound(NotFound):
    """Raised when a named shadow is missing from the device report."""


class RemoteEntityNotFound(NotFound):
    """Raised when a downstream channel or ingest does not exist."""


class RangeExhausted(LECError):
    """Raised when the port pool cannot satisfy an allocation."""


class ValidationError(LECError):
    """Raised when required settings or profile fields are missing."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class Busy(LECError):
    """Raised when another deployment already holds the device lease."""


class Cancelled(LECError):
    """Raised at a suspension point after cancellation was requested."""


class WriteBlocked(LECError):
    """Raised when safe mode forbids a write to a device or registry."""
