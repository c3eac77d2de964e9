"""Centralized exit codes for all CLI commands.

Exit code ranges:
    0: Success
    1-9: General errors
    10-19: Validation errors (config, profile, input)
    20-29: Target not found (device, output, remote entity)
    30-39: Transport errors
    40-49: Operation errors
    60-69: Warning states
"""

from enum import IntEnum

from lec.errors import (
    Busy,
    Cancelled,
    DeviceNotFound,
    LECError,
    NotFound,
    RangeExhausted,
    TransportError,
    ValidationError,
    VersionConflict,
    WriteBlocked,
)


class ExitCode(IntEnum):
    """Exit codes for lec CLI commands."""

    # Success (0)
    SUCCESS = 0

    # General errors (1-9)
    GENERAL_ERROR = 1
    INTERRUPTED = 2

    # Validation errors (10-19)
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    PROFILE_NOT_FOUND = 12
    PROFILE_ERROR = 13

    # Target errors (20-29)
    DEVICE_NOT_FOUND = 20
    ENTITY_NOT_FOUND = 21

    # Transport errors (30-39)
    TRANSPORT_ERROR = 30
    VERSION_CONFLICT = 31

    # Operation errors (40-49)
    OPERATION_FAILED = 40
    DEVICE_BUSY = 41
    WRITE_BLOCKED = 42
    CANCELLED = 43
    RANGE_EXHAUSTED = 44

    # Warning states (60-69)
    WARNINGS = 60


# Most specific class first
_ERROR_CODES: tuple[tuple[type[LECError], ExitCode], ...] = (
    (WriteBlocked, ExitCode.WRITE_BLOCKED),
    (Busy, ExitCode.DEVICE_BUSY),
    (Cancelled, ExitCode.CANCELLED),
    (RangeExhausted, ExitCode.RANGE_EXHAUSTED),
    (VersionConflict, ExitCode.VERSION_CONFLICT),
    (TransportError, ExitCode.TRANSPORT_ERROR),
    (DeviceNotFound, ExitCode.DEVICE_NOT_FOUND),
    (NotFound, ExitCode.ENTITY_NOT_FOUND),
    (ValidationError, ExitCode.VALIDATION_ERROR),
)


def exit_code_for(error: BaseException | None) -> ExitCode:
    """Map a library error to the exit code reported for it."""
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return ExitCode.OPERATION_FAILED if isinstance(error, LECError) else ExitCode.GENERAL_ERROR
