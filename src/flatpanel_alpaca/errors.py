from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Alpaca error numbers reported inside the response envelope."""

    NOT_IMPLEMENTED = 0x400
    INVALID_VALUE = 0x401
    NOT_CONNECTED = 0x407
    HARDWARE_FAILURE = 0x500


class AlpacaError(Exception):
    """Device-level failure surfaced to clients inside an HTTP 200 envelope."""

    error_number: ErrorCode = ErrorCode.HARDWARE_FAILURE
    default_message = "Device error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotImplementedAlpacaError(AlpacaError):
    # Covers both unsupported actions and unsupported methods.
    error_number = ErrorCode.NOT_IMPLEMENTED
    default_message = "Not implemented"


class InvalidValueError(AlpacaError):
    error_number = ErrorCode.INVALID_VALUE
    default_message = "Invalid value"


class NotConnectedError(AlpacaError):
    error_number = ErrorCode.NOT_CONNECTED
    default_message = "Not connected"


class HardwareWriteError(AlpacaError):
    error_number = ErrorCode.HARDWARE_FAILURE
    default_message = "Hardware write failed"


class RequestRejected(Exception):
    """Transport-level rejection rendered as plain text, bypassing the envelope."""

    def __init__(self, detail: str, *, status_code: int = 400) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
