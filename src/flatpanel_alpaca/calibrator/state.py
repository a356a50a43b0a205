from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class CalibratorStatus(IntEnum):
    NOT_PRESENT = 0
    OFF = 1
    NOT_READY = 2
    READY = 3
    UNKNOWN = 4
    ERROR = 5

    @property
    def label(self) -> str:
        return _CALIBRATOR_LABELS[self]


class CoverStatus(IntEnum):
    NOT_PRESENT = 0
    CLOSED = 1
    MOVING = 2
    OPEN = 3
    UNKNOWN = 4
    ERROR = 5

    @property
    def label(self) -> str:
        return _COVER_LABELS[self]


_CALIBRATOR_LABELS = {
    CalibratorStatus.NOT_PRESENT: "NotPresent",
    CalibratorStatus.OFF: "Off",
    CalibratorStatus.NOT_READY: "NotReady",
    CalibratorStatus.READY: "Ready",
    CalibratorStatus.UNKNOWN: "Unknown",
    CalibratorStatus.ERROR: "Error",
}

_COVER_LABELS = {
    CoverStatus.NOT_PRESENT: "NotPresent",
    CoverStatus.CLOSED: "Closed",
    CoverStatus.MOVING: "Moving",
    CoverStatus.OPEN: "Open",
    CoverStatus.UNKNOWN: "Unknown",
    CoverStatus.ERROR: "Error",
}

assert set(_CALIBRATOR_LABELS) == set(CalibratorStatus)
assert set(_COVER_LABELS) == set(CoverStatus)

MIN_BRIGHTNESS = 0
BRIGHTNESS_CEILING = 100


@dataclass(frozen=True)
class DeviceState:
    """Point-in-time copy of the calibrator as seen by protocol clients."""

    calibrator_status: CalibratorStatus = CalibratorStatus.OFF
    cover_status: CoverStatus = CoverStatus.NOT_PRESENT
    connected: bool = True
    brightness: int = 0
    max_brightness: int = BRIGHTNESS_CEILING
    device_name: str = "Flat Panel Calibrator"
