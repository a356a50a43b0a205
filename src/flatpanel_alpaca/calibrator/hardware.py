from __future__ import annotations

from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_RESOLUTION_BITS = 10


class HardwareInitError(RuntimeError):
    """Raised when the light output cannot be brought up."""


class HardwareOutput(Protocol):
    def open(self) -> None: ...

    def write(self, brightness_percent: int) -> bool: ...


def brightness_to_duty(brightness: int, resolution_bits: int = DEFAULT_RESOLUTION_BITS) -> int:
    """Map a 0-100 brightness percentage onto the PWM duty range."""
    max_duty = (1 << resolution_bits) - 1
    if brightness <= 0:
        return 0
    if brightness >= 100:
        return max_duty
    return brightness * max_duty // 100


def duty_to_brightness(duty: int, resolution_bits: int = DEFAULT_RESOLUTION_BITS) -> int:
    max_duty = (1 << resolution_bits) - 1
    if duty <= 0:
        return 0
    if duty >= max_duty:
        return 100
    return duty * 100 // max_duty


class SimulatedPwmOutput:
    """In-memory PWM channel used when no panel hardware is attached."""

    def __init__(self, resolution_bits: int = DEFAULT_RESOLUTION_BITS) -> None:
        self.resolution_bits = resolution_bits
        self.duty = 0
        self.opened = False

    def open(self) -> None:
        self.opened = True
        self.duty = 0

    def write(self, brightness_percent: int) -> bool:
        if not self.opened:
            return False
        self.duty = brightness_to_duty(brightness_percent, self.resolution_bits)
        return True


class SysfsPwmOutput:
    """Drives a Linux PWM channel through ``/sys/class/pwm``."""

    def __init__(
        self,
        *,
        chip: int = 0,
        channel: int = 0,
        frequency_hz: int = 1000,
        resolution_bits: int = DEFAULT_RESOLUTION_BITS,
        root: Path = Path("/sys/class/pwm"),
    ) -> None:
        if frequency_hz <= 0:
            raise ValueError("frequency_hz must be positive")
        self.chip_path = Path(root) / f"pwmchip{chip}"
        self.channel = channel
        self.channel_path = self.chip_path / f"pwm{channel}"
        self.period_ns = 1_000_000_000 // frequency_hz
        self.resolution_bits = resolution_bits
        self._ready = False

    def open(self) -> None:
        if not self.chip_path.is_dir():
            raise HardwareInitError(f"PWM chip not found: {self.chip_path}")
        try:
            if not self.channel_path.exists():
                (self.chip_path / "export").write_text(str(self.channel), encoding="ascii")
            self._write_attribute("duty_cycle", 0)
            self._write_attribute("period", self.period_ns)
            self._write_attribute("enable", 1)
        except OSError as exc:
            raise HardwareInitError(f"Failed to configure PWM channel {self.channel_path}: {exc}") from exc
        self._ready = True
        logger.info(
            "hardware.pwm_configured",
            path=str(self.channel_path),
            period_ns=self.period_ns,
            resolution_bits=self.resolution_bits,
        )

    def write(self, brightness_percent: int) -> bool:
        if not self._ready:
            return False
        duty = brightness_to_duty(brightness_percent, self.resolution_bits)
        max_duty = (1 << self.resolution_bits) - 1
        try:
            self._write_attribute("duty_cycle", self.period_ns * duty // max_duty)
        except OSError as exc:
            logger.warning("hardware.pwm_write_failed", path=str(self.channel_path), error=str(exc))
            return False
        return True

    def _write_attribute(self, name: str, value: int) -> None:
        (self.channel_path / name).write_text(str(value), encoding="ascii")
