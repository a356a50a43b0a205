from __future__ import annotations

import threading
from typing import Any, Optional

import structlog

from ..config.settings import Settings
from ..config.store import KEY_DEVICE_NAME, KEY_MAX_BRIGHTNESS, ConfigStore, create_config_store
from ..errors import HardwareWriteError, InvalidValueError, NotConnectedError, NotImplementedAlpacaError
from .hardware import HardwareInitError, HardwareOutput, SimulatedPwmOutput, SysfsPwmOutput
from .state import BRIGHTNESS_CEILING, MIN_BRIGHTNESS, CalibratorStatus, CoverStatus, DeviceState

logger = structlog.get_logger(__name__)

SUPPORTED_ACTIONS = ("status",)


class CalibratorController:
    """Sole owner of the calibrator state.

    Every read and write goes through one lock so that HTTP handlers running in
    the threadpool, the UDP responder and the text console observe brightness
    and status changes atomically.

    ``calibrator_status`` tracks whether the panel has been commanded, not
    whether it is lit: the first successful brightness command (including 0)
    moves it from ``Off`` to ``Ready`` and it stays there after the panel is
    switched off. A hardware initialization failure pins it to ``Error``.
    """

    def __init__(
        self,
        output: HardwareOutput,
        store: ConfigStore,
        *,
        default_device_name: str = "Flat Panel Calibrator",
        default_max_brightness: int = BRIGHTNESS_CEILING,
    ) -> None:
        self._output = output
        self._store = store
        self._lock = threading.Lock()

        max_brightness = store.get_int(KEY_MAX_BRIGHTNESS, default_max_brightness)
        if not 1 <= max_brightness <= BRIGHTNESS_CEILING:
            logger.warning("calibrator.invalid_stored_max_brightness", value=max_brightness)
            max_brightness = default_max_brightness
        device_name = store.get_string(KEY_DEVICE_NAME, default_device_name).strip() or default_device_name

        self._status = CalibratorStatus.OFF
        self._connected = True
        self._brightness = 0
        self._max_brightness = max_brightness
        self._device_name = device_name

    def initialize(self) -> CalibratorStatus:
        with self._lock:
            try:
                self._output.open()
            except HardwareInitError as exc:
                self._status = CalibratorStatus.ERROR
                logger.error("calibrator.hardware_init_failed", error=str(exc))
                return self._status
            if not self._output.write(0):
                self._status = CalibratorStatus.ERROR
                logger.error("calibrator.hardware_init_failed", error="initial write rejected")
                return self._status
            self._brightness = 0
            self._status = CalibratorStatus.OFF
            logger.info(
                "calibrator.initialized",
                device_name=self._device_name,
                max_brightness=self._max_brightness,
            )
            return self._status

    def snapshot(self) -> DeviceState:
        with self._lock:
            return DeviceState(
                calibrator_status=self._status,
                cover_status=CoverStatus.NOT_PRESENT,
                connected=self._connected,
                brightness=self._brightness,
                max_brightness=self._max_brightness,
                device_name=self._device_name,
            )

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def brightness(self) -> int:
        with self._lock:
            return self._brightness

    @property
    def max_brightness(self) -> int:
        with self._lock:
            return self._max_brightness

    @property
    def calibrator_status(self) -> CalibratorStatus:
        with self._lock:
            return self._status

    @property
    def cover_status(self) -> CoverStatus:
        return CoverStatus.NOT_PRESENT

    @property
    def device_name(self) -> str:
        with self._lock:
            return self._device_name

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            if self._connected != connected:
                logger.info("calibrator.connected_changed", connected=connected)
            self._connected = connected

    def require_connected(self) -> None:
        if not self.connected:
            raise NotConnectedError()

    def set_brightness(self, brightness: int) -> None:
        with self._lock:
            self._apply_brightness(brightness)

    def turn_on(self, brightness: Optional[int] = None, *, require_connected: bool = False) -> int:
        with self._lock:
            if require_connected:
                self._check_connected()
            target = self._max_brightness if brightness is None else brightness
            self._apply_brightness(target)
            return target

    def turn_off(self, *, require_connected: bool = False) -> None:
        with self._lock:
            if require_connected:
                self._check_connected()
            self._apply_brightness(MIN_BRIGHTNESS)

    def set_max_brightness(self, max_brightness: int) -> None:
        with self._lock:
            if not 1 <= max_brightness <= BRIGHTNESS_CEILING:
                raise InvalidValueError(f"Max brightness out of range (1-{BRIGHTNESS_CEILING})")
            if self._brightness > max_brightness:
                if self._status is CalibratorStatus.ERROR:
                    self._brightness = max_brightness
                else:
                    # Clamp the output first; a failed write leaves the old bound in place.
                    self._apply_brightness(max_brightness)
            self._max_brightness = max_brightness
            self._store.put_int(KEY_MAX_BRIGHTNESS, max_brightness)
            logger.info("calibrator.max_brightness_set", max_brightness=max_brightness)

    def set_device_name(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise InvalidValueError("Device name must not be empty")
        with self._lock:
            self._device_name = name
            self._store.put_string(KEY_DEVICE_NAME, name)
        logger.info("calibrator.device_name_set", device_name=name)

    def status_text(self) -> str:
        with self._lock:
            return f"State: {self._status.label}, Brightness: {self._brightness}%"

    def supported_actions(self) -> list[str]:
        return list(SUPPORTED_ACTIONS)

    def run_action(self, action: str, parameters: Any = None) -> str:
        if action == "status":
            return self.status_text()
        raise NotImplementedAlpacaError(f"Action '{action}' is not implemented")

    def open_cover(self) -> None:
        raise NotImplementedAlpacaError("Cover control not implemented")

    def close_cover(self) -> None:
        raise NotImplementedAlpacaError("Cover control not implemented")

    def halt_cover(self) -> None:
        raise NotImplementedAlpacaError("Cover control not implemented")

    def _check_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError()

    def _apply_brightness(self, brightness: int) -> None:
        if brightness < MIN_BRIGHTNESS or brightness > self._max_brightness:
            raise InvalidValueError(f"Brightness out of range ({MIN_BRIGHTNESS}-{self._max_brightness})")
        if self._status is CalibratorStatus.ERROR:
            raise HardwareWriteError("Calibrator hardware unavailable")
        if not self._output.write(brightness):
            logger.warning("calibrator.write_failed", brightness=brightness)
            raise HardwareWriteError("Failed to set brightness")

        previous = self._status
        self._brightness = brightness
        self._status = CalibratorStatus.READY
        if previous is not CalibratorStatus.READY:
            logger.info("calibrator.state_changed", previous=previous.label, current=self._status.label)
        logger.debug("calibrator.brightness_set", brightness=brightness)


def build_hardware_output(settings: Settings) -> HardwareOutput:
    if settings.hardware_backend == "sysfs":
        return SysfsPwmOutput(
            chip=settings.pwm_chip,
            channel=settings.pwm_channel,
            frequency_hz=settings.pwm_frequency_hz,
            resolution_bits=settings.pwm_resolution_bits,
            root=settings.pwm_sysfs_root,
        )
    return SimulatedPwmOutput(resolution_bits=settings.pwm_resolution_bits)


def create_controller(
    settings: Settings,
    *,
    output: Optional[HardwareOutput] = None,
    store: Optional[ConfigStore] = None,
) -> CalibratorController:
    """Build and initialize the controller described by ``settings``."""
    controller = CalibratorController(
        output or build_hardware_output(settings),
        store or create_config_store(settings.state_directory),
        default_device_name=settings.device_name,
        default_max_brightness=settings.max_brightness,
    )
    controller.initialize()
    return controller
