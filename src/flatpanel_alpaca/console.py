from __future__ import annotations

import logging
import sys
import threading
from typing import Optional, TextIO

import structlog

from .calibrator.controller import CalibratorController
from .calibrator.state import BRIGHTNESS_CEILING
from .config.store import KEY_DEBUG_ENABLED, ConfigStore
from .errors import AlpacaError

logger = structlog.get_logger(__name__)

PACKAGE_LOGGER = "flatpanel_alpaca"
COMMAND_BUFFER_SIZE = 64


def apply_debug_level(enabled: bool) -> None:
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if enabled else logging.INFO)


class CalibratorConsole:
    """Line-oriented text console driving the same controller as the HTTP API.

    Accepts the legacy bracketed commands (``<00>`` off, ``<01>`` on,
    ``<02#NN>`` brightness) as well as plain text commands; see ``HELP``.
    Every call returns the lines to print.
    """

    def __init__(
        self,
        controller: CalibratorController,
        *,
        store: Optional[ConfigStore] = None,
        driver_version: str = "",
    ) -> None:
        self.controller = controller
        self.store = store
        self.driver_version = driver_version
        self._buffer = ""
        self._bracketed = False

    @property
    def debug_enabled(self) -> bool:
        if self.store is None:
            return False
        return self.store.get_bool(KEY_DEBUG_ENABLED, False)

    def feed(self, chars: str) -> list[str]:
        output: list[str] = []
        for char in chars:
            if char == "<":
                self._buffer = ""
                self._bracketed = True
            elif char == ">":
                if self._bracketed:
                    output.extend(self.execute(f"<{self._buffer}>"))
                    self._bracketed = False
                    self._buffer = ""
            elif char in "\r\n":
                if not self._bracketed and self._buffer:
                    output.extend(self.execute(self._buffer))
                    self._buffer = ""
            else:
                if self._bracketed or char != " " or self._buffer:
                    self._buffer += char
                if len(self._buffer) > COMMAND_BUFFER_SIZE:
                    self._buffer = ""
                    self._bracketed = False
                    output.append("Error: Command too long")
        return output

    def execute(self, command: str) -> list[str]:
        cmd = command.strip().upper()
        logger.debug("console.command", command=cmd)

        if cmd.startswith("<") and cmd.endswith(">"):
            inner = cmd[1:-1]
            if inner == "00":
                return self._off()
            if inner == "01":
                return self._on()
            if inner.startswith("02#"):
                return self._brightness(inner[3:])
            return [f"Error: Unknown bracketed command: {cmd}"]

        if cmd.startswith("DEBUG"):
            return self._debug(cmd[5:].strip())
        if cmd == "STATUS":
            return self.status_lines()
        if cmd == "HELP":
            return self.help_lines()
        if cmd.startswith("MAXBRIGHTNESS"):
            return self._max_brightness(cmd[len("MAXBRIGHTNESS"):].strip())
        if cmd.startswith("BRIGHTNESS"):
            return self._brightness(cmd[len("BRIGHTNESS"):].strip())
        if cmd == "ON":
            return self._on()
        if cmd == "OFF":
            return self._off()
        return [f"Error: Unknown command: {cmd}", "Type HELP for available commands"]

    def _on(self) -> list[str]:
        try:
            self.controller.turn_on()
        except AlpacaError as exc:
            return [f"Error: {exc.message}"]
        return [f"Calibrator turned ON (brightness: {self.controller.brightness}%)"]

    def _off(self) -> list[str]:
        try:
            self.controller.turn_off()
        except AlpacaError as exc:
            return [f"Error: {exc.message}"]
        return ["Calibrator turned OFF"]

    def _brightness(self, parameter: str) -> list[str]:
        if not parameter:
            return ["Error: Missing brightness value"]
        try:
            brightness = int(parameter)
        except ValueError:
            return [f"Error: Invalid brightness value: {parameter}"]
        try:
            self.controller.set_brightness(brightness)
        except AlpacaError as exc:
            return [f"Error: {exc.message}"]
        return [f"Brightness set to {brightness}%"]

    def _max_brightness(self, parameter: str) -> list[str]:
        if not parameter:
            return [f"Current max brightness: {self.controller.max_brightness}%"]
        try:
            value = int(parameter)
        except ValueError:
            return [f"Error: Invalid max brightness value: {parameter}"]
        try:
            self.controller.set_max_brightness(value)
        except AlpacaError as exc:
            return [f"Error: {exc.message}"]
        return [f"Max brightness set to {value}%"]

    def _debug(self, parameter: str) -> list[str]:
        if parameter not in ("ON", "OFF"):
            return ["Usage: DEBUG ON/OFF"]
        enabled = parameter == "ON"
        apply_debug_level(enabled)
        if self.store is not None:
            self.store.put_bool(KEY_DEBUG_ENABLED, enabled)
        return [f"Debug output {'ENABLED' if enabled else 'DISABLED'}"]

    def status_lines(self) -> list[str]:
        state = self.controller.snapshot()
        return [
            f"Device: {state.device_name}",
            f"Firmware: {self.driver_version}",
            f"Calibrator State: {state.calibrator_status.label}",
            f"Cover State: {state.cover_status.label}",
            f"Current Brightness: {state.brightness}%",
            f"Max Brightness: {state.max_brightness}%",
            f"Connected: {'Yes' if state.connected else 'No'}",
            f"Debug Enabled: {'Yes' if self.debug_enabled else 'No'}",
        ]

    def help_lines(self) -> list[str]:
        max_brightness = self.controller.max_brightness
        return [
            "Bracketed commands:",
            "  <00>            Turn calibrator OFF",
            "  <01>            Turn calibrator ON (max brightness)",
            f"  <02#xxx>        Set brightness (0-{max_brightness})",
            "Text commands:",
            "  ON              Turn calibrator ON",
            "  OFF             Turn calibrator OFF",
            f"  BRIGHTNESS x    Set brightness (0-{max_brightness})",
            f"  MAXBRIGHTNESS x Set maximum brightness (1-{BRIGHTNESS_CEILING})",
            "  DEBUG ON/OFF    Enable/disable debug output",
            "  STATUS          Show current status",
            "  HELP            Show this help",
        ]


def run_console(console: CalibratorConsole, stream: Optional[TextIO] = None) -> None:
    """Feed lines from ``stream`` (stdin by default) to the console until EOF."""
    source = stream if stream is not None else sys.stdin
    for line in source:
        for output in console.feed(line):
            print(output, flush=True)


def start_console_thread(console: CalibratorConsole) -> threading.Thread:
    thread = threading.Thread(target=run_console, args=(console,), name="calibrator-console", daemon=True)
    thread.start()
    return thread
