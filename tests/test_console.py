import io
import logging

import pytest

from flatpanel_alpaca.calibrator.controller import CalibratorController
from flatpanel_alpaca.calibrator.hardware import SimulatedPwmOutput
from flatpanel_alpaca.config.store import create_config_store
from flatpanel_alpaca.console import PACKAGE_LOGGER, CalibratorConsole, apply_debug_level, run_console
from flatpanel_alpaca.logconfig import configure_logging


@pytest.fixture
def console(tmp_path):
    configure_logging()
    store = create_config_store(tmp_path)
    controller = CalibratorController(SimulatedPwmOutput(), store)
    controller.initialize()
    yield CalibratorConsole(controller, store=store, driver_version="1.0.0")
    apply_debug_level(False)


def test_bracketed_commands(console):
    assert console.feed("<01>") == ["Calibrator turned ON (brightness: 100%)"]
    assert console.feed("<02#25>") == ["Brightness set to 25%"]
    assert console.controller.brightness == 25
    assert console.feed("<00>") == ["Calibrator turned OFF"]
    assert console.controller.brightness == 0
    assert console.feed("<07>") == ["Error: Unknown bracketed command: <07>"]


def test_text_commands_are_case_insensitive(console):
    assert console.feed("  on\n") == ["Calibrator turned ON (brightness: 100%)"]
    assert console.feed("brightness 40\r\n") == ["Brightness set to 40%"]
    assert console.feed("Off\n") == ["Calibrator turned OFF"]


def test_brightness_errors(console):
    assert console.feed("BRIGHTNESS 150\n") == ["Error: Brightness out of range (0-100)"]
    assert console.feed("BRIGHTNESS\n") == ["Error: Missing brightness value"]
    assert console.feed("BRIGHTNESS ten\n") == ["Error: Invalid brightness value: TEN"]
    assert console.controller.brightness == 0


def test_max_brightness_command(console):
    console.feed("BRIGHTNESS 90\n")

    assert console.feed("MAXBRIGHTNESS 50\n") == ["Max brightness set to 50%"]
    assert console.controller.brightness == 50
    assert console.feed("MAXBRIGHTNESS\n") == ["Current max brightness: 50%"]
    assert console.feed("MAXBRIGHTNESS 0\n") == ["Error: Max brightness out of range (1-100)"]


def test_status_reports_commanded_state(console):
    console.feed("<02#10>")
    console.feed("<00>")

    lines = console.feed("STATUS\n")
    assert "Calibrator State: Ready" in lines
    assert "Cover State: NotPresent" in lines
    assert "Current Brightness: 0%" in lines
    assert "Firmware: 1.0.0" in lines
    assert "Connected: Yes" in lines


def test_debug_toggle_persists_and_sets_level(console):
    assert console.feed("DEBUG ON\n") == ["Debug output ENABLED"]
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG
    assert console.debug_enabled is True
    assert "Debug Enabled: Yes" in console.feed("STATUS\n")

    assert console.feed("DEBUG OFF\n") == ["Debug output DISABLED"]
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.INFO
    assert console.feed("DEBUG MAYBE\n") == ["Usage: DEBUG ON/OFF"]


def test_unknown_and_overlong_commands(console):
    assert console.feed("DANCE\n") == [
        "Error: Unknown command: DANCE",
        "Type HELP for available commands",
    ]
    assert console.feed("x" * 65) == ["Error: Command too long"]
    assert console.feed("\n") == []


def test_help_lists_commands(console):
    lines = console.feed("help\n")
    assert any("<02#xxx>" in line for line in lines)
    assert any("MAXBRIGHTNESS" in line for line in lines)


def test_run_console_reads_stream(console, capsys):
    run_console(console, io.StringIO("on\nbrightness 5\n"))

    out = capsys.readouterr().out.splitlines()
    assert out == ["Calibrator turned ON (brightness: 100%)", "Brightness set to 5%"]


def test_debug_off_keeps_stdout_to_console_replies(console, capsys):
    run_console(console, io.StringIO("debug off\non\n"))

    out = capsys.readouterr().out.splitlines()
    assert out == ["Debug output DISABLED", "Calibrator turned ON (brightness: 100%)"]


def test_debug_toggle_controls_emitted_events(console, capsys, caplog):
    console.feed("DEBUG OFF\n")
    caplog.clear()
    console.feed("ON\n")
    assert not any("console.command" in record.getMessage() for record in caplog.records)

    console.feed("DEBUG ON\n")
    caplog.clear()
    console.feed("OFF\n")
    assert any("console.command" in record.getMessage() for record in caplog.records)
    assert "console.command" not in capsys.readouterr().out
