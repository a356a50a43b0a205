from __future__ import annotations

import asyncio
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional, Sequence

from .calibrator.controller import create_controller
from .config.settings import Settings, load_settings
from .config.store import KEY_DEBUG_ENABLED, create_config_store
from .console import CalibratorConsole, apply_debug_level, run_console
from .logconfig import configure_logging
from .server import run_server

logger = logging.getLogger(__name__)

_LOG_HANDLER_FLAG = "_flatpanel_alpaca_handler"


def _configure_file_logging(settings: Settings) -> None:
    """Persist server logs to a rotating file under the state directory."""

    try:
        log_dir = settings.state_directory / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / "flatpanel-alpaca.log"
    except OSError as exc:
        logger.warning("cli.logfile_init_failed error=%s", exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if getattr(handler, _LOG_HANDLER_FLAG, False):
            return

    handler = RotatingFileHandler(
        log_path,
        maxBytes=5_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    setattr(handler, _LOG_HANDLER_FLAG, True)
    root_logger.addHandler(handler)
    logger.info("cli.logfile_enabled path=%s", log_path)


def serve_command(settings: Settings, *, console: bool) -> None:
    _configure_file_logging(settings)
    asyncio.run(run_server(settings, console=console))


def console_command(settings: Settings) -> None:
    """Run the text console against a local controller without starting the network services."""
    configure_logging(settings.log_level)
    store = create_config_store(settings.state_directory)
    apply_debug_level(store.get_bool(KEY_DEBUG_ENABLED, False))
    controller = create_controller(settings, store=store)
    console = CalibratorConsole(controller, store=store, driver_version=settings.driver_version)
    for line in console.help_lines():
        print(line)
    run_console(console)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for running the Alpaca server or the local text console."""
    import argparse

    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Flat panel calibrator Alpaca server")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the Alpaca server")
    serve_parser.add_argument(
        "--config",
        type=str,
        help="Path to a settings YAML file to load in addition to environment variables.",
    )
    serve_parser.add_argument(
        "--console",
        action="store_true",
        help="Also accept text console commands on stdin while serving.",
    )

    console_parser = subparsers.add_parser(
        "console",
        help="Drive the calibrator from text commands on stdin without network services.",
    )
    console_parser.add_argument(
        "--config",
        type=str,
        help="Path to a settings YAML file to load in addition to environment variables.",
    )

    args = parser.parse_args(argv)
    settings = load_settings(config_path=getattr(args, "config", None))

    if args.command == "console":
        console_command(settings)
        return

    # default to server mode
    serve_command(settings, console=getattr(args, "console", False))


if __name__ == "__main__":
    main()
