from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the flat panel Alpaca server."""

    model_config = SettingsConfigDict(env_prefix="FLATPANEL_ALPACA_", env_file=".env", extra="allow")

    http_host: str = "0.0.0.0"
    http_port: int = 11111
    http_advertise_host: Optional[str] = None

    discovery_enabled: bool = True
    discovery_interface: str = "0.0.0.0"
    discovery_port: int = 32227
    discovery_message: str = "alpacadiscovery1"

    state_directory: Path = Path("var")
    log_level: str = "INFO"

    server_name: str = "Flat Panel Calibrator"
    manufacturer: str = "Open Observatory Tools"
    manufacturer_version: str = "1.0.0"
    location: str = "Observatory"

    device_name: str = "Flat Panel Calibrator"
    device_description: str = "ASCOM Alpaca Flat Panel Calibrator"
    driver_info: str = "ASCOM Alpaca Flat Panel Calibrator driver"
    driver_version: str = "1.0.0"
    interface_version: int = 1
    max_brightness: int = Field(default=100, ge=1, le=100)

    hardware_backend: Literal["simulated", "sysfs"] = "simulated"
    pwm_chip: int = 0
    pwm_channel: int = 0
    pwm_frequency_hz: int = 1000
    pwm_resolution_bits: int = 10
    pwm_sysfs_root: Path = Path("/sys/class/pwm")


def load_settings(config_path: Optional[str]) -> Settings:
    """Load settings optionally layering a YAML profile file."""
    settings = Settings()
    if config_path:
        from .yaml_loader import load_yaml_settings

        return load_yaml_settings(settings, config_path)
    return settings
