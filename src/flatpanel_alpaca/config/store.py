from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any

STORE_FILENAME = "calibrator.json"

KEY_DEVICE_NAME = "device_name"
KEY_MAX_BRIGHTNESS = "max_brightness"
KEY_DEBUG_ENABLED = "debug_enabled"


@dataclass
class ConfigStore:
    """Small JSON-backed key/value store for settings changed at runtime."""

    path: Path
    values: dict[str, Any] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return self.values

        try:
            with self.path.open("r", encoding="utf-8") as stream:
                data = json.load(stream)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return self.values

        if not isinstance(data, dict):
            return self.values

        self.values = {key: value for key, value in data.items() if isinstance(key, str)}
        return self.values

    def get_string(self, key: str, default: str) -> str:
        value = self.values.get(key)
        return value if isinstance(value, str) else default

    def get_int(self, key: str, default: int) -> int:
        value = self.values.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.values.get(key)
        return value if isinstance(value, bool) else default

    def put_string(self, key: str, value: str) -> None:
        self._put(key, str(value))

    def put_int(self, key: str, value: int) -> None:
        self._put(key, int(value))

    def put_bool(self, key: str, value: bool) -> None:
        self._put(key, bool(value))

    def _put(self, key: str, value: Any) -> None:
        with self._lock:
            existing = self.values.get(key)
            if type(existing) is type(value) and existing == value:
                return
            self.values[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as stream:
                json.dump(self.values, stream, indent=2, sort_keys=True)


def create_config_store(state_directory: Path) -> ConfigStore:
    store = ConfigStore(path=Path(state_directory) / STORE_FILENAME)
    store.load()
    return store
