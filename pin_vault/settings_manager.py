from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger
from .path_utils import abs_dir_str, default_backend_path

_logger = get_logger("settings")


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "backend_args": [],
        "backend_timeout_ms": 0,
        "window_width": 600,
        "window_height": 500,
        "disable_hardware_acceleration": True,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except Exception as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            os.makedirs(os.path.dirname(self.settings_path) or ".", exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except Exception as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def set(self, key: str, value: Any) -> None:
        if key == "last_open_dir" and value:
            value = abs_dir_str(value)
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def backend_path(self) -> str:
        val = self.get("backend_path")
        return val if isinstance(val, str) and val else default_backend_path()

    @property
    def backend_args(self) -> list[str]:
        val = self.get("backend_args")
        if isinstance(val, list):
            return [str(v) for v in val]
        return []

    @property
    def backend_timeout_ms(self) -> int:
        try:
            return max(0, int(self.get("backend_timeout_ms")))
        except (TypeError, ValueError):
            _logger.warning("invalid backend_timeout_ms: %r", self.get("backend_timeout_ms"))
            return 0

    @property
    def window_size(self) -> tuple[int, int]:
        try:
            return int(self.get("window_width")), int(self.get("window_height"))
        except (TypeError, ValueError):
            return self.DEFAULTS["window_width"], self.DEFAULTS["window_height"]

    @property
    def hardware_acceleration_disabled(self) -> bool:
        return bool(self.get("disable_hardware_acceleration"))

    @property
    def last_open_dir(self) -> str | None:
        val = self.get("last_open_dir")
        return val if isinstance(val, str) and os.path.isdir(val) else None
