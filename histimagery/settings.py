"""
Optional user settings loaded from settings.json.

Every key has a default in histimagery.config; settings.json only overrides.
The file location can be changed with the HISTIMAGERY_SETTINGS environment variable.

Example settings.json:
    {
      "wayback": {"timeout": 60, "config_url": "https://..."},
      "keyhole": {"client_factory": "my_package.keyhole:create_client"},
      "availability": {"parallel": 12}
    }
"""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SETTINGS_FILE = "settings.json"


def settings_path() -> Path:
    return Path(os.environ.get("HISTIMAGERY_SETTINGS", DEFAULT_SETTINGS_FILE))


@lru_cache(maxsize=None)
def _load(path: str) -> Dict[str, Any]:
    settings_file = Path(path)
    if not settings_file.exists():
        return {}

    try:
        with open(settings_file, "r", encoding="utf-8") as f:
            settings = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {settings_file}: {e}") from e

    if not isinstance(settings, dict):
        raise ValueError(f"{settings_file} must contain a JSON object")
    return settings


def load_settings(settings_file: Optional[str] = None) -> Dict[str, Any]:
    """Load settings.json, returning an empty dict when the file does not exist."""
    return _load(str(settings_file or settings_path()))


def get_setting(key_path: str, default: Any = None, settings_file: Optional[str] = None) -> Any:
    """
    Look up a dotted key such as 'wayback.timeout'.

    Args:
        key_path: Dot-separated path into the settings object
        default: Returned when any part of the path is missing
        settings_file: Explicit settings file (defaults to settings_path())
    """
    value: Any = load_settings(settings_file)
    try:
        for key in key_path.split("."):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def clear_cache() -> None:
    """Forget previously loaded settings files (tests and long-lived processes)."""
    _load.cache_clear()
