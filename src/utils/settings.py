import os
import json
import logging
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("CATDBTERM_HOME") or (Path(os.path.expanduser("~")) / ".catdbterm"))
CONFIG_DIR.mkdir(parents=True, exist_ok=True)
SETTINGS_PATH = CONFIG_DIR / "settings.json"
STATE_PATH = CONFIG_DIR / "app_state.json"
STORE_PATH = CONFIG_DIR / "config.encrypted"
LOG_DIR = CONFIG_DIR / "logs"
EXPORT_DIR = CONFIG_DIR / "exports"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "page_size": 1000,
    "query_timeout": 30,
    "left_width": 25,
    "sample_rows": 200,
    "log_level": "INFO",
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _positive_int(value, default: int, upper: int | None = None) -> int:
    try:
        num = int(value)
    except (TypeError, ValueError):
        return default
    if num <= 0 or (upper is not None and num > upper):
        return default
    return num


def load_app_settings(path: Path | None = None) -> Dict[str, Any]:
    """Load user settings from settings.json merged over DEFAULT_SETTINGS.

    Missing or unreadable files yield the defaults. Each value is validated
    individually, so one bad entry does not discard the others.
    """
    path = Path(path) if path else SETTINGS_PATH
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                data = loaded
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)

    level = str(data.get("log_level") or DEFAULT_SETTINGS["log_level"]).upper()
    return {
        "page_size": _positive_int(data.get("page_size"), DEFAULT_SETTINGS["page_size"]),
        "query_timeout": _positive_int(data.get("query_timeout"), DEFAULT_SETTINGS["query_timeout"]),
        "left_width": _positive_int(data.get("left_width"), DEFAULT_SETTINGS["left_width"], upper=80),
        "sample_rows": _positive_int(data.get("sample_rows"), DEFAULT_SETTINGS["sample_rows"]),
        "log_level": level if level in _LOG_LEVELS else DEFAULT_SETTINGS["log_level"],
    }


def save_app_settings(settings: Dict[str, Any], path: Path | None = None) -> None:
    """Save settings to settings.json. Raises on write failures."""
    path = Path(path) if path else SETTINGS_PATH
    data = {k: settings.get(k, v) for k, v in DEFAULT_SETTINGS.items()}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_app_state(path: Path | None = None) -> dict:
    """Load simple application state from app_state.json.

    Returns a dict; on error or missing file returns empty dict.
    Used to persist editor drafts per connection id between sessions.
    """
    state_path = Path(path) if path else STATE_PATH
    if not state_path.exists():
        return {}
    try:
        with open(state_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable app state %s: %s", state_path, e)
    return {}


def save_app_state(state: dict, path: Path | None = None) -> None:
    """Save application state (dict) to app_state.json. Raises on write failures."""
    state_path = Path(path) if path else STATE_PATH
    with open(state_path, "w", encoding="utf-8") as f:
        json.dump(state or {}, f, indent=2)
