"""Configuration loader for TaskTrail.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/TaskTrail
  - Windows: %APPDATA%/TaskTrail
  - Other:   ~/.tasktrail
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Policy constants. Overridable through the "bulk" and "trends" config sections.
MAX_BULK_TARGETS = 100
MS_PER_BULK_ITEM = 50
STABLE_SLOPE_THRESHOLD = 0.1


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for TaskTrail."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home()
        return base / ".tasktrail"
    return base / "TaskTrail"


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    data_dir = get_data_directory()
    return {
        "dashboard_port": 5555,
        "bulk": {
            "max_targets": MAX_BULK_TARGETS,
            "ms_per_item": MS_PER_BULK_ITEM,
        },
        "trends": {
            "stable_threshold": STABLE_SLOPE_THRESHOLD,
            "moving_average_window": 3,
            "velocity_weeks": 8,
        },
        "report": {
            "user_name": "",
            "output_directory": "~/tasktrail-reports",
        },
        "database_path": str(data_dir / "tasktrail.db"),
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def get_section(config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return config section *name* with defaults filled in for missing keys."""
    defaults = get_default_config().get(name, {})
    section = config.get(name)
    if not isinstance(section, dict):
        return dict(defaults)
    return {**defaults, **section}


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    When the file does not exist, a default configuration is created,
    written to disk, and returned.  If the file exists but is invalid
    JSON, the error is logged and defaults are returned.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s, creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
        return data
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s. Using defaults.", config_path, exc)
        return get_default_config()


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")
