from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "SoundBreak"


def _platform_config_root() -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA") or Path.home())
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")


def app_data_dir() -> Path:
    """Per-user directory holding config.json and logs/.

    SOUNDBREAK_HOME wins over the platform default.
    """
    override = os.environ.get("SOUNDBREAK_HOME")
    if override:
        return Path(override)
    return _platform_config_root() / APP_NAME


def config_path() -> Path:
    return app_data_dir() / "config.json"


def log_path() -> Path:
    return app_data_dir() / "logs" / "soundbreak.log"


def logs_dir() -> Path:
    return log_path().parent


def ensure_app_dirs() -> None:
    logs_dir().mkdir(parents=True, exist_ok=True)
