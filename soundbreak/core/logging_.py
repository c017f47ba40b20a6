from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from soundbreak.shared.paths import ensure_app_dirs, log_path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
MAX_LOG_BYTES = 2_000_000
LOG_BACKUPS = 3


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Console plus rotating file logging on the root logger. No-op if already configured."""
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    if log_file is None:
        ensure_app_dirs()
        log_file = log_path()

    fmt = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(str(log_file), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(fmt)
        root.addHandler(handler)

    # per-tick playerctl/osascript chatter stays out of the log unless asked for
    logging.getLogger("soundbreak.core.monitor.media").setLevel(max(level, logging.INFO))
