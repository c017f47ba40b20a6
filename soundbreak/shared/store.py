from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from soundbreak.core.monitor.types import WatchConfig
from soundbreak.shared.config import AppConfig
from soundbreak.shared.paths import config_path, ensure_app_dirs

log = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            ensure_app_dirs()
            path = config_path()
        self._path = Path(path)

    def load(self) -> AppConfig:
        if not self._path.exists():
            cfg = AppConfig()
            self.save(cfg)
            return cfg

        try:
            raw = self._path.read_text(encoding="utf-8")
            data: Any = json.loads(raw)
            return AppConfig.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            log.warning("Unreadable config at %s (%s), falling back to defaults", self._path, e)
            cfg = AppConfig()
            self.save(cfg)
            return cfg

    def save(self, cfg: AppConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")
        log.info("Saved configuration to %s", self._path)

    def load_watch_config(self) -> WatchConfig:
        return WatchConfig.from_names(self.load().meeting_process_names)

    def persist_watch_config(self, watch: WatchConfig) -> None:
        cfg = self.load()
        self.save(cfg.model_copy(update={"meeting_process_names": sorted(watch.names)}))

    def path(self) -> str:
        return str(self._path)
