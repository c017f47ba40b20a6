"""Tests for configuration normalization and the JSON config store."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from soundbreak.core.errors import ConfigValidationError
from soundbreak.core.monitor.types import WatchConfig
from soundbreak.shared import paths
from soundbreak.shared.config import DEFAULT_PROCESS_NAMES, AppConfig, normalize_process_names
from soundbreak.shared.store import ConfigStore


def test_normalize_strips_drops_blanks_and_dedupes() -> None:
    names = normalize_process_names(["zoom.us", " zoom.us ", "", "  ", "Lark Helper (Iron)"])
    assert names == ["zoom.us", "Lark Helper (Iron)"]


def test_normalize_keeps_case_distinct() -> None:
    assert normalize_process_names(["Zoom", "zoom"]) == ["Zoom", "zoom"]


@pytest.mark.parametrize("bad", ["zoom.us", None, 42, ["zoom.us", None]])
def test_normalize_rejects_malformed_input(bad) -> None:
    with pytest.raises(ConfigValidationError):
        normalize_process_names(bad)


def test_watch_config_from_names() -> None:
    assert WatchConfig.from_names(["b", "a", "b", " "]) == WatchConfig(frozenset({"a", "b"}))
    assert len(WatchConfig.from_names([])) == 0


def test_app_config_defaults() -> None:
    cfg = AppConfig()
    assert cfg.meeting_process_names == DEFAULT_PROCESS_NAMES
    assert cfg.to_monitor_config() == {"process_names": DEFAULT_PROCESS_NAMES, "poll_interval_ms": 2000}


def test_app_config_normalizes_names() -> None:
    cfg = AppConfig(meeting_process_names=["Zoom", "Zoom ", ""])
    assert cfg.meeting_process_names == ["Zoom"]


def test_app_config_rejects_non_string_names() -> None:
    with pytest.raises(ValidationError):
        AppConfig(meeting_process_names=["Zoom", 1])


def test_store_creates_defaults_when_missing(tmp_path) -> None:
    path = tmp_path / "config.json"
    store = ConfigStore(path)

    cfg = store.load()

    assert cfg == AppConfig()
    assert json.loads(path.read_text(encoding="utf-8"))["meeting_process_names"] == DEFAULT_PROCESS_NAMES


def test_store_recovers_from_corrupt_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    cfg = ConfigStore(path).load()

    assert cfg == AppConfig()
    assert json.loads(path.read_text(encoding="utf-8"))["poll_interval_ms"] == 2000


def test_store_watch_config_round_trip(tmp_path) -> None:
    store = ConfigStore(tmp_path / "nested" / "config.json")

    store.persist_watch_config(WatchConfig.from_names(["zoom.us", "Microsoft Teams"]))

    assert store.load_watch_config() == WatchConfig(frozenset({"zoom.us", "Microsoft Teams"}))
    assert store.load().poll_interval_ms == 2000


def test_app_dir_override(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SOUNDBREAK_HOME", str(tmp_path / "home"))

    paths.ensure_app_dirs()

    assert paths.config_path() == tmp_path / "home" / "config.json"
    assert paths.logs_dir().is_dir()


def test_app_dir_follows_xdg_on_linux(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("SOUNDBREAK_HOME", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.setattr(paths.sys, "platform", "linux")

    assert paths.app_data_dir() == tmp_path / "SoundBreak"
    assert paths.log_path() == tmp_path / "SoundBreak" / "logs" / "soundbreak.log"
