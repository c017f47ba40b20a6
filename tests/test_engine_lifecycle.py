"""Tests for start/stop, the background loop and snapshot consistency under threads."""

from __future__ import annotations

import threading
import time
from typing import Callable

from soundbreak.core.monitor.engine import MonitoringEngine
from soundbreak.core.monitor.stubs import RecordingMediaAdapter, ScriptedPresenceProbe, StaticPresenceProbe
from soundbreak.core.monitor.types import MediaAction


def wait_until(pred: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


class GatedMediaAdapter(RecordingMediaAdapter):
    """Blocks inside send_media_command until released."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def send_media_command(self, action: MediaAction) -> str:
        self.entered.set()
        self.release.wait(5.0)
        return super().send_media_command(action)


def make_engine(probe=None, media=None, interval_ms: int = 5):
    probe = probe or StaticPresenceProbe(running=["Zoom"])
    media = media or RecordingMediaAdapter(playing=True)
    engine = MonitoringEngine(probe, media, {"process_names": ["Zoom"], "poll_interval_ms": interval_ms})
    return engine, probe, media


def test_start_and_stop_are_idempotent() -> None:
    engine, _, _ = make_engine()

    engine.start()
    engine.start()
    assert engine.is_running
    status = engine.get_status()
    assert status.is_active is True
    assert status.last_action == "Monitoring started"

    engine.stop()
    engine.stop()
    assert not engine.is_running
    assert engine.get_status().is_active is False
    assert engine.join(timeout=2.0)


def test_loop_ticks_and_pauses_once() -> None:
    engine, _, media = make_engine()

    engine.start()
    try:
        assert wait_until(lambda: engine.get_status().last_check > 0)
        assert wait_until(lambda: len(media.commands) >= 1)
        time.sleep(0.05)  # several more ticks in a stable meeting
    finally:
        engine.stop()
        engine.join(timeout=2.0)

    assert media.commands == [MediaAction.PAUSE]
    assert engine.get_status().meeting.in_meeting is True


def test_toggle_flips_run_state() -> None:
    engine, _, _ = make_engine()

    assert engine.toggle() is True
    assert engine.is_running
    assert engine.toggle() is False
    assert not engine.is_running
    assert engine.join(timeout=2.0)


def test_stop_lets_in_flight_tick_finish() -> None:
    media = GatedMediaAdapter(playing=True)
    engine, _, _ = make_engine(media=media)

    engine.start()
    assert media.entered.wait(2.0)

    engine.stop()
    assert not engine.is_running
    assert engine.join(timeout=0.05) is False, "loop should still be inside its tick"

    media.release.set()
    assert engine.join(timeout=2.0)

    status = engine.get_status()
    assert status.last_action == "paused music (meeting started)"
    assert status.meeting.in_meeting is True
    assert media.commands == [MediaAction.PAUSE]


def test_get_status_does_not_wait_for_slow_adapter() -> None:
    media = GatedMediaAdapter(playing=True)
    engine, _, _ = make_engine(media=media)

    engine.start()
    try:
        assert media.entered.wait(2.0)
        results = []
        reader = threading.Thread(target=lambda: results.append(engine.get_status()))
        reader.start()
        reader.join(timeout=0.5)
        assert not reader.is_alive()
        assert results[0].is_active is True

        writer = threading.Thread(target=lambda: engine.set_watch_config(["Zoom", "Teams"]))
        writer.start()
        writer.join(timeout=0.5)
        assert not writer.is_alive()
    finally:
        media.release.set()
        engine.stop()
        engine.join(timeout=2.0)


def test_rapid_toggling_issues_no_duplicate_commands() -> None:
    engine, _, media = make_engine(interval_ms=1)

    for _ in range(10):
        engine.start()
        engine.stop()
    engine.start()
    try:
        assert engine.is_running
        assert wait_until(lambda: engine.get_status().last_check > 0)
        time.sleep(0.05)
    finally:
        engine.stop()
        engine.join(timeout=2.0)

    assert not engine.is_running
    assert media.commands == [MediaAction.PAUSE]


def test_restart_keeps_edge_bookkeeping() -> None:
    engine, probe, media = make_engine()

    engine.start()
    assert wait_until(lambda: len(media.commands) == 1)
    engine.stop()
    engine.join(timeout=2.0)

    engine.start()
    time.sleep(0.05)
    probe.running.clear()
    assert wait_until(lambda: len(media.commands) == 2)
    engine.stop()
    engine.join(timeout=2.0)

    assert media.commands == [MediaAction.PAUSE, MediaAction.PLAY]


def test_snapshots_never_mix_ticks() -> None:
    # alternating meeting state; the adapter's playback follows each command,
    # so a snapshot from a single tick always has in_meeting != is_playing
    probe = ScriptedPresenceProbe([True, False] * 200)
    media = RecordingMediaAdapter(playing=True)
    engine, _, _ = make_engine(probe=probe, media=media, interval_ms=1)

    engine.start()
    mismatches = []
    seen = 0
    try:
        deadline = time.monotonic() + 0.5
        while time.monotonic() < deadline:
            s = engine.get_status()
            if s.last_check == 0:
                continue
            seen += 1
            if s.meeting.in_meeting == s.music.is_playing:
                mismatches.append(s)
    finally:
        engine.stop()
        engine.join(timeout=2.0)

    assert seen > 0
    assert mismatches == []


def test_loop_survives_tick_errors() -> None:
    class ExplodingProbe:
        def __init__(self) -> None:
            self.calls = 0

        def probe_presence(self, names):
            self.calls += 1
            raise RuntimeError("probe backend crashed")

    probe = ExplodingProbe()
    engine, _, media = make_engine(probe=probe)

    engine.start()
    try:
        assert wait_until(lambda: probe.calls >= 2)
        assert engine.is_running
        assert engine.get_status().meeting.in_meeting is False
    finally:
        engine.stop()
        engine.join(timeout=2.0)
    assert media.commands == []


def test_error_callback_on_loop_failure() -> None:
    media = RecordingMediaAdapter()
    engine = MonitoringEngine(StaticPresenceProbe(), media, {"process_names": ["Zoom"], "poll_interval_ms": 5})
    errors = []
    engine.on_error(errors.append)

    def broken_publish(*args, **kwargs):
        raise RuntimeError("publish failed")

    engine._publish_tick = broken_publish  # type: ignore[method-assign]
    engine.start()
    try:
        assert wait_until(lambda: len(errors) >= 1)
        assert engine.is_running
    finally:
        engine.stop()
        engine.join(timeout=3.0)

    assert errors[0] == "publish failed"


def test_join_waits_for_earlier_runs() -> None:
    media = GatedMediaAdapter(playing=True)
    engine, _, _ = make_engine(media=media)

    engine.start()
    assert media.entered.wait(2.0)
    engine.stop()
    engine.start()
    engine.stop()

    assert engine.join(timeout=0.1) is False, "first run is still inside its tick"

    media.release.set()
    assert engine.join(timeout=2.0)
    assert media.commands == [MediaAction.PAUSE]
