"""
Meeting-aware media monitor.

Each tick probes the watched meeting processes, compares the aggregate
"in meeting" flag with the previous tick and, on an edge only, pauses
(meeting started) or resumes (meeting ended) the active media session.
Playback state is re-read every tick so the published snapshot reflects
what is actually playing, not what the engine asked for.

Locks:
  _cfg_lock     WatchConfig, written by callers, read at tick start
  _run_lock     run state and loop threads, written by start/stop
  _tick_lock    serializes ticks and owns _previous_in_meeting
  _status_lock  the published StatusSnapshot

None of them is held across a probe or media call except _tick_lock, which
nothing but another tick ever waits on.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Iterable, Optional, Union

from soundbreak.core.errors import AdapterCommandError
from .media import MediaSessionAdapter
from .process_detector import ProcessPresenceProbe
from .types import MediaAction, MeetingState, MusicState, StatusSnapshot, WatchConfig

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 2000
ERROR_BACKOFF_S = 1.0

_PAST_TENSE = {MediaAction.PAUSE: "paused", MediaAction.PLAY: "resumed"}


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


class MonitoringEngine:
    """Background monitor that pauses music when a meeting starts and resumes it when it ends."""

    def __init__(
        self,
        probe: ProcessPresenceProbe,
        media: MediaSessionAdapter,
        config: Optional[dict] = None,
    ) -> None:
        config = config or {}
        self._probe = probe
        self._media = media
        self._interval_s = config.get("poll_interval_ms", DEFAULT_POLL_INTERVAL_MS) / 1000.0

        self._cfg_lock = threading.Lock()
        self._watch = WatchConfig.from_names(config.get("process_names", ()))

        self._run_lock = threading.Lock()
        self._running = False
        self._threads: list[threading.Thread] = []
        self._stop_evt = threading.Event()

        self._tick_lock = threading.Lock()
        self._previous_in_meeting = False

        self._status_lock = threading.Lock()
        self._snapshot = StatusSnapshot()

        self._event_cb: Optional[Callable[[dict], None]] = None
        self._error_cb: Optional[Callable[[str], None]] = None

    def on_event(self, cb: Callable[[dict], None]) -> None:
        self._event_cb = cb

    def on_error(self, cb: Callable[[str], None]) -> None:
        self._error_cb = cb

    # -- configuration -------------------------------------------------

    def set_watch_config(self, config: Union[WatchConfig, Iterable[str]]) -> WatchConfig:
        """Replace the watched process names.

        Blank names are dropped and duplicates collapsed. Takes effect on the
        next tick; does not run one.
        """
        watch = config if isinstance(config, WatchConfig) else WatchConfig.from_names(config)
        with self._cfg_lock:
            changed = watch != self._watch
            self._watch = watch
        if changed:
            log.info("Watching %d process name(s): %s", len(watch), ", ".join(sorted(watch.names)) or "-")
        return watch

    def get_watch_config(self) -> WatchConfig:
        with self._cfg_lock:
            return self._watch

    # -- run state -----------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._run_lock:
            return self._running

    @property
    def previous_in_meeting(self) -> bool:
        return self._previous_in_meeting

    def start(self) -> None:
        with self._run_lock:
            if self._running:
                return
            self._running = True
            # each run gets its own event so a finishing loop never sees a later start
            self._stop_evt = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(self._stop_evt,), name="MonitoringEngine", daemon=True
            )
            # loops from earlier runs may still be finishing their last tick
            self._threads = [t for t in self._threads if t.is_alive()] + [thread]
            thread.start()
            self._publish_run_state(True, "Monitoring started")
        log.info("Monitoring started (interval %.1fs)", self._interval_s)

    def stop(self) -> None:
        """Stop scheduling ticks. A tick already in flight is allowed to finish."""
        with self._run_lock:
            if not self._running:
                return
            self._running = False
            self._stop_evt.set()
            self._publish_run_state(False, "Monitoring stopped")
        log.info("Monitoring stopped")

    def toggle(self) -> bool:
        with self._run_lock:
            running = self._running
        if running:
            self.stop()
        else:
            self.start()
        return not running

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for every loop thread started so far to exit, including ones
        from earlier runs still finishing a tick. True if all have.
        """
        with self._run_lock:
            threads = list(self._threads)
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(t.is_alive() for t in threads)

    # -- status --------------------------------------------------------

    def get_status(self) -> StatusSnapshot:
        with self._status_lock:
            return self._snapshot

    def check_meetings(self) -> MeetingState:
        """Probe the watched processes now, without acting or publishing."""
        return self._probe_meetings(self.get_watch_config())

    # -- control -------------------------------------------------------

    def manual_control(self, action: Union[MediaAction, str]) -> str:
        """Send a media command directly, outside of meeting tracking.

        Does not touch the meeting edge bookkeeping: a manual pause during a
        meeting is not the meeting's pause, and the meeting's end still resumes.

        The published music status is left alone until the next tick re-reads
        the player, so a snapshot never pairs one tick's meeting state with
        playback observed outside that tick.
        """
        action = MediaAction(action)
        if action == MediaAction.TOGGLE:
            try:
                playing = self._media.get_playback_state().is_playing
            except Exception as e:
                log.warning("Could not read playback state for toggle, pausing: %s", e)
                playing = True
            action = MediaAction.PAUSE if playing else MediaAction.PLAY

        desc = self._send(action, "manual")
        with self._status_lock:
            self._snapshot = replace(self._snapshot, last_action=desc)
        return desc

    # -- loop ----------------------------------------------------------

    def tick(self) -> StatusSnapshot:
        """Run one probe -> decide -> act -> publish cycle and return the published snapshot."""
        event: Optional[dict] = None
        with self._tick_lock:
            meeting = self._probe_meetings(self.get_watch_config())
            previous = self._previous_in_meeting

            action_desc: Optional[str] = None
            if meeting.in_meeting and not previous:
                log.info("Meeting started: %s", ", ".join(a.name for a in meeting.active_apps if a.is_running))
                action_desc = self._send(MediaAction.PAUSE, "meeting started")
                event = {"type": "MEETING_STARTED"}
            elif previous and not meeting.in_meeting:
                log.info("Meeting ended")
                action_desc = self._send(MediaAction.PLAY, "meeting ended")
                event = {"type": "MEETING_ENDED"}

            music = self._read_music()
            self._previous_in_meeting = meeting.in_meeting
            snapshot = self._publish_tick(meeting, music, action_desc)

        if event is not None:
            event.update({
                "at": _now_iso(),
                "apps": [a.name for a in meeting.active_apps if a.is_running],
                "action": action_desc,
            })
            self._emit(event)
        return snapshot

    def _run(self, stop_evt: threading.Event) -> None:
        while not stop_evt.is_set():
            try:
                self.tick()
            except Exception as e:
                log.exception("Monitor loop error")
                self._emit_error(str(e))
                stop_evt.wait(ERROR_BACKOFF_S)
                continue
            stop_evt.wait(self._interval_s)

    # -- helpers -------------------------------------------------------

    def _probe_meetings(self, watch: WatchConfig) -> MeetingState:
        names = sorted(watch.names)
        if not names:
            return MeetingState()

        try:
            presence = dict(self._probe.probe_presence(names))
        except Exception as e:
            if len(names) == 1:
                log.warning("Probe failed for %r, treating as not running: %s", names[0], e)
                presence = {}
            else:
                log.warning("Probe failed (%s), checking names one at a time", e)
                presence = self._probe_each(names)

        # names a probe leaves out are not running
        return MeetingState.from_presence({n: bool(presence.get(n, False)) for n in names})

    def _probe_each(self, names: list[str]) -> dict[str, bool]:
        presence: dict[str, bool] = {}
        for name in names:
            try:
                presence[name] = bool(self._probe.probe_presence([name]).get(name, False))
            except Exception as e:
                log.warning("Probe failed for %r, treating as not running: %s", name, e)
                presence[name] = False
        return presence

    def _send(self, action: MediaAction, reason: str) -> str:
        verb = action.value
        try:
            result = self._media.send_media_command(action)
        except AdapterCommandError as e:
            log.warning("Failed to %s music (%s): %s", verb, reason, e)
            return f"failed to {verb} music ({reason}): {e}"
        except Exception as e:
            log.exception("Media adapter error on %s", verb)
            return f"failed to {verb} music ({reason}): {e}"

        desc = f"{_PAST_TENSE[action]} music ({reason})"
        log.info("%s -> %s", desc, result)
        return desc

    def _read_music(self) -> MusicState:
        try:
            return self._media.get_playback_state()
        except Exception as e:
            log.warning("Could not read playback state: %s", e)
            return MusicState()

    def _publish_tick(self, meeting: MeetingState, music: MusicState, action_desc: Optional[str]) -> StatusSnapshot:
        now = int(time.time())
        with self._status_lock:
            prev = self._snapshot
            self._snapshot = StatusSnapshot(
                is_active=prev.is_active,
                last_action=action_desc if action_desc is not None else prev.last_action,
                last_check=now,
                meeting=meeting,
                music=music,
            )
            return self._snapshot

    def _publish_run_state(self, active: bool, action: str) -> None:
        with self._status_lock:
            self._snapshot = replace(self._snapshot, is_active=active, last_action=action)

    def _emit(self, evt: dict) -> None:
        if self._event_cb:
            try:
                self._event_cb(evt)
            except Exception:
                log.exception("Event callback failed")

    def _emit_error(self, msg: str) -> None:
        if self._error_cb:
            try:
                self._error_cb(msg)
            except Exception:
                log.exception("Error callback failed")
