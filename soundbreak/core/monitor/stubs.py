"""In-memory probe and media adapters for tests and dry runs."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from soundbreak.core.errors import AdapterCommandError, ProbeError
from .types import MediaAction, MusicState

# Per name: True/False, or an exception instance to raise for that name
ProbeResult = Union[bool, Exception]


class ScriptedPresenceProbe:
    """Replays scripted results, one step per round of probing.

    A step is either a bool applied to every name, or a mapping of name to
    bool/exception. Names missing from a mapping are not running. A new step
    starts when a name that was already answered is asked for again, so a
    batch probe followed by per-name retries stays within one step. The last
    step repeats.
    """

    def __init__(self, steps: Sequence[Union[bool, Mapping[str, ProbeResult]]] = ()) -> None:
        self._steps = list(steps) or [False]
        self._idx = -1
        self._answered: set[str] = set()
        self._lock = threading.Lock()
        self.calls: List[frozenset] = []

    @property
    def rounds(self) -> int:
        return self._idx + 1

    def probe_presence(self, names: Iterable[str]) -> Dict[str, bool]:
        wanted = list(names)
        with self._lock:
            self.calls.append(frozenset(wanted))
            if self._idx < 0 or not self._answered.isdisjoint(wanted):
                self._idx += 1
                self._answered = set()
            step = self._steps[min(self._idx, len(self._steps) - 1)]

            if isinstance(step, bool):
                result = {n: step for n in wanted}
            else:
                failing = [n for n in wanted if isinstance(step.get(n), Exception)]
                if failing:
                    if len(wanted) == 1:
                        self._answered.update(wanted)
                    raise ProbeError(failing[0], str(step[failing[0]]))
                result = {n: bool(step.get(n, False)) for n in wanted}
            self._answered.update(wanted)
            return result


class StaticPresenceProbe:
    """Fixed set of running names, changeable at any time."""

    def __init__(self, running: Iterable[str] = (), failing: Iterable[str] = ()) -> None:
        self.running = set(running)
        self.failing = set(failing)

    def probe_presence(self, names: Iterable[str]) -> Dict[str, bool]:
        wanted = list(names)
        for n in wanted:
            if n in self.failing:
                raise ProbeError(n, "simulated failure")
        return {n: n in self.running for n in wanted}


class RecordingMediaAdapter:
    """Simulated player that records every command it receives."""

    def __init__(
        self,
        playing: bool = False,
        player_name: Optional[str] = "Spotify",
        track_label: Optional[str] = "Artist - Song",
    ) -> None:
        self.playing = playing
        self.player_name = player_name
        self.track_label = track_label
        self.fail_commands = False
        self.fail_status = False
        self.commands: List[MediaAction] = []
        self._lock = threading.Lock()

    def get_playback_state(self) -> MusicState:
        if self.fail_status:
            raise AdapterCommandError("status", "simulated status failure")
        with self._lock:
            if not self.playing:
                return MusicState(is_playing=False)
            return MusicState(is_playing=True, player_name=self.player_name, track_label=self.track_label)

    def send_media_command(self, action: MediaAction) -> str:
        with self._lock:
            self.commands.append(action)
            if self.fail_commands:
                raise AdapterCommandError(action.value, "simulated command failure")
            if action == MediaAction.PAUSE:
                was = self.playing
                self.playing = False
                return f"Paused: {self.player_name}" if was else "Nothing playing"
            if action == MediaAction.PLAY:
                self.playing = True
                return f"Resumed: {self.player_name}"
        raise AdapterCommandError(action.value, f"unsupported media command {action.value!r}")
