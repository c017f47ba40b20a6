from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Literal, Optional, Tuple

from soundbreak.shared.config import normalize_process_names

EngineStatus = Literal["STOPPED", "RUNNING"]


class MediaAction(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    TOGGLE = "toggle"  # manual control only


@dataclass(frozen=True)
class WatchConfig:
    """Exact process names whose presence means "in a meeting"."""
    names: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        # frozen, so normalize in place; a hand-built instance gets the same cleanup
        object.__setattr__(self, "names", frozenset(normalize_process_names(self.names)))

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "WatchConfig":
        return cls(frozenset(normalize_process_names(names)))

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True)
class MeetingApp:
    name: str
    process_name: str
    is_running: bool

    def to_dict(self) -> dict:
        return {"name": self.name, "process_name": self.process_name, "is_running": self.is_running}


@dataclass(frozen=True)
class MeetingState:
    in_meeting: bool = False
    active_apps: Tuple[MeetingApp, ...] = ()

    @classmethod
    def from_presence(cls, presence: dict[str, bool]) -> "MeetingState":
        apps = tuple(
            MeetingApp(name=n, process_name=n, is_running=bool(presence[n]))
            for n in sorted(presence)
        )
        return cls(in_meeting=any(a.is_running for a in apps), active_apps=apps)

    def to_dict(self) -> dict:
        return {
            "in_meeting": self.in_meeting,
            "active_apps": [a.to_dict() for a in self.active_apps],
        }


@dataclass(frozen=True)
class MusicState:
    """Playback as observed from the media session, not what the engine asked for."""
    is_playing: bool = False
    player_name: Optional[str] = None
    track_label: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "player_name": self.player_name,
            "track_info": self.track_label,
        }


@dataclass(frozen=True)
class StatusSnapshot:
    is_active: bool = False
    last_action: Optional[str] = None
    last_check: int = 0  # epoch seconds of the last completed tick
    meeting: MeetingState = field(default_factory=MeetingState)
    music: MusicState = field(default_factory=MusicState)

    @property
    def status(self) -> EngineStatus:
        return "RUNNING" if self.is_active else "STOPPED"

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "last_action": self.last_action,
            "last_check": self.last_check,
            "meeting_status": self.meeting.to_dict(),
            "music_status": self.music.to_dict(),
        }
