"""
Media session adapters.

The engine only sees the MediaSessionAdapter protocol. Concrete adapters talk
to the system's media players through command-line bridges:

- macOS: AppleScript via osascript (Spotify and Music, media-key fallback)
- Linux: MPRIS via playerctl

Both run with a subprocess timeout; the engine itself imposes none.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import Optional, Protocol, Sequence

from soundbreak.core.errors import AdapterCommandError
from .types import MediaAction, MusicState

log = logging.getLogger(__name__)


class MediaSessionAdapter(Protocol):
    def get_playback_state(self) -> MusicState:
        """Current playback. Raises AdapterCommandError if it can't be read."""
        ...

    def send_media_command(self, action: MediaAction) -> str:
        """Send PLAY or PAUSE. Returns a short description of what happened."""
        ...


def _run(args: Sequence[str], action: str, timeout: float) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise AdapterCommandError(action, f"{args[0]} timed out after {timeout:.1f}s") from e
    except FileNotFoundError as e:
        raise AdapterCommandError(action, f"{args[0]} executable not found") from e
    except OSError as e:
        raise AdapterCommandError(action, f"{args[0]} OS error: {e}") from e


# Checks "every process whose name is" first so neither player gets launched
_STATUS_SCRIPT = r'''
tell application "System Events"
    try
        set isPlaying to false
        set playerName to ""
        set trackInfo to ""
        if (count of (every process whose name is "Spotify")) > 0 then
            tell application "Spotify"
                if player state is playing then
                    set isPlaying to true
                    set playerName to "Spotify"
                    set trackInfo to (artist of current track) & " - " & (name of current track)
                end if
            end tell
        end if
        if not isPlaying and (count of (every process whose name is "Music")) > 0 then
            tell application "Music"
                if player state is playing then
                    set isPlaying to true
                    set playerName to "Music"
                    try
                        set trackInfo to (artist of current track) & " - " & (name of current track)
                    on error
                        set trackInfo to "Unknown Track"
                    end try
                end if
            end tell
        end if
        return (isPlaying as string) & "|" & playerName & "|" & trackInfo
    on error errMsg
        return "false||Error: " & errMsg
    end try
end tell
'''

_COMMAND_SCRIPT = r'''
tell application "System Events"
    set touched to {}
    if (count of (every process whose name is "Spotify")) > 0 then
        tell application "Spotify"
            if player state is %(from_state)s then
                %(verb)s
                set touched to touched & {"Spotify"}
            end if
        end tell
    end if
    if (count of (every process whose name is "Music")) > 0 then
        tell application "Music"
            if player state is %(from_state)s then
                %(verb)s
                set touched to touched & {"Music"}
            end if
        end tell
    end if
    if length of touched is 0 then
        key code 16 using {function down}
        return "Used media key fallback"
    end if
    set AppleScript's text item delimiters to ", "
    return "%(label)s: " & (touched as string)
end tell
'''


class OsascriptMediaAdapter:
    """Spotify / Music control on macOS through osascript."""

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def get_playback_state(self) -> MusicState:
        result = _run(["osascript", "-e", _STATUS_SCRIPT], "status", self._timeout)
        if result.returncode != 0:
            raise AdapterCommandError("status", (result.stderr or "osascript failed").strip()[:200])
        return parse_osascript_status(result.stdout)

    def send_media_command(self, action: MediaAction) -> str:
        if action == MediaAction.PAUSE:
            params = {"from_state": "playing", "verb": "pause", "label": "Paused"}
        elif action == MediaAction.PLAY:
            params = {"from_state": "paused", "verb": "play", "label": "Resumed"}
        else:
            raise AdapterCommandError(action.value, f"unsupported media command {action.value!r}")

        result = _run(["osascript", "-e", _COMMAND_SCRIPT % params], action.value, self._timeout)
        if result.returncode != 0:
            raise AdapterCommandError(action.value, (result.stderr or "osascript failed").strip()[:200])
        return result.stdout.strip()


def parse_osascript_status(output: str) -> MusicState:
    parts = output.strip().split("|", 2)
    if len(parts) < 3:
        raise AdapterCommandError("status", f"unparseable player status {output.strip()!r}")
    return MusicState(
        is_playing=parts[0] == "true",
        player_name=parts[1] or None,
        track_label=parts[2] or None,
    )


class PlayerctlMediaAdapter:
    """MPRIS players on Linux through playerctl."""

    def __init__(self, executable: Optional[str] = None, timeout: float = 5.0) -> None:
        self._cmd = executable or shutil.which("playerctl") or "playerctl"
        self._timeout = timeout

    def get_playback_state(self) -> MusicState:
        status = _run([self._cmd, "status"], "status", self._timeout)
        if status.returncode != 0:
            # "No players found" is a normal, idle answer
            log.debug("playerctl status: %s", status.stderr.strip())
            return MusicState()
        if status.stdout.strip() != "Playing":
            return MusicState()

        meta = _run(
            [self._cmd, "metadata", "--format", "{{playerName}}|{{artist}}|{{title}}"],
            "status",
            self._timeout,
        )
        player, track = None, None
        if meta.returncode == 0:
            player_name, artist, title = (meta.stdout.strip().split("|", 2) + ["", ""])[:3]
            player = player_name or None
            if artist and title:
                track = f"{artist} - {title}"
            else:
                track = title or None
        return MusicState(is_playing=True, player_name=player, track_label=track)

    def send_media_command(self, action: MediaAction) -> str:
        if action not in (MediaAction.PLAY, MediaAction.PAUSE):
            raise AdapterCommandError(action.value, f"unsupported media command {action.value!r}")
        result = _run([self._cmd, action.value], action.value, self._timeout)
        if result.returncode != 0:
            raise AdapterCommandError(action.value, (result.stderr or "playerctl failed").strip()[:200])
        return "Paused" if action == MediaAction.PAUSE else "Resumed"


def default_media_adapter() -> MediaSessionAdapter:
    if sys.platform == "darwin":
        return OsascriptMediaAdapter()
    if sys.platform.startswith("linux"):
        return PlayerctlMediaAdapter()
    raise RuntimeError(f"no media adapter for platform {sys.platform!r}")
