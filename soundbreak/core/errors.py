"""Error taxonomy for the monitoring core.

None of these are fatal to the monitoring loop: probe and adapter errors are
absorbed by the engine and surface only through the status snapshot.
"""

from __future__ import annotations


class SoundBreakError(Exception):
    pass


class ProbeError(SoundBreakError):
    """Presence check for a process name failed (transient, per name)."""

    def __init__(self, name: str, reason: str = "") -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"probe failed for {name!r}" + (f": {reason}" if reason else ""))


class AdapterCommandError(SoundBreakError):
    """A media command or playback-state query could not be carried out."""

    def __init__(self, action: str, reason: str = "") -> None:
        self.action = action
        self.reason = reason
        super().__init__(reason or f"{action} failed")


class ConfigValidationError(SoundBreakError, ValueError):
    pass
