from __future__ import annotations

from typing import Iterable, List

from pydantic import BaseModel, Field, field_validator

from soundbreak.core.errors import ConfigValidationError


DEFAULT_PROCESS_NAMES = ["Lark Helper (Iron)", "TencentMeeting"]


def normalize_process_names(names: Iterable[str]) -> List[str]:
    """Strip, drop blanks and de-duplicate, keeping first-seen order.

    Blank and duplicate entries are dropped silently. Only input that cannot
    be read as a collection of names raises ConfigValidationError.
    """
    if names is None or isinstance(names, (str, bytes)):
        raise ConfigValidationError(f"expected a collection of process names, got {type(names).__name__}")
    try:
        items = list(names)
    except TypeError as e:
        raise ConfigValidationError(f"process names are not iterable: {e}") from e

    seen: set[str] = set()
    out: List[str] = []
    for n in items:
        if not isinstance(n, str):
            raise ConfigValidationError(f"process name must be a string, got {n!r}")
        n = n.strip()
        if not n or n in seen:
            continue
        seen.add(n)
        out.append(n)
    return out


class AppConfig(BaseModel):
    meeting_process_names: List[str] = Field(default_factory=lambda: list(DEFAULT_PROCESS_NAMES))
    poll_interval_ms: int = Field(default=2000, ge=100)

    @field_validator("meeting_process_names", mode="before")
    @classmethod
    def _normalize_names(cls, v):
        # ConfigValidationError is a ValueError, so pydantic reports it as a field error
        return normalize_process_names(v)

    def to_monitor_config(self) -> dict:
        return {
            "process_names": self.meeting_process_names,
            "poll_interval_ms": self.poll_interval_ms,
        }
