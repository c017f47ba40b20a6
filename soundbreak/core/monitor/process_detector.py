from __future__ import annotations

from typing import Dict, Iterable, Protocol

import psutil

from soundbreak.core.errors import ProbeError


class ProcessPresenceProbe(Protocol):
    def probe_presence(self, names: Iterable[str]) -> Dict[str, bool]:
        """Exact-match liveness for each name. Unknown names map to False.

        May raise ProbeError on a transient I/O failure.
        """
        ...


def running_process_names() -> set[str]:
    names: set[str] = set()
    for p in psutil.process_iter(attrs=["name"]):
        try:
            n = p.info.get("name")
            if n:
                names.add(str(n))
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return names


class PsutilPresenceProbe:
    """Case-sensitive, whole-name matching against the live process table."""

    def probe_presence(self, names: Iterable[str]) -> Dict[str, bool]:
        wanted = list(names)
        if not wanted:
            return {}
        try:
            running = running_process_names()
        except psutil.Error as e:
            raise ProbeError(", ".join(wanted), str(e)) from e
        return {n: n in running for n in wanted}
