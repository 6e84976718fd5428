from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List

from ..errors import IoError


@dataclass(frozen=True)
class Session:
    identifier: str
    start_time: int


def parse_sessions(text: str, prefix: str) -> List[Session]:
    """Parse ``"<unix_ts> <session_name>"`` lines, keeping only prefixed sessions.

    A malformed line fails the whole listing: it points at a broken tool, not
    at an unrelated session.
    """
    sessions: List[Session] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        ts_raw, _, name = line.strip().partition(" ")
        name = name.strip()
        if not name:
            raise IoError(f"malformed session line: {line!r}")
        try:
            start_time = int(ts_raw)
        except ValueError:
            raise IoError(f"malformed session timestamp: {line!r}") from None
        if not name.startswith(prefix):
            continue
        sessions.append(Session(identifier=name[len(prefix):], start_time=start_time))
    return sessions


def list_sessions(list_external_sessions: Callable[[], str], prefix: str) -> List[Session]:
    return parse_sessions(list_external_sessions(), prefix)


def newest_first(sessions: List[Session]) -> List[Session]:
    return sorted(sessions, key=lambda s: s.start_time, reverse=True)
