from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, Union

from .sessions import Session

DUPLICATE_REASON = "duplicate task for this folder"
LIMIT_REASON = "user concurrency limit reached"


@dataclass(frozen=True)
class Admitted:
    folder: str


@dataclass(frozen=True)
class Refused:
    reason: str


Admission = Union[Admitted, Refused]


def task_limit_for(user: str, user_limits: Mapping[str, int], default_limit: int) -> int:
    return int(user_limits.get(user, default_limit))


def try_admit(
    folder: str,
    user: str,
    sessions: Sequence[Session],
    user_limits: Mapping[str, int],
    default_limit: int,
) -> Admission:
    # The session list is re-read, not locked; a concurrent launch slipping
    # past the limit between this check and the spawn is tolerated.
    if any(s.identifier == folder for s in sessions):
        return Refused(f"{DUPLICATE_REASON} ({folder})")
    limit = task_limit_for(user, user_limits, default_limit)
    if len(sessions) >= limit:
        return Refused(f"{LIMIT_REASON} ({len(sessions)} running, limit {limit})")
    return Admitted(folder)
