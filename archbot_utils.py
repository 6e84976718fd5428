from __future__ import annotations

import re
import time
from datetime import datetime
from typing import Optional

from archbot_config import LOCAL_TIME_LABEL, LOCAL_TZ

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(s: str) -> str:
    return ANSI_RE.sub("", s or "").strip()


def now_local() -> datetime:
    return datetime.now(LOCAL_TZ)


def tg_stamp() -> str:
    return now_local().strftime("%Y-%m-%d %I:%M:%S %p")


def with_tg_time(text: str) -> str:
    stamp = tg_stamp()
    if LOCAL_TIME_LABEL:
        return f"🕒 {stamp} ({LOCAL_TIME_LABEL})\n{text}"
    return f"🕒 {stamp}\n{text}"


def duration_to_dhm(secs: int) -> str:
    """Seconds to shorthand, e.g. ``2d4h1m``."""
    secs = max(0, int(secs))
    if secs < 3600:
        return f"{secs // 60}m"
    if secs < 86400:
        hours = secs // 3600
        minutes = (secs - hours * 3600) // 60
        return f"{hours}h{minutes}m"
    days = secs // 86400
    hours = (secs - days * 86400) // 3600
    minutes = (secs - days * 86400 - hours * 3600) // 60
    return f"{days}d{hours}h{minutes}m"


def shorthand_duration(start_time: int, now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    return duration_to_dhm(int(now) - int(start_time))


def tail(text: str, limit: int = 300) -> str:
    t = strip_ansi(text)
    return t[-limit:]
