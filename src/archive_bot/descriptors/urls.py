from __future__ import annotations

import re
from typing import List, Pattern, Tuple

from ..errors import UnsupportedUrl
from .model import CANONICAL_PREFIX, Descriptor, ResourceKind

# Order matters: every rule after the second expects the https scheme.
_REWRITES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"^(?=(?:(?:www|m)\.)?youtube\.com/|youtu\.be/)"), "https://"),
    (re.compile(r"^http://"), "https://"),
    (re.compile(r"^https://m\.youtube\.com/"), "https://www.youtube.com/"),
    (re.compile(r"^https://youtube\.com/"), "https://www.youtube.com/"),
    (re.compile(r"^https://youtu\.be/([-_A-Za-z0-9]+)"), r"https://www.youtube.com/watch?v=\1"),
]

# Keeps the separator only when more query follows the flag.
_DESKTOP_FLAG = re.compile(r"([?&])app=desktop(&|(?=[?#]|$))")

# Anything after the captured id must start a new path segment, query or fragment.
_TAIL = r"(?:[/?&#].*)?$"

_SHAPES: List[Tuple[ResourceKind, Pattern[str]]] = [
    (ResourceKind.PLAYLIST, re.compile(r"^playlist\?list=(PL[0-9A-F]{16})" + _TAIL)),
    (ResourceKind.PLAYLIST, re.compile(r"^playlist\?list=(PL[-_A-Za-z0-9]{32})" + _TAIL)),
    (ResourceKind.VIDEO, re.compile(r"^watch\?v=([-_A-Za-z0-9]{11})" + _TAIL)),
    (ResourceKind.CHANNEL, re.compile(r"^channel/(UC[-_A-Za-z0-9]{22})" + _TAIL)),
    (ResourceKind.USER, re.compile(r"^user/([A-Za-z0-9]{1,20})" + _TAIL)),
]


def normalize_url(text: str) -> str:
    url = (text or "").strip()
    for pattern, repl in _REWRITES:
        url = pattern.sub(repl, url)
    # Adjacent flags share separators, so one pass can leave a flag behind.
    while True:
        stripped = _DESKTOP_FLAG.sub(lambda m: m.group(1) if m.group(2) else "", url).strip()
        if stripped == url:
            return url
        url = stripped


def looks_like_url(text: str) -> bool:
    return normalize_url(text).lower().startswith(("http://", "https://"))


def classify(url: str) -> Descriptor:
    """Match a URL against the supported resource shapes.

    The first matching shape wins; an id of the wrong length or alphabet is
    rejected rather than truncated.
    """
    normalized = normalize_url(url)
    if not normalized.startswith(CANONICAL_PREFIX):
        raise UnsupportedUrl(url)
    path = normalized[len(CANONICAL_PREFIX):]
    for kind, pattern in _SHAPES:
        m = pattern.match(path)
        if m:
            return Descriptor(id=m.group(1), kind=kind)
    raise UnsupportedUrl(url)
