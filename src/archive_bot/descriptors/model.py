from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from ..errors import InvalidTaskName

CANONICAL_PREFIX = "https://www.youtube.com/"

FOLDER_RE = re.compile(r"^[-_A-Za-z0-9]+$")


class ResourceKind(str, Enum):
    USER = "user"
    CHANNEL = "channel"
    PLAYLIST = "playlist"
    VIDEO = "video"


@dataclass(frozen=True)
class Descriptor:
    id: str
    kind: ResourceKind

    def page_url(self) -> str:
        return resource_url(self.id, self.kind)


@dataclass(frozen=True)
class CanonicalDescriptor:
    id: str
    folder: str
    kind: ResourceKind

    def url(self) -> str:
        return resource_url(self.id, self.kind)


def resource_url(resource_id: str, kind: ResourceKind) -> str:
    if kind is ResourceKind.USER:
        return f"{CANONICAL_PREFIX}user/{resource_id}/videos"
    if kind is ResourceKind.CHANNEL:
        return f"{CANONICAL_PREFIX}channel/{resource_id}/videos"
    if kind is ResourceKind.PLAYLIST:
        return f"{CANONICAL_PREFIX}playlist?list={resource_id}"
    return f"{CANONICAL_PREFIX}watch?v={resource_id}"


def is_valid_folder(name: str) -> bool:
    return bool(FOLDER_RE.match(name or ""))


def require_valid_folder(name: str) -> str:
    """Return ``name`` unchanged, or raise when it is unsafe as a path component or tool argument."""
    if not is_valid_folder(name):
        raise InvalidTaskName(name)
    return name
