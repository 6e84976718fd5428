from __future__ import annotations

import re
from typing import Callable, Mapping, Optional

from ..errors import CouldNotGetChannelIdentifier
from .model import CanonicalDescriptor, Descriptor, ResourceKind, require_valid_folder

FetchPage = Callable[[str], str]

USER_LINK_RE = re.compile(r'<link itemprop="url" href="https?://www\.youtube\.com/user/([^"]+)">')
CHANNEL_META_RE = re.compile(r'<meta itemprop="channelId" content="([^"]+)">')
# The player config is embedded as an escaped JSON string, hence the literal backslashes.
CHANNEL_PLAYER_RE = re.compile(r' ytplayer = .+?\\"channelId\\":\\"([^"\\]+)\\"')


def parse_user(page: str) -> Optional[str]:
    m = USER_LINK_RE.search(page or "")
    if not m:
        return None
    return m.group(1)


def parse_channel(page: str) -> Optional[str]:
    for pattern in (CHANNEL_META_RE, CHANNEL_PLAYER_RE):
        m = pattern.search(page or "")
        if m:
            return m.group(1)
    return None


def get_channel_id(url: str, fetch_page: FetchPage) -> str:
    channel_id = parse_channel(fetch_page(url))
    if not channel_id:
        raise CouldNotGetChannelIdentifier(url)
    return channel_id


def canonicalize(
    descriptor: Descriptor,
    fetch_page: FetchPage,
    folder_exceptions: Mapping[str, str],
) -> CanonicalDescriptor:
    """Resolve a classified descriptor into its verified id and storage folder.

    Users and channels are always looked up, even when the input already names
    a user: usernames are case-insensitive on the site while folders need one
    casing, and the fetched page is what carries it. Fetch errors propagate
    untouched; a page without the expected markup raises
    ``CouldNotGetChannelIdentifier``.
    """
    if descriptor.kind is ResourceKind.PLAYLIST:
        folder = require_valid_folder(descriptor.id)
        return CanonicalDescriptor(id=descriptor.id, folder=folder, kind=ResourceKind.PLAYLIST)

    if descriptor.kind is ResourceKind.VIDEO:
        channel_id = get_channel_id(descriptor.page_url(), fetch_page)
        channel = canonicalize(
            Descriptor(id=channel_id, kind=ResourceKind.CHANNEL),
            fetch_page,
            folder_exceptions,
        )
        return CanonicalDescriptor(id=descriptor.id, folder=channel.folder, kind=ResourceKind.VIDEO)

    url = descriptor.page_url()
    page = fetch_page(url)
    user = parse_user(page)
    if user:
        folder = require_valid_folder(folder_exceptions.get(user, user))
        return CanonicalDescriptor(id=user, folder=folder, kind=ResourceKind.USER)

    channel_id = parse_channel(page)
    if not channel_id:
        raise CouldNotGetChannelIdentifier(url)
    folder = require_valid_folder(channel_id)
    return CanonicalDescriptor(id=channel_id, folder=folder, kind=ResourceKind.CHANNEL)
