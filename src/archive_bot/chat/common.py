from __future__ import annotations

from typing import Iterable, List, Tuple

CMD_HELP = "!help"
CMD_STATUS = "!status"
CMD_LIST = "!list"
CMD_STASH = "!s "
CMD_ARCHIVE = "!a "
CMD_STASH_ARCHIVE = "!sa "
CMD_ARCHIVE_BIG = "!averybig "
CMD_STASH_ARCHIVE_BIG = "!saverybig "
CMD_ABORT = "!abort "
CMD_STOP_SCRIPTS = "!stopscripts"
CMD_CONT_SCRIPTS = "!contscripts"

VIDEO_EXTENSIONS = frozenset({"mp4", "webm", "flv", "mkv", "video"})
STASH_RECENT_COUNT = 4


def _build_help_text() -> str:
    parts = [
        "Usage: !help",
        "!status",
        "!list",
        "!s <user, channel or playlist URL, or folder>",
        "!a <user, channel, playlist or /watch URL>",
        "!sa <URL> (stash check, then archive)",
        "!averybig <URL> / !saverybig <URL> (very large videos)",
        "!abort <task>",
        "!stopscripts / !contscripts",
    ]
    return " | ".join(parts)


HELP_TEXT = _build_help_text()


def command_argument(text: str) -> str:
    parts = (text or "").split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


def file_extension(name: str) -> str:
    base, dot, ext = (name or "").rpartition(".")
    if not dot or not base:
        return ""
    return ext.lower()


def filter_videos(listing: Iterable[str]) -> List[str]:
    return [name for name in listing if file_extension(name) in VIDEO_EXTENSIONS]


def summarize_stash(listing: Iterable[str]) -> Tuple[int, List[str]]:
    """Count video files in a newest-first listing and pick the most recent ones."""
    videos = filter_videos(listing)
    return len(videos), videos[:STASH_RECENT_COUNT]


def format_stash_reply(folder: str, listing: Iterable[str]) -> str:
    count, recent = summarize_stash(listing)
    noun = "video" if count == 1 else "videos"
    if not recent:
        return f"{folder} has {count} {noun}"
    return f"{folder} has {count} {noun}, latest: {', '.join(recent)}"
