from __future__ import annotations

import os
import sys
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping
from zoneinfo import ZoneInfo

BASE_DIR = Path(__file__).resolve().parent

BOT_TOKEN = (os.environ.get("YT_BOT_TOKEN") or os.environ.get("BOT_TOKEN") or "").strip()
COMMAND_CHAT_ID = int((os.environ.get("COMMAND_CHAT_ID") or "0").strip() or 0)

STORAGE_DIR = Path(os.environ.get("STORAGE_DIR", str(BASE_DIR / "archive")).strip()).expanduser()

LOCAL_TZ_NAME = (os.environ.get("LOCAL_TZ_NAME") or os.environ.get("LOCAL_TZ") or "America/New_York").strip()
LOCAL_TZ = ZoneInfo(LOCAL_TZ_NAME)
LOCAL_TIME_LABEL = (os.environ.get("LOCAL_TIME_LABEL") or "").strip()

TASK_LIMIT = int(os.environ.get("TASK_LIMIT", "34"))

# Telegram delivers anonymous group admins and linked-channel posts under these bot accounts.
RELAYED_SENDER_PATTERN = (
    os.environ.get("RELAYED_SENDER_PATTERN") or r"^(?:GroupAnonymousBot|Channel_Bot)$"
).strip()

SESSION_PREFIX = (os.environ.get("SESSION_PREFIX") or "YouTube-").strip()
TMUX_BIN = (os.environ.get("TMUX_BIN") or "tmux").strip()
STASH_LIST_CMD = (os.environ.get("STASH_LIST_CMD") or "ts ls -n YouTube -j -t").strip()
ARCHIVE_CMD = (
    os.environ.get("ARCHIVE_CMD")
    or f"{sys.executable} -m yt_dlp --download-archive archive.txt --write-info-json --write-thumbnail"
    " -o %(upload_date)s_%(id)s_%(title)s.%(ext)s"
).strip()
ARCHIVE_BIG_EXTRA_ARGS = (
    os.environ.get("ARCHIVE_BIG_EXTRA_ARGS") or "--http-chunk-size 10M --concurrent-fragments 1"
).strip()
COOKIES_FILE = (os.environ.get("COOKIES_FILE") or "").strip()
YTDLP_PROXY = (os.environ.get("YTDLP_PROXY") or "").strip() or None
HELPER_SCRIPTS_PATTERN = (os.environ.get("HELPER_SCRIPTS_PATTERN") or "grab-youtube").strip()

PAGE_FETCH_TIMEOUT_SEC = float(os.environ.get("PAGE_FETCH_TIMEOUT_SEC", "30"))
TOOL_TIMEOUT_SEC = float(os.environ.get("TOOL_TIMEOUT_SEC", "60"))


def _parse_str_map(raw: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for p in (raw or "").split(","):
        key, sep, value = p.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        out[key] = value
    return out


def _parse_int_map(raw: str) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for key, value in _parse_str_map(raw).items():
        try:
            out[key] = int(value)
        except ValueError:
            pass
    return out


USER_TASK_LIMITS: Mapping[str, int] = MappingProxyType(_parse_int_map(os.environ.get("USER_TASK_LIMITS", "")))
FOLDER_EXCEPTIONS: Mapping[str, str] = MappingProxyType(_parse_str_map(os.environ.get("FOLDER_EXCEPTIONS", "")))


def ensure_runtime_dirs() -> None:
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)
