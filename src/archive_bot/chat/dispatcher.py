from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Tuple

from archbot_config import FOLDER_EXCEPTIONS, SESSION_PREFIX, TASK_LIMIT, USER_TASK_LIMITS
from archbot_utils import shorthand_duration

from ..descriptors.canonical import canonicalize
from ..descriptors.model import CanonicalDescriptor, ResourceKind, require_valid_folder
from ..descriptors.urls import classify, looks_like_url
from ..errors import DispatchError, FeatureNotImplemented, IoError, NotAuthorized
from ..tasks.admission import Refused, task_limit_for, try_admit
from ..tasks.sessions import Session, list_sessions, newest_first
from .common import (
    CMD_ABORT,
    CMD_ARCHIVE,
    CMD_ARCHIVE_BIG,
    CMD_CONT_SCRIPTS,
    CMD_HELP,
    CMD_LIST,
    CMD_STASH,
    CMD_STASH_ARCHIVE,
    CMD_STASH_ARCHIVE_BIG,
    CMD_STATUS,
    CMD_STOP_SCRIPTS,
    HELP_TEXT,
    command_argument,
    format_stash_reply,
)

logger = logging.getLogger(__name__)

AuthorizationCheck = Callable[[str], bool]
Action = Callable[[], str]


@dataclass(frozen=True)
class DispatchSettings:
    task_limit: int = TASK_LIMIT
    user_limits: Mapping[str, int] = field(default_factory=lambda: USER_TASK_LIMITS)
    folder_exceptions: Mapping[str, str] = field(default_factory=lambda: FOLDER_EXCEPTIONS)
    session_prefix: str = SESSION_PREFIX


@dataclass(frozen=True)
class Reply:
    text: str
    error: Optional[DispatchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def relayed_sender_check(pattern: str) -> AuthorizationCheck:
    """Build a check that refuses senders whose identity matches ``pattern``."""
    relayed_re = re.compile(pattern)

    def is_authorized(sender: str) -> bool:
        return not relayed_re.search(sender or "")

    return is_authorized


class CommandDispatcher:
    """Turns one chat command into zero or more replies.

    ``tools`` provides the external collaborators (page fetch, session
    listing, task launch, abort, folder listing, helper-script control); see
    ``archbot_tools.ExternalTools``. Nothing is kept between commands.
    """

    def __init__(self, tools, settings: Optional[DispatchSettings] = None, clock: Callable[[], float] = time.time):
        self.tools = tools
        self.settings = settings or DispatchSettings()
        self.clock = clock

    def dispatch(self, text: str, sender: str, is_authorized: AuthorizationCheck) -> List[Reply]:
        route = self._route((text or "").strip(), sender)
        if route is None:
            return []
        actions, needs_auth = route
        if needs_auth and not is_authorized(sender):
            logger.warning("refused %r from relayed/anonymous sender %s", text, sender)
            return [self._error_reply(sender, NotAuthorized())]
        return [self._run_action(sender, action) for action in actions]

    def _route(self, text: str, sender: str) -> Optional[Tuple[List[Action], bool]]:
        arg = command_argument(text)
        if text == CMD_HELP:
            return [lambda: HELP_TEXT], False
        if text == CMD_STATUS:
            return [lambda: self.status(sender)], False
        if text == CMD_LIST:
            return [self.list_tasks], False
        if text.startswith(CMD_STASH):
            return [lambda: self.stash(sender, arg)], False
        if text.startswith(CMD_ARCHIVE):
            return [lambda: self.archive(sender, arg)], True
        if text.startswith(CMD_STASH_ARCHIVE):
            return [lambda: self.stash(sender, arg), lambda: self.archive(sender, arg)], True
        if text.startswith(CMD_ARCHIVE_BIG):
            return [lambda: self.archive(sender, arg, size_variant=True)], True
        if text.startswith(CMD_STASH_ARCHIVE_BIG):
            return [
                lambda: self.stash(sender, arg),
                lambda: self.archive(sender, arg, size_variant=True),
            ], True
        if text.startswith(CMD_ABORT):
            return [lambda: self.abort(sender, arg)], True
        if text == CMD_STOP_SCRIPTS:
            return [lambda: self.stop_scripts(sender)], True
        if text == CMD_CONT_SCRIPTS:
            return [lambda: self.cont_scripts(sender)], True
        return None

    def _run_action(self, sender: str, action: Action) -> Reply:
        try:
            return Reply(action())
        except DispatchError as exc:
            logger.warning("command from %s failed: %s", sender, exc)
            return self._error_reply(sender, exc)
        except Exception as exc:
            logger.exception("unexpected failure handling command from %s", sender)
            return self._error_reply(sender, IoError(str(exc) or exc.__class__.__name__))

    @staticmethod
    def _error_reply(sender: str, exc: DispatchError) -> Reply:
        return Reply(f"{sender}: error: {exc}", error=exc)

    def resolve(self, url: str) -> CanonicalDescriptor:
        return canonicalize(classify(url), self.tools.fetch_page, self.settings.folder_exceptions)

    def sessions(self) -> List[Session]:
        return list_sessions(self.tools.list_external_sessions, self.settings.session_prefix)

    def limit_for(self, user: str) -> int:
        return task_limit_for(user, self.settings.user_limits, self.settings.task_limit)

    def status(self, sender: str) -> str:
        running = len(self.sessions())
        scripts = self.tools.count_helper_scripts()
        return f"{running} tasks running (limit {self.limit_for(sender)} for {sender}), {scripts} helper scripts running"

    def list_tasks(self) -> str:
        sessions = newest_first(self.sessions())
        if not sessions:
            return "no tasks running"
        now = self.clock()
        return ", ".join(f"{s.identifier} ({shorthand_duration(s.start_time, now)})" for s in sessions)

    def stash(self, sender: str, arg: str) -> str:
        if looks_like_url(arg):
            descriptor = classify(arg)
            if descriptor.kind is ResourceKind.VIDEO:
                raise FeatureNotImplemented("stash check for /watch URLs")
            folder = self.resolve(arg).folder
        else:
            folder = require_valid_folder(arg)
        listing = self.tools.list_folder_contents(folder)
        return f"{sender}: {format_stash_reply(folder, listing)}"

    def archive(self, sender: str, url: str, size_variant: bool = False) -> str:
        target = self.resolve(url)
        admission = try_admit(
            target.folder,
            sender,
            self.sessions(),
            self.settings.user_limits,
            self.settings.task_limit,
        )
        if isinstance(admission, Refused):
            return f"{sender}: not starting {target.folder}: {admission.reason}"
        self.tools.launch_external_task(target.kind, target.folder, target.url(), size_variant)
        variant = " (very big variant)" if size_variant else ""
        return f"{sender}: archiving {target.url()} into {target.folder}{variant}"

    def abort(self, sender: str, task: str) -> str:
        require_valid_folder(task)
        self.tools.signal_abort(task)
        return f"{sender}: sent interrupt to {task}"

    def stop_scripts(self, sender: str) -> str:
        self.tools.pause_helper_scripts()
        return f"{sender}: paused helper scripts"

    def cont_scripts(self, sender: str) -> str:
        self.tools.resume_helper_scripts()
        return f"{sender}: resumed helper scripts"
