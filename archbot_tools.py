from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from archbot_config import (
    ARCHIVE_BIG_EXTRA_ARGS,
    ARCHIVE_CMD,
    COOKIES_FILE,
    HELPER_SCRIPTS_PATTERN,
    PAGE_FETCH_TIMEOUT_SEC,
    SESSION_PREFIX,
    STASH_LIST_CMD,
    STORAGE_DIR,
    TMUX_BIN,
    TOOL_TIMEOUT_SEC,
    YTDLP_PROXY,
)
from archbot_utils import tail
from src.archive_bot.descriptors.model import ResourceKind, require_valid_folder
from src.archive_bot.errors import ErrorCreatingFolder, ErrorListingFiles, IoError, Utf8DecodingError

logger = logging.getLogger(__name__)

PAGE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0",
    "Accept-Language": "en-US,en;q=0.8",
    # Skips the EU consent interstitial, which carries none of the channel markup.
    "Cookie": "CONSENT=YES+1",
}


def _decode(raw: bytes, what: str) -> str:
    try:
        return (raw or b"").decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Utf8DecodingError(f"{what}: {exc}") from exc


class ExternalTools:
    """Process and network collaborators behind the chat commands.

    Every call is a single blocking attempt; failures surface as dispatch
    errors and are never retried here.
    """

    def __init__(
        self,
        *,
        storage_dir: Path = STORAGE_DIR,
        session_prefix: str = SESSION_PREFIX,
        tmux_bin: str = TMUX_BIN,
        stash_list_cmd: str = STASH_LIST_CMD,
        archive_cmd: str = ARCHIVE_CMD,
        archive_big_extra_args: str = ARCHIVE_BIG_EXTRA_ARGS,
        cookies_file: str = COOKIES_FILE,
        proxy: Optional[str] = YTDLP_PROXY,
        helper_scripts_pattern: str = HELPER_SCRIPTS_PATTERN,
        page_timeout_sec: float = PAGE_FETCH_TIMEOUT_SEC,
        tool_timeout_sec: float = TOOL_TIMEOUT_SEC,
    ):
        self.storage_dir = Path(storage_dir)
        self.session_prefix = session_prefix
        self.tmux_bin = tmux_bin
        self.stash_list_cmd = stash_list_cmd
        self.archive_cmd = archive_cmd
        self.archive_big_extra_args = archive_big_extra_args
        self.cookies_file = cookies_file
        self.proxy = proxy
        self.helper_scripts_pattern = helper_scripts_pattern
        self.page_timeout_sec = page_timeout_sec
        self.tool_timeout_sec = tool_timeout_sec

    def _run(self, cmd: List[str]) -> Tuple[int, str, str]:
        logger.debug("running %s", shlex.join(cmd))
        try:
            p = subprocess.run(cmd, capture_output=True, timeout=self.tool_timeout_sec)
        except subprocess.TimeoutExpired as exc:
            raise IoError(f"{cmd[0]} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise IoError(f"could not run {cmd[0]}: {exc}") from exc
        return p.returncode, _decode(p.stdout, cmd[0]), _decode(p.stderr, cmd[0])

    def fetch_page(self, url: str) -> str:
        req = Request(url, headers=PAGE_HEADERS)
        try:
            with urlopen(req, timeout=self.page_timeout_sec) as resp:
                raw = resp.read()
        except HTTPError as exc:
            raise IoError(f"HTTP {exc.code} fetching {url}") from exc
        except (URLError, OSError) as exc:
            raise IoError(f"could not fetch {url}: {exc}") from exc
        return _decode(raw, url)

    def list_external_sessions(self) -> str:
        rc, out, err = self._run([self.tmux_bin, "list-sessions", "-F", "#{session_created} #S"])
        if rc != 0:
            low = err.lower()
            # tmux exits non-zero when there is simply nothing running.
            if "no server running" in low or "no sessions" in low or "error connecting" in low:
                return ""
            raise IoError(tail(err) or f"{self.tmux_bin} list-sessions failed")
        return out

    def archive_command(self, kind: ResourceKind, target: str, size_variant: bool) -> List[str]:
        cmd = shlex.split(self.archive_cmd)
        if self.proxy:
            cmd += ["--proxy", self.proxy]
        if self.cookies_file:
            cmd += ["--cookies", self.cookies_file]
        if kind is ResourceKind.VIDEO:
            cmd.append("--no-playlist")
        if size_variant:
            cmd += shlex.split(self.archive_big_extra_args)
        cmd.append(target)
        return cmd

    def launch_external_task(self, kind: ResourceKind, folder: str, target: str, size_variant: bool = False) -> str:
        require_valid_folder(folder)
        workdir = self.storage_dir / folder
        try:
            workdir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ErrorCreatingFolder(folder, str(exc)) from exc

        shell_cmd = shlex.join(self.archive_command(kind, target, size_variant))
        cmd = [
            self.tmux_bin, "new-session", "-d",
            "-s", f"{self.session_prefix}{folder}",
            "-c", str(workdir),
            shell_cmd,
        ]
        rc, out, err = self._run(cmd)
        if rc != 0:
            raise IoError(tail(err or out) or f"could not start task for {folder}")
        logger.info("launched %s task for %s: %s", kind.value, folder, target)
        return out

    def signal_abort(self, task: str) -> None:
        require_valid_folder(task)
        rc, out, err = self._run([self.tmux_bin, "send-keys", "-t", f"{self.session_prefix}{task}", "C-c"])
        if rc != 0:
            raise IoError(tail(err or out) or f"could not signal {task}")
        logger.info("sent interrupt to %s", task)

    def list_folder_contents(self, folder: str) -> List[str]:
        require_valid_folder(folder)
        rc, out, err = self._run([*shlex.split(self.stash_list_cmd), folder])
        if rc != 0:
            raise ErrorListingFiles(folder, tail(err or out))
        return [ln.strip() for ln in out.splitlines() if ln.strip()]

    def _signal_helpers(self, signal_name: str) -> None:
        rc, out, err = self._run(["pkill", f"-{signal_name}", "-f", self.helper_scripts_pattern])
        # pkill exits 1 when nothing matched.
        if rc not in (0, 1):
            raise IoError(tail(err or out) or f"pkill -{signal_name} failed")

    def pause_helper_scripts(self) -> None:
        self._signal_helpers("STOP")

    def resume_helper_scripts(self) -> None:
        self._signal_helpers("CONT")

    def count_helper_scripts(self) -> int:
        rc, out, err = self._run(["pgrep", "-c", "-f", self.helper_scripts_pattern])
        if rc not in (0, 1):
            raise IoError(tail(err or out) or "pgrep failed")
        try:
            return int((out or "0").strip() or 0)
        except ValueError as exc:
            raise IoError(f"unexpected pgrep output: {out!r}") from exc
