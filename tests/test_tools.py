from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.error import URLError

from archbot_tools import ExternalTools
from src.archive_bot.descriptors.model import ResourceKind
from src.archive_bot.errors import (
    ErrorCreatingFolder,
    ErrorListingFiles,
    InvalidTaskName,
    IoError,
    Utf8DecodingError,
)


def completed(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def make_tools(storage_dir: Path) -> ExternalTools:
    return ExternalTools(
        storage_dir=storage_dir,
        session_prefix="YouTube-",
        tmux_bin="tmux",
        stash_list_cmd="ts ls -n YouTube -j -t",
        archive_cmd="python -m yt_dlp --download-archive archive.txt",
        archive_big_extra_args="--http-chunk-size 10M",
        cookies_file="",
        proxy=None,
        helper_scripts_pattern="grab-youtube",
    )


class ExternalToolsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.tools = make_tools(self.root)

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_session_listing_treats_missing_server_as_empty(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(1, stderr=b"no server running on /tmp/tmux")):
            self.assertEqual(self.tools.list_external_sessions(), "")
        with patch("archbot_tools.subprocess.run", return_value=completed(0, stdout=b"1000 YouTube-abc\n")) as run:
            self.assertEqual(self.tools.list_external_sessions(), "1000 YouTube-abc\n")
        self.assertEqual(run.call_args.args[0], ["tmux", "list-sessions", "-F", "#{session_created} #S"])

    def test_missing_binary_is_io_error(self) -> None:
        with patch("archbot_tools.subprocess.run", side_effect=FileNotFoundError("tmux")):
            with self.assertRaises(IoError):
                self.tools.list_external_sessions()

    def test_invalid_utf8_output_is_decoding_error(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(0, stdout=b"\xff\xfe")):
            with self.assertRaises(Utf8DecodingError):
                self.tools.list_external_sessions()

    def test_launch_creates_folder_and_starts_detached_session(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(0)) as run:
            self.tools.launch_external_task(
                ResourceKind.VIDEO, "jblow888", "https://www.youtube.com/watch?v=YdSdvIRkkDY", True
            )
        self.assertTrue((self.root / "jblow888").is_dir())
        cmd = run.call_args.args[0]
        self.assertEqual(cmd[:6], ["tmux", "new-session", "-d", "-s", "YouTube-jblow888", "-c"])
        self.assertEqual(cmd[6], str(self.root / "jblow888"))
        self.assertEqual(
            cmd[7],
            "python -m yt_dlp --download-archive archive.txt --no-playlist --http-chunk-size 10M "
            "'https://www.youtube.com/watch?v=YdSdvIRkkDY'",
        )

    def test_launch_refuses_unsafe_folder(self) -> None:
        with patch("archbot_tools.subprocess.run") as run:
            with self.assertRaises(InvalidTaskName):
                self.tools.launch_external_task(ResourceKind.USER, "a/b", "https://www.youtube.com/user/a/videos")
        run.assert_not_called()

    def test_launch_reports_folder_creation_failure(self) -> None:
        (self.root / "blocked").write_text("not a directory", encoding="utf-8")
        with patch("archbot_tools.subprocess.run") as run:
            with self.assertRaises(ErrorCreatingFolder) as ctx:
                self.tools.launch_external_task(ResourceKind.USER, "blocked", "https://www.youtube.com/user/blocked/videos")
        self.assertEqual(ctx.exception.folder, "blocked")
        run.assert_not_called()

    def test_archive_command_adds_proxy_and_cookies(self) -> None:
        self.tools.proxy = "socks5://127.0.0.1:9050"
        self.tools.cookies_file = "/etc/cookies.txt"
        cmd = self.tools.archive_command(ResourceKind.PLAYLIST, "https://www.youtube.com/playlist?list=PL5AC656794EE191C1", False)
        self.assertIn("--proxy", cmd)
        self.assertIn("--cookies", cmd)
        self.assertNotIn("--no-playlist", cmd)
        self.assertEqual(cmd[-1], "https://www.youtube.com/playlist?list=PL5AC656794EE191C1")

    def test_folder_listing(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(0, stdout=b"b.mp4\n\na.mkv\n")) as run:
            self.assertEqual(self.tools.list_folder_contents("jblow888"), ["b.mp4", "a.mkv"])
        self.assertEqual(run.call_args.args[0], ["ts", "ls", "-n", "YouTube", "-j", "-t", "jblow888"])

        with patch("archbot_tools.subprocess.run", return_value=completed(2, stderr=b"no such directory")):
            with self.assertRaises(ErrorListingFiles) as ctx:
                self.tools.list_folder_contents("jblow888")
        self.assertEqual(ctx.exception.folder, "jblow888")

    def test_abort_sends_interrupt_to_prefixed_session(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(0)) as run:
            self.tools.signal_abort("jblow888")
        self.assertEqual(run.call_args.args[0], ["tmux", "send-keys", "-t", "YouTube-jblow888", "C-c"])
        with self.assertRaises(InvalidTaskName):
            self.tools.signal_abort("x;y")

    def test_helper_script_control_and_count(self) -> None:
        with patch("archbot_tools.subprocess.run", return_value=completed(1)) as run:
            self.tools.pause_helper_scripts()
            self.assertEqual(self.tools.count_helper_scripts(), 0)
        self.assertEqual(run.call_args_list[0].args[0], ["pkill", "-STOP", "-f", "grab-youtube"])
        with patch("archbot_tools.subprocess.run", return_value=completed(0, stdout=b"3\n")):
            self.assertEqual(self.tools.count_helper_scripts(), 3)
        with patch("archbot_tools.subprocess.run", return_value=completed(3, stderr=b"pkill: bad")):
            with self.assertRaises(IoError):
                self.tools.resume_helper_scripts()

    def test_fetch_page_decodes_and_wraps_errors(self) -> None:
        resp = MagicMock()
        resp.read.return_value = "<html>é</html>".encode("utf-8")
        resp.__enter__.return_value = resp
        with patch("archbot_tools.urlopen", return_value=resp) as opener:
            self.assertEqual(self.tools.fetch_page("https://www.youtube.com/user/x/videos"), "<html>é</html>")
        req = opener.call_args.args[0]
        self.assertEqual(req.full_url, "https://www.youtube.com/user/x/videos")

        with patch("archbot_tools.urlopen", side_effect=URLError("dns")):
            with self.assertRaises(IoError):
                self.tools.fetch_page("https://www.youtube.com/user/x/videos")


if __name__ == "__main__":
    unittest.main()
