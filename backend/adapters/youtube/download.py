"""Download strategies for the acquisition cascade.

Every strategy follows the same contract: download one URL into a work
directory, name the file after the expected token (the YouTube video id when
there is one), and raise StrategyError on anything short of a non-empty video
file. The acquirer only sees AcquisitionStrategyPort, so strategies can be
reordered, dropped or added through configuration.
"""

import os
import uuid
import logging
import subprocess
import multiprocessing
from abc import abstractmethod
from pathlib import Path
from queue import Empty
from typing import Optional

from adapters.youtube.cookies import cookie_file
from adapters.youtube.urls import extract_video_id
from domain.errors import StrategyError
from ports.acquisition import AcquisitionStrategyPort

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".mp4", ".mkv", ".webm", ".mov", ".flv", ".ts", ".m4v", ".avi", ".3gp"}

DEFAULT_TIMEOUT = 300

# 720p keeps downloads small; GIFs are rendered at 480px wide anyway
FORMAT_SELECTOR = "best[height<=720][ext=mp4]/bestvideo[height<=720]+bestaudio/best[height<=720]/best"

YTDLP_PLAYER_CLIENTS = ["web", "android", "ios", "tv_embedded"]


def output_token(url: str) -> str:
    return extract_video_id(url) or uuid.uuid4().hex[:12]


def find_output(work_dir: str, token: str) -> Optional[str]:
    """Return the largest non-empty video file in work_dir named after token."""
    candidates = [
        p for p in Path(work_dir).glob(f"{token}*")
        if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS and p.stat().st_size > 0
    ]
    if not candidates:
        return None
    return str(max(candidates, key=lambda p: p.stat().st_size))


def clear_partials(work_dir: str, token: str) -> None:
    """Remove leftovers of an earlier attempt so they cannot pass the success check."""
    for p in Path(work_dir).glob(f"{token}*"):
        try:
            p.unlink()
        except OSError as e:
            logger.warning(f"Could not remove partial download {p}: {e}")


def _tail(text: str, limit: int = 400) -> str:
    text = (text or "").strip()
    return text[-limit:] if text else "no output"


class CommandDownloadStrategy(AcquisitionStrategyPort):
    """Shared plumbing for strategies that shell out to a downloader CLI."""

    binary = ""
    uses_cookies = True

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, cookies: Optional[str] = None,
                 temp_dir: Optional[str] = None):
        self._timeout = timeout
        self._cookies = cookies if self.uses_cookies else None
        self._temp_dir = temp_dir

    @property
    def name(self) -> str:
        return self.binary

    @abstractmethod
    def build_command(self, url: str, work_dir: str, token: str, cookie_path: Optional[str]) -> list[str]:
        """Return the argv for one download attempt."""

    def attempt(self, url: str, work_dir: str) -> str:
        token = output_token(url)
        clear_partials(work_dir, token)
        with cookie_file(self._cookies, self._temp_dir or work_dir) as cookie_path:
            cmd = self.build_command(url, work_dir, token, cookie_path)
            logger.debug(f"Running: {' '.join(cmd)}")
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
            except subprocess.TimeoutExpired:
                raise StrategyError(f"{self.name} timed out after {self._timeout}s", timed_out=True)
            except FileNotFoundError:
                raise StrategyError(f"{self.binary} is not installed")

        if result.returncode != 0:
            raise StrategyError(f"{self.name} exited with code {result.returncode}: {_tail(result.stderr)}")

        path = find_output(work_dir, token)
        if not path:
            raise StrategyError(f"{self.name} finished but produced no video file for {token}")
        return path


class YtDlpStrategy(CommandDownloadStrategy):
    """yt-dlp emulating one specific player client."""

    binary = "yt-dlp"

    def __init__(self, player_client: str = "web", **kwargs):
        super().__init__(**kwargs)
        self._player_client = player_client

    @property
    def name(self) -> str:
        return f"yt-dlp[{self._player_client}]"

    def build_command(self, url, work_dir, token, cookie_path):
        cmd = [
            self.binary,
            "--no-playlist",
            "--no-warnings",
            "--socket-timeout", "30",
            "--retries", "2",
            "--extractor-args", f"youtube:player_client={self._player_client}",
            "-f", FORMAT_SELECTOR,
            "--merge-output-format", "mp4",
            "-o", os.path.join(work_dir, f"{token}.%(ext)s"),
        ]
        if cookie_path:
            cmd.extend(["--cookies", cookie_path])
        cmd.append(url)
        return cmd


class YoutubeDlStrategy(CommandDownloadStrategy):
    """The original youtube-dl extractor, used as a generic fallback."""

    binary = "youtube-dl"

    def build_command(self, url, work_dir, token, cookie_path):
        cmd = [
            self.binary,
            "--no-playlist",
            "--socket-timeout", "30",
            "-f", "best[height<=720]/best",
            "-o", os.path.join(work_dir, f"{token}.%(ext)s"),
        ]
        if cookie_path:
            cmd.extend(["--cookies", cookie_path])
        cmd.append(url)
        return cmd


class GalleryDlStrategy(CommandDownloadStrategy):
    binary = "gallery-dl"

    def build_command(self, url, work_dir, token, cookie_path):
        cmd = [
            self.binary,
            "-D", work_dir,
            "-f", f"{token}.{{extension}}",
        ]
        if cookie_path:
            cmd.extend(["--cookies", cookie_path])
        cmd.append(url)
        return cmd


class StreamlinkStrategy(CommandDownloadStrategy):
    """Stream capture; last resort for live or HLS-only sources."""

    binary = "streamlink"
    uses_cookies = False

    def build_command(self, url, work_dir, token, cookie_path):
        return [
            self.binary,
            "--force",
            "-o", os.path.join(work_dir, f"{token}.ts"),
            url,
            "best",
        ]


def _library_download(url: str, outtmpl: str, cookie_path: Optional[str], results) -> None:
    """Child-process entry point for YtDlpLibraryStrategy."""
    import yt_dlp

    opts = {
        "outtmpl": outtmpl,
        "format": FORMAT_SELECTOR,
        "merge_output_format": "mp4",
        "noplaylist": True,
        "quiet": True,
        "no_warnings": True,
        "socket_timeout": 30,
        "retries": 2,
    }
    if cookie_path:
        opts["cookiefile"] = cookie_path
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            ydl.download([url])
        results.put(None)
    except Exception as e:  # noqa: BLE001
        results.put(str(e))


class YtDlpLibraryStrategy(AcquisitionStrategyPort):
    """yt_dlp as a Python library, isolated in a child process so a hung download can be killed."""

    name = "yt_dlp-library"

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, cookies: Optional[str] = None,
                 temp_dir: Optional[str] = None):
        self._timeout = timeout
        self._cookies = cookies
        self._temp_dir = temp_dir

    def attempt(self, url: str, work_dir: str) -> str:
        token = output_token(url)
        clear_partials(work_dir, token)
        outtmpl = os.path.join(work_dir, f"{token}.%(ext)s")
        ctx = multiprocessing.get_context("spawn")

        with cookie_file(self._cookies, self._temp_dir or work_dir) as cookie_path:
            results = ctx.Queue()
            process = ctx.Process(target=_library_download, args=(url, outtmpl, cookie_path, results))
            process.start()
            process.join(self._timeout)
            if process.is_alive():
                process.terminate()
                process.join(5)
                raise StrategyError(f"{self.name} timed out after {self._timeout}s", timed_out=True)

            try:
                error = results.get(timeout=1)
            except Empty:
                error = f"worker exited with code {process.exitcode}"

        if error:
            raise StrategyError(f"{self.name} failed: {_tail(error)}")

        path = find_output(work_dir, token)
        if not path:
            raise StrategyError(f"{self.name} finished but produced no video file for {token}")
        return path
