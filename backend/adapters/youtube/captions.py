"""Caption sources: yt-dlp subtitle download (WebVTT) and the timedtext XML endpoint."""

import re
import logging
import subprocess
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

import requests

from adapters.youtube.cookies import cookie_file
from adapters.youtube.urls import extract_video_id
from domain.errors import CaptionError
from domain.models import TranscriptSegment
from ports.captions import CaptionSourcePort
from post_processing import dedupe_rolling_segments, filter_invalid_segments, strip_markup

logger = logging.getLogger(__name__)

SUBTITLE_LANGS = "en,en-US,en-GB"

TIMEDTEXT_URL = "https://www.youtube.com/api/timedtext"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CUE_TIMING = re.compile(
    r"((?:\d+:)?\d{1,2}:\d{2}[.,]\d{1,3})\s*-->\s*((?:\d+:)?\d{1,2}:\d{2}[.,]\d{1,3})"
)


def parse_vtt_time(value: str) -> float:
    """Parse HH:MM:SS.mmm or MM:SS.mmm into seconds."""
    parts = value.strip().replace(",", ".").split(":")
    seconds = float(parts[-1])
    minutes = int(parts[-2]) if len(parts) >= 2 else 0
    hours = int(parts[-3]) if len(parts) >= 3 else 0
    return hours * 3600 + minutes * 60 + seconds


def parse_vtt(content: str) -> list[TranscriptSegment]:
    """Parse WebVTT into ordered segments.

    Cue text may span several lines; cue identifiers, NOTE/STYLE blocks and
    inline tags are ignored.
    """
    segments: list[TranscriptSegment] = []
    for block in re.split(r"\n\s*\n", content.replace("\r\n", "\n")):
        lines = [line.strip() for line in block.strip().split("\n") if line.strip()]
        for i, line in enumerate(lines):
            match = CUE_TIMING.search(line)
            if not match:
                continue
            text = strip_markup(" ".join(lines[i + 1:]))
            segments.append(TranscriptSegment(
                start=parse_vtt_time(match.group(1)),
                end=parse_vtt_time(match.group(2)),
                text=text,
            ))
            break
    return dedupe_rolling_segments(filter_invalid_segments(segments))


def parse_timedtext_xml(content: str) -> list[TranscriptSegment]:
    """Parse the <transcript><text start=".." dur="..">..</text></transcript> format."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise CaptionError(f"Malformed timedtext XML: {e}")

    segments: list[TranscriptSegment] = []
    for node in root.iter("text"):
        start = float(node.get("start", 0))
        dur = float(node.get("dur", 0))
        text = strip_markup(node.text or "")
        segments.append(TranscriptSegment(start=start, end=start + dur, text=text))
    return filter_invalid_segments(segments)


class YtDlpCaptionSource(CaptionSourcePort):
    name = "yt-dlp-subtitles"

    def __init__(self, timeout: int = 60, cookies: Optional[str] = None):
        self._timeout = timeout
        self._cookies = cookies

    def fetch(self, url: str, work_dir: str) -> list[TranscriptSegment]:
        token = extract_video_id(url) or "captions"
        with cookie_file(self._cookies, work_dir) as cookie_path:
            cmd = [
                "yt-dlp",
                "--write-sub", "--write-auto-sub",
                "--sub-lang", SUBTITLE_LANGS,
                "--sub-format", "vtt",
                "--skip-download",
                "--no-warnings",
                "--socket-timeout", "30",
                "-o", str(Path(work_dir) / f"{token}.%(ext)s"),
            ]
            if cookie_path:
                cmd.extend(["--cookies", cookie_path])
            cmd.append(url)
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
            except subprocess.TimeoutExpired:
                raise CaptionError(f"Subtitle download timed out after {self._timeout}s")
            except FileNotFoundError:
                raise CaptionError("yt-dlp is not installed")

        if result.returncode != 0:
            raise CaptionError(f"yt-dlp subtitles failed: {result.stderr.strip()[-300:]}")

        for vtt in sorted(Path(work_dir).glob(f"{token}*.vtt")):
            try:
                segments = parse_vtt(vtt.read_text(encoding="utf-8"))
            finally:
                vtt.unlink(missing_ok=True)
            if segments:
                logger.info(f"Parsed {len(segments)} caption segments from {vtt.name}")
                return segments

        raise CaptionError("No subtitle files found")


class TimedTextCaptionSource(CaptionSourcePort):
    name = "timedtext-api"

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, url: str, work_dir: str) -> list[TranscriptSegment]:
        video_id = extract_video_id(url)
        if not video_id:
            raise CaptionError("Not a YouTube URL")
        try:
            response = self._session.get(
                TIMEDTEXT_URL,
                params={"lang": "en", "v": video_id},
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise CaptionError(f"timedtext request failed: {e}")

        if not response.text.strip():
            raise CaptionError("No transcript data received")
        segments = parse_timedtext_xml(response.text)
        if not segments:
            raise CaptionError("Transcript contained no cues")
        return segments
