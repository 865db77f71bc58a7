"""Metadata probes: yt-dlp --dump-json and watch-page scraping.

Used before acquisition to get a title and duration for error messages and
as the VideoInfo fallback if the downloaded file cannot be probed.
"""

import re
import json
import html
import logging
import subprocess
from typing import Optional

import requests

from adapters.youtube.cookies import cookie_file
from adapters.youtube.urls import extract_video_id
from domain.models import DEFAULT_DURATION, DEFAULT_HEIGHT, DEFAULT_WIDTH, VideoInfo
from ports.acquisition import MetadataProbePort
from ports.rate_limiter import RateLimiterPort

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?")
LD_JSON = re.compile(r'<script[^>]+type="application/ld\+json"[^>]*>(.*?)</script>', re.DOTALL)


class RateLimitedError(RuntimeError):
    pass


def parse_iso_duration(value: str) -> float:
    """Parse an ISO-8601 duration such as PT1H2M3S. Returns DEFAULT_DURATION when unparseable."""
    match = ISO_DURATION.fullmatch(value.strip()) if value else None
    if not match or not any(match.groups()):
        return DEFAULT_DURATION
    hours, minutes, seconds = match.groups()
    return int(hours or 0) * 3600 + int(minutes or 0) * 60 + float(seconds or 0)


def _meta_content(page: str, key: str) -> Optional[str]:
    pattern = re.compile(
        rf'<meta\s+(?:property|name)="{re.escape(key)}"\s+content="([^"]*)"',
        re.IGNORECASE,
    )
    match = pattern.search(page)
    return html.unescape(match.group(1)) if match else None


def parse_watch_page(page: str, url: str) -> VideoInfo:
    """Pull title, description and duration out of a watch-page HTML document."""
    title = _meta_content(page, "og:title") or _meta_content(page, "title") or "Unknown Title"
    description = _meta_content(page, "og:description") or _meta_content(page, "description") or ""

    duration = DEFAULT_DURATION
    for block in LD_JSON.findall(page):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and data.get("@type") == "VideoObject" and data.get("duration"):
            duration = parse_iso_duration(data["duration"])
            break
    else:
        duration_meta = _meta_content(page, "duration")
        if duration_meta:
            duration = parse_iso_duration(duration_meta)

    return VideoInfo(
        duration_seconds=duration,
        title=title.replace(" - YouTube", "").strip(),
        description=description,
        video_id=extract_video_id(url),
    )


class YtDlpMetadataProbe(MetadataProbePort):
    name = "yt-dlp"

    def __init__(self, timeout: int = 30, cookies: Optional[str] = None,
                 temp_dir: str = "/tmp", rate_limiter: Optional[RateLimiterPort] = None):
        self._timeout = timeout
        self._cookies = cookies
        self._temp_dir = temp_dir
        self._rate_limiter = rate_limiter

    def fetch(self, url: str) -> VideoInfo:
        if self._rate_limiter and not self._rate_limiter.check("metadata"):
            raise RateLimitedError("yt-dlp metadata lookups are rate-limited")

        with cookie_file(self._cookies, self._temp_dir) as cookie_path:
            cmd = [
                "yt-dlp",
                "--dump-json",
                "--no-download",
                "--no-warnings",
                "--no-playlist",
                "--socket-timeout", "30",
                "--extractor-args", "youtube:player_client=web",
            ]
            if cookie_path:
                cmd.extend(["--cookies", cookie_path])
            cmd.append(url)
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)

        if result.returncode != 0 or not result.stdout.strip():
            raise RuntimeError(f"No metadata returned from yt-dlp: {result.stderr.strip()[-300:]}")

        data = json.loads(result.stdout.strip().splitlines()[0])
        return VideoInfo(
            duration_seconds=float(data.get("duration") or DEFAULT_DURATION),
            width=int(data.get("width") or DEFAULT_WIDTH),
            height=int(data.get("height") or DEFAULT_HEIGHT),
            size_bytes=int(data.get("filesize") or data.get("filesize_approx") or 0),
            bitrate=int((data.get("tbr") or 0) * 1000),
            title=data.get("title") or "Unknown Title",
            description=data.get("description") or "",
            video_id=data.get("id") or extract_video_id(url),
        )


class WebPageMetadataProbe(MetadataProbePort):
    name = "web-scraping"

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None,
                 rate_limiter: Optional[RateLimiterPort] = None):
        self._timeout = timeout
        self._session = session or requests.Session()
        self._rate_limiter = rate_limiter

    def fetch(self, url: str) -> VideoInfo:
        if self._rate_limiter and not self._rate_limiter.check("scraping"):
            raise RateLimitedError("watch-page scraping is rate-limited")

        response = self._session.get(
            url,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        return parse_watch_page(response.text, url)
