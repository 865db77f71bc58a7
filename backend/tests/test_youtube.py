"""Tests for YouTube adapters: caption parsing, metadata scraping, cookies, download strategies."""

import os
import subprocess
from types import SimpleNamespace

import pytest

from adapters.local.memory_rate_limiter import MemoryRateLimiter
from adapters.youtube import download
from adapters.youtube.captions import parse_timedtext_xml, parse_vtt, parse_vtt_time
from adapters.youtube.cookies import cookie_file
from adapters.youtube.download import (
    GalleryDlStrategy,
    StreamlinkStrategy,
    YtDlpStrategy,
    find_output,
    output_token,
)
from adapters.youtube.metadata import RateLimitedError, WebPageMetadataProbe, parse_iso_duration, parse_watch_page
from adapters.youtube.urls import extract_video_id
from conftest import YOUTUBE_URL
from domain.errors import CaptionError, StrategyError

VTT = """WEBVTT
Kind: captions
Language: en

NOTE auto-generated

1
00:00:01.000 --> 00:00:03.500 align:start position:0%
Hello <c.colorE5E5E5>there</c>

00:00:03.500 --> 00:00:05.000
Hello there

00:00:05.000 --> 00:00:07.250
Hello there how are you
doing today

00:07.250 --> 00:09.000
&amp; bye

00:00:09.000 --> 00:00:09.000
zero length
"""

WATCH_PAGE = """<html><head>
<meta property="og:title" content="Cats &amp; Dogs - YouTube">
<meta property="og:description" content="Funny pets compilation">
<script type="application/ld+json">{"@type": "VideoObject", "duration": "PT1M30S"}</script>
</head></html>"""


# --- captions ---


def test_parse_vtt_time() -> None:
    assert parse_vtt_time("00:00:01.500") == 1.5
    assert parse_vtt_time("01:02:03.000") == 3723.0
    assert parse_vtt_time("02:03,250") == 123.25


def test_parse_vtt_strips_markup_and_rolling_duplicates() -> None:
    segments = parse_vtt(VTT)
    assert [(s.start, s.end, s.text) for s in segments] == [
        (1.0, 5.0, "Hello there"),
        (5.0, 7.25, "how are you doing today"),
        (7.25, 9.0, "& bye"),
    ]


def test_parse_vtt_empty_document() -> None:
    assert parse_vtt("WEBVTT\n\n") == []


def test_parse_timedtext_xml() -> None:
    xml = '<transcript><text start="0.5" dur="2">Hi &amp;amp; welcome</text><text start="3" dur="0">x</text></transcript>'
    segments = parse_timedtext_xml(xml)
    assert [(s.start, s.end, s.text) for s in segments] == [(0.5, 2.5, "Hi & welcome")]


def test_parse_timedtext_xml_malformed() -> None:
    with pytest.raises(CaptionError):
        parse_timedtext_xml("<transcript><text>")


# --- urls & metadata ---


@pytest.mark.parametrize("url", [
    YOUTUBE_URL,
    "https://youtu.be/dQw4w9WgXcQ?t=10",
    "https://www.youtube.com/shorts/dQw4w9WgXcQ",
    "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
])
def test_extract_video_id(url) -> None:
    assert extract_video_id(url) == "dQw4w9WgXcQ"


def test_non_youtube_url() -> None:
    assert extract_video_id("https://vimeo.com/12345") is None


def test_parse_iso_duration() -> None:
    assert parse_iso_duration("PT1H2M3S") == 3723
    assert parse_iso_duration("PT45S") == 45
    assert parse_iso_duration("garbage") == 300.0


def test_parse_watch_page() -> None:
    info = parse_watch_page(WATCH_PAGE, YOUTUBE_URL)
    assert info.title == "Cats & Dogs"
    assert info.description == "Funny pets compilation"
    assert info.duration_seconds == 90
    assert info.video_id == "dQw4w9WgXcQ"


def test_web_page_probe_is_rate_limited() -> None:
    class Session:
        calls = 0

        def get(self, url, **kwargs):
            Session.calls += 1
            return SimpleNamespace(text=WATCH_PAGE, raise_for_status=lambda: None)

    probe = WebPageMetadataProbe(session=Session(), rate_limiter=MemoryRateLimiter(points=2, duration=60))
    assert probe.fetch(YOUTUBE_URL).title == "Cats & Dogs"
    probe.fetch(YOUTUBE_URL)
    with pytest.raises(RateLimitedError):
        probe.fetch(YOUTUBE_URL)
    assert Session.calls == 2


def test_rate_limiter_window_resets() -> None:
    now = [0.0]
    limiter = MemoryRateLimiter(points=1, duration=60, clock=lambda: now[0])
    assert limiter.check("k") is True
    assert limiter.check("k") is False
    assert limiter.check("other") is True
    now[0] = 61.0
    assert limiter.check("k") is True


# --- cookies ---


def test_cookie_file_removed_after_use(tmp_path) -> None:
    with cookie_file("# Netscape HTTP Cookie File\n", str(tmp_path)) as path:
        assert os.path.exists(path)
        assert oct(os.stat(path).st_mode & 0o777) == "0o600"
    assert not os.path.exists(path)


def test_cookie_file_removed_on_error(tmp_path) -> None:
    with pytest.raises(RuntimeError):
        with cookie_file("cookies", str(tmp_path)) as path:
            raise RuntimeError("download failed")
    assert os.listdir(tmp_path) == []


def test_cookie_file_none_without_cookies(tmp_path) -> None:
    with cookie_file(None, str(tmp_path)) as path:
        assert path is None


# --- download strategies ---


def test_output_token_uses_video_id() -> None:
    assert output_token(YOUTUBE_URL) == "dQw4w9WgXcQ"
    assert len(output_token("https://example.com/live")) == 12


def test_find_output_picks_largest_video(tmp_path) -> None:
    (tmp_path / "abc.part").write_bytes(b"\x00" * 5000)
    (tmp_path / "abc.f137.mp4").write_bytes(b"\x00" * 100)
    (tmp_path / "abc.mp4").write_bytes(b"\x00" * 1000)
    (tmp_path / "abc.webm").write_bytes(b"")
    assert find_output(str(tmp_path), "abc") == str(tmp_path / "abc.mp4")
    assert find_output(str(tmp_path), "xyz") is None


def test_ytdlp_command_uses_player_client(tmp_path) -> None:
    strategy = YtDlpStrategy(player_client="android")
    cmd = strategy.build_command(YOUTUBE_URL, str(tmp_path), "dQw4w9WgXcQ", "/tmp/cookies.txt")
    assert strategy.name == "yt-dlp[android]"
    assert "youtube:player_client=android" in cmd
    assert cmd[cmd.index("--cookies") + 1] == "/tmp/cookies.txt"
    assert cmd[-1] == YOUTUBE_URL


def test_streamlink_never_gets_cookies(tmp_path) -> None:
    strategy = StreamlinkStrategy(cookies="secret")
    cmd = strategy.build_command(YOUTUBE_URL, str(tmp_path), "tok", None)
    assert cmd[-2:] == [YOUTUBE_URL, "best"]
    assert strategy._cookies is None


def test_strategy_success_and_cookie_cleanup(monkeypatch, tmp_path) -> None:
    seen = {}

    def _run(cmd, **kwargs):
        cookie_path = cmd[cmd.index("--cookies") + 1]
        seen["cookie_existed"] = os.path.exists(cookie_path)
        seen["cookie_path"] = cookie_path
        (tmp_path / "dQw4w9WgXcQ.mp4").write_bytes(b"\x00" * 512)
        return SimpleNamespace(returncode=0, stderr="", stdout="")

    monkeypatch.setattr(download.subprocess, "run", _run)
    path = YtDlpStrategy(cookies="cookie-data", temp_dir=str(tmp_path / "cookies")).attempt(YOUTUBE_URL, str(tmp_path))

    assert path == str(tmp_path / "dQw4w9WgXcQ.mp4")
    assert seen["cookie_existed"] is True
    assert not os.path.exists(seen["cookie_path"])


def test_strategy_failure_modes(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(download.subprocess, "run",
                        lambda cmd, **kw: SimpleNamespace(returncode=1, stderr="ERROR: Video unavailable", stdout=""))
    with pytest.raises(StrategyError, match="Video unavailable"):
        GalleryDlStrategy().attempt(YOUTUBE_URL, str(tmp_path))

    monkeypatch.setattr(download.subprocess, "run",
                        lambda cmd, **kw: SimpleNamespace(returncode=0, stderr="", stdout=""))
    with pytest.raises(StrategyError, match="no video file"):
        GalleryDlStrategy().attempt(YOUTUBE_URL, str(tmp_path))


def test_strategy_timeout_is_flagged(monkeypatch, tmp_path) -> None:
    def _timeout(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd=cmd, timeout=kwargs["timeout"])

    monkeypatch.setattr(download.subprocess, "run", _timeout)
    with pytest.raises(StrategyError) as exc_info:
        YtDlpStrategy(timeout=5).attempt(YOUTUBE_URL, str(tmp_path))
    assert exc_info.value.timed_out is True


def test_strategy_clears_stale_partials(monkeypatch, tmp_path) -> None:
    """A leftover file from an earlier strategy cannot pass the success check."""
    (tmp_path / "dQw4w9WgXcQ.mp4").write_bytes(b"\x00" * 512)
    monkeypatch.setattr(download.subprocess, "run",
                        lambda cmd, **kw: SimpleNamespace(returncode=0, stderr="", stdout=""))
    with pytest.raises(StrategyError):
        YtDlpStrategy().attempt(YOUTUBE_URL, str(tmp_path))
