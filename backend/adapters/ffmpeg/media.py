"""FFmpegMediaAdapter — probing, frame grabs, scene detection and trimming via ffmpeg."""

import os
import re
import json
import logging
import subprocess

from domain.models import DEFAULT_HEIGHT, DEFAULT_WIDTH, VideoInfo
from ports.media import MediaToolsPort

logger = logging.getLogger(__name__)

# ffmpeg scene score above which a frame counts as a cut
SCENE_THRESHOLD = 0.3

PTS_TIME_RE = re.compile(r"pts_time:(\d+(?:\.\d+)?)")


def parse_probe_output(stdout: str) -> VideoInfo:
    """Build VideoInfo from `ffprobe -print_format json -show_format -show_streams` output."""
    data = json.loads(stdout)
    fmt = data.get("format", {})
    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"),
        {},
    )
    tags = fmt.get("tags", {}) or {}
    return VideoInfo(
        duration_seconds=float(fmt.get("duration") or video_stream.get("duration") or 0),
        width=int(video_stream.get("width") or 0) or DEFAULT_WIDTH,
        height=int(video_stream.get("height") or 0) or DEFAULT_HEIGHT,
        size_bytes=int(fmt.get("size") or 0),
        bitrate=int(fmt.get("bit_rate") or 0),
        title=tags.get("title") or "Unknown Title",
        description=tags.get("comment") or "",
    )


def parse_scene_changes(stderr: str, duration: float) -> list[float]:
    """Pull pts_time values out of ffmpeg showinfo output, keeping those inside (0, duration)."""
    timestamps: list[float] = []
    for match in PTS_TIME_RE.finditer(stderr):
        ts = float(match.group(1))
        if 0 < ts < duration and ts not in timestamps:
            timestamps.append(ts)
    return sorted(timestamps)


class FFmpegMediaAdapter(MediaToolsPort):
    def __init__(self, timeout: int = 60):
        self._timeout = timeout

    def probe(self, path: str) -> VideoInfo:
        cmd = [
            "ffprobe", "-v", "quiet",
            "-print_format", "json",
            "-show_format", "-show_streams",
            path,
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        if result.returncode != 0:
            logger.error(f"ffprobe failed for {path}: {result.stderr}")
            raise RuntimeError(f"Failed to probe video: {result.stderr.strip() or 'unknown error'}")
        info = parse_probe_output(result.stdout)
        logger.info(f"Probed {os.path.basename(path)}: {info.duration_seconds:.2f}s {info.width}x{info.height}")
        return info

    def extract_frame(self, path: str, timestamp: float, output_path: str) -> str:
        cmd = [
            "ffmpeg", "-y",
            "-ss", f"{timestamp:.2f}",
            "-i", path,
            "-vframes", "1",
            "-q:v", "2",
            "-vf", "scale=640:-2",
            output_path,
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        if result.returncode != 0 or not os.path.exists(output_path):
            raise RuntimeError(f"Failed to extract frame at {timestamp:.2f}s: {result.stderr[-300:]}")
        return output_path

    def detect_scene_changes(self, path: str, duration: float) -> list[float]:
        cmd = [
            "ffmpeg", "-hide_banner",
            "-i", path,
            "-vf", f"select='gt(scene,{SCENE_THRESHOLD})',showinfo",
            "-f", "null", "-",
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        if result.returncode != 0:
            raise RuntimeError(f"Scene detection failed: {result.stderr[-300:]}")
        changes = parse_scene_changes(result.stderr, duration)
        logger.info(f"Detected {len(changes)} scene changes")
        return changes

    def trim(self, path: str, start: float, duration: float, output_path: str) -> str:
        cmd = [
            "ffmpeg", "-y",
            "-ss", str(start),
            "-i", path,
            "-t", str(duration),
            "-c:v", "libx264",
            "-c:a", "aac",
            "-preset", "fast",
            "-crf", "28",
            "-movflags", "+faststart",
            "-avoid_negative_ts", "make_zero",
            output_path,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout * 5)
            if result.returncode != 0:
                logger.error(f"Error trimming video: {result.stderr}")
                raise RuntimeError(f"Failed to trim video: {result.stderr[-300:]}")
            return output_path
        except Exception:
            if os.path.exists(output_path):
                os.unlink(output_path)
            raise
