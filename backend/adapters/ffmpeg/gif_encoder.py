"""FFmpegGifEncoder — renders one moment to a GIF (fps and scale filters), optionally captioned."""

import os
import re
import logging
import subprocess
from typing import Optional

from domain.errors import RenderError
from ports.encoder import EncoderPort

logger = logging.getLogger(__name__)

GIF_FPS = 12
GIF_WIDTH = 480
MAX_CAPTION_CHARS = 25


def sanitize_drawtext(caption: str) -> str:
    """Strip characters that break ffmpeg filter-graph quoting."""
    cleaned = re.sub(r"['\"\\:%]", "", caption)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:MAX_CAPTION_CHARS].strip()


def build_filter(caption: Optional[str] = None, font_path: Optional[str] = None) -> str:
    base = f"fps={GIF_FPS},scale={GIF_WIDTH}:-1:flags=lanczos"
    text = sanitize_drawtext(caption) if caption else ""
    if not text or not font_path:
        return base
    font = font_path.replace("\\", "/").replace(":", "\\:")
    drawtext = (
        f"drawtext=text='{text}':fontfile='{font}':fontsize=18:fontcolor=white"
        ":x=(w-text_w)/2:y=h-30:box=1:boxcolor=black@0.8:boxborderw=3"
    )
    return f"{base},{drawtext}"


class FFmpegGifEncoder(EncoderPort):
    def __init__(self, timeout: int = 60):
        self._timeout = timeout

    def encode(
        self,
        input_path: str,
        start: float,
        duration: float,
        output_path: str,
        caption: Optional[str] = None,
        font_path: Optional[str] = None,
    ) -> None:
        cmd = [
            "ffmpeg", "-y",
            "-ss", str(start),
            "-t", str(duration),
            "-i", input_path,
            "-vf", build_filter(caption, font_path),
            "-pix_fmt", "rgb24",
            output_path,
        ]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        except subprocess.TimeoutExpired:
            raise RenderError(f"ffmpeg timed out after {self._timeout}s")
        except FileNotFoundError:
            raise RenderError("ffmpeg is not installed")

        if result.returncode != 0:
            logger.error(f"Error creating GIF: {result.stderr[-500:]}")
            raise RenderError(f"ffmpeg exited with code {result.returncode}")
        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise RenderError("GIF was not created or is empty")
