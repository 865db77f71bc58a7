"""Helpers for recognising YouTube URLs and their video ids."""

import re
from typing import Optional

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/v/|youtube\.com/shorts/)([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/watch\?.*v=([A-Za-z0-9_-]{11})"),
]


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id, or None for non-YouTube URLs."""
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None
