"""Text post-processing for caption tracks and GIF captions.

Functions for stripping caption markup, collapsing the rolling duplicates
that auto-generated captions produce, and cleaning model-written captions
so they are safe to burn into a GIF.
"""

import re
import html
import logging
from typing import List

from domain.models import TranscriptSegment

logger = logging.getLogger(__name__)

MAX_CAPTION_CHARS = 25

# Inline cue markup: <c>, <00:00:01.000>, <v Speaker>, <i>, ...
TAG_PATTERN = re.compile(r"<[^>]+>")

GENERIC_CAPTION_PATTERNS = [
    re.compile(r"^quote\s*\d*$", re.IGNORECASE),
    re.compile(r"^later\s*content", re.IGNORECASE),
    re.compile(r"^early\s*content", re.IGNORECASE),
    re.compile(r"^content\s*with", re.IGNORECASE),
    re.compile(r"^scene\s*\d+$", re.IGNORECASE),
    re.compile(r"^segment\s*\d*$", re.IGNORECASE),
    re.compile(r"^moment\s*\d*$", re.IGNORECASE),
    re.compile(r"^part\s*\d*$", re.IGNORECASE),
    re.compile(r"^caption\s*\d*$", re.IGNORECASE),
]


def strip_markup(text: str) -> str:
    """Remove inline cue tags and HTML entities, collapse whitespace."""
    text = TAG_PATTERN.sub("", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def dedupe_rolling_segments(segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """Collapse the repeated lines of roll-up auto captions.

    Auto-generated tracks show each line twice: once while it is being
    spoken and again above the next line. Exact repeats are merged into the
    earlier cue (extending its end), and a cue that starts with the previous
    cue's text keeps only the new words.
    """
    if not segments:
        return []

    result: List[TranscriptSegment] = []
    for seg in sorted(segments, key=lambda s: s.start):
        text = seg.text.strip()
        if not text:
            continue
        if result:
            previous = result[-1]
            if text == previous.text:
                previous.end = max(previous.end, seg.end)
                continue
            if text.startswith(previous.text + " "):
                text = text[len(previous.text):].strip()
        result.append(TranscriptSegment(start=seg.start, end=seg.end, text=text))

    removed = len(segments) - len(result)
    if removed:
        logger.debug(f"Collapsed {removed} rolling caption duplicates")
    return result


def filter_invalid_segments(segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """Drop cues with no text or a non-positive time span."""
    return [s for s in segments if s.text.strip() and s.start < s.end]


def clean_caption(caption: str) -> str:
    """Make a model-written caption safe and short enough to overlay."""
    caption = re.sub(r"['\"]", "", caption)
    caption = re.sub(r"[^\w\s\-!?.,]", "", caption)
    caption = re.sub(r"\s+", " ", caption).strip()
    return caption[:MAX_CAPTION_CHARS].strip()


def is_generic_caption(caption: str) -> bool:
    """True for placeholder captions such as "Scene 2" or "Later content"."""
    text = caption.strip()
    return any(p.search(text) for p in GENERIC_CAPTION_PATTERNS)


def count_words(text: str) -> int:
    return len(text.split())
