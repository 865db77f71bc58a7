"""ContentDescriber — builds a Transcript from captions or from the pictures.

Order of preference:
  1. platform captions (remote sources only), exact timing and free
  2. frame descriptions from the vision service merged with scene cuts
  3. a synthetic timeline that depends on nothing but the duration

describe() never raises: every failure drops to the next level down.
"""

import os
import math
import logging
import tempfile
from typing import Optional, Sequence

from domain.models import Transcript, TranscriptSegment, TranscriptSource
from ports.captions import CaptionSourcePort
from ports.media import MediaToolsPort
from ports.reasoning import VisionPort

logger = logging.getLogger(__name__)

PLACEHOLDER_DESCRIPTION = "Visual content"

FRAME_INSTRUCTION = (
    "Describe what is happening in this video frame in one short sentence "
    "(max 20 words). Mention people, actions, objects and mood."
)

# Boundaries closer than this are merged
MIN_BOUNDARY_GAP = 0.5

# Videos longer than this get an extra frame every EXTRA_FRAME_INTERVAL seconds
LONG_VIDEO_SECONDS = 30.0
EXTRA_FRAME_INTERVAL = 15.0

DEFAULT_MAX_FRAMES = 12

POSITION_LABELS = [
    (0.2, "Opening"),
    (0.4, "Early"),
    (0.6, "Middle"),
    (0.8, "Later"),
]


def position_label(start: float, duration: float) -> str:
    position = start / duration if duration > 0 else 0.0
    for threshold, label in POSITION_LABELS:
        if position < threshold:
            return label
    return "Closing"


def compute_frame_timestamps(duration: float, max_frames: int = DEFAULT_MAX_FRAMES) -> list[float]:
    """Pick representative frame times: first and last second, quartiles, and
    a frame every 15s for long videos, capped at max_frames."""
    max_frames = max(2, max_frames)
    last = round(max(0.0, duration - 1.0), 2)
    points = {0.0, last}
    for fraction in (0.25, 0.5, 0.75):
        points.add(round(duration * fraction, 2))
    if duration > LONG_VIDEO_SECONDS:
        t = EXTRA_FRAME_INTERVAL
        while t < last:
            points.add(round(t, 2))
            t += EXTRA_FRAME_INTERVAL

    ordered = sorted(p for p in points if 0.0 <= p <= last)
    if len(ordered) > max_frames:
        step = (len(ordered) - 1) / (max_frames - 1)
        ordered = sorted({ordered[round(i * step)] for i in range(max_frames)})
    return ordered


def build_segments(
    duration: float,
    frames: Sequence[tuple[float, str]],
    scene_changes: Sequence[float] = (),
) -> list[TranscriptSegment]:
    """Cut [0, duration] at frame times and scene changes, label each piece
    with the description of the frame nearest to its middle."""
    inner = {t for t in [f[0] for f in frames] + list(scene_changes) if 0 < t < duration}
    boundaries = [0.0]
    for b in sorted(inner):
        if b - boundaries[-1] >= MIN_BOUNDARY_GAP and duration - b >= MIN_BOUNDARY_GAP:
            boundaries.append(b)
    boundaries.append(duration)

    segments: list[TranscriptSegment] = []
    for start, end in zip(boundaries, boundaries[1:]):
        middle = (start + end) / 2
        if frames:
            description = min(frames, key=lambda f: (abs(f[0] - middle), f[0]))[1]
        else:
            description = PLACEHOLDER_DESCRIPTION
        label = position_label(start, duration)
        segments.append(TranscriptSegment(
            start=start,
            end=end,
            text=f"{label}: {description} ({int(start)}s-{int(end)}s)",
            visual_description=description,
        ))
    return segments


def fallback_transcript(duration: float) -> Transcript:
    """Synthetic timeline of 3-6 equal segments. Pure function of duration."""
    count = min(6, max(3, math.floor(duration / 3)))
    size = duration / count
    segments = []
    for i in range(count):
        start = i * size
        end = duration if i == count - 1 else (i + 1) * size
        label = position_label(start, duration)
        segments.append(TranscriptSegment(
            start=start,
            end=end,
            text=f"{label} scene ({int(start)}s-{int(end)}s)",
        ))
    return Transcript(segments=segments, source_kind=TranscriptSource.FALLBACK)


def window_segments(segments: Sequence[TranscriptSegment], offset: float, duration: float) -> list[TranscriptSegment]:
    """Shift caption times by -offset and keep the parts inside [0, duration]."""
    result = []
    for seg in segments:
        start = max(0.0, seg.start - offset)
        end = min(duration, seg.end - offset)
        if start < end:
            result.append(TranscriptSegment(start=start, end=end, text=seg.text))
    return result


class ContentDescriber:
    def __init__(
        self,
        media: MediaToolsPort,
        caption_sources: Sequence[CaptionSourcePort] = (),
        vision: Optional[VisionPort] = None,
        max_frames: int = DEFAULT_MAX_FRAMES,
        temp_dir: Optional[str] = None,
    ):
        self._media = media
        self._caption_sources = list(caption_sources)
        self._vision = vision
        self._max_frames = max_frames
        self._temp_dir = temp_dir

    def describe(
        self,
        local_path: Optional[str],
        duration: float,
        prompt: str = "",
        remote_url: Optional[str] = None,
        caption_offset: float = 0.0,
    ) -> Transcript:
        try:
            if remote_url:
                segments = window_segments(self.fetch_captions(remote_url), caption_offset, duration)
                if segments:
                    logger.info(f"Using {len(segments)} caption segments")
                    return Transcript(segments=segments, source_kind=TranscriptSource.CAPTIONS)
                logger.info("No captions available, analysing video content")

            if local_path and os.path.exists(local_path):
                return self.analyze_content(local_path, duration, prompt)
        except Exception:  # noqa: BLE001
            logger.exception("Content description failed, using fallback transcript")

        logger.info("Using fallback transcript")
        return fallback_transcript(duration)

    def fetch_captions(self, url: str) -> list[TranscriptSegment]:
        for source in self._caption_sources:
            try:
                with tempfile.TemporaryDirectory(prefix="captions_", dir=self._temp_dir) as work_dir:
                    segments = source.fetch(url, work_dir)
                if segments:
                    logger.info(f"Captions from {source.name}: {len(segments)} segments")
                    return segments
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Caption source {source.name} failed: {e}")
        return []

    def analyze_content(self, path: str, duration: float, prompt: str = "") -> Transcript:
        timestamps = compute_frame_timestamps(duration, self._max_frames)
        logger.info(f"Analysing {len(timestamps)} frames of {os.path.basename(path)}")

        with tempfile.TemporaryDirectory(prefix="frames_", dir=self._temp_dir) as frame_dir:
            frames = [(ts, self._describe_frame(path, ts, frame_dir, prompt)) for ts in timestamps]

        try:
            scene_changes = self._media.detect_scene_changes(path, duration)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Scene detection failed: {e}")
            scene_changes = []

        segments = build_segments(duration, frames, scene_changes)
        logger.info(f"Built {len(segments)} visual segments ({len(scene_changes)} scene changes)")
        return Transcript(segments=segments, source_kind=TranscriptSource.VISUAL_ANALYSIS)

    def _describe_frame(self, path: str, timestamp: float, frame_dir: str, prompt: str) -> str:
        if self._vision is None:
            return PLACEHOLDER_DESCRIPTION

        frame_path = os.path.join(frame_dir, f"frame_{timestamp:08.2f}.jpg")
        instruction = FRAME_INSTRUCTION
        if prompt:
            instruction += f" The viewer is looking for: {prompt}."
        try:
            self._media.extract_frame(path, timestamp, frame_path)
            description = self._vision.describe_image(frame_path, instruction).strip()
            return description.splitlines()[0] if description else PLACEHOLDER_DESCRIPTION
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Frame at {timestamp:.2f}s not described: {e}")
            return PLACEHOLDER_DESCRIPTION
