"""Framework-agnostic domain models for the GIF moment pipeline.

Processing logic works on these dataclasses only. Pydantic DTOs in
models.py remain the API response schema, with mappers at the boundary.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

MOMENT_COUNT = 3
MAX_MOMENT_SECONDS = 10.0

DEFAULT_DURATION = 300.0
DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 360

EMPTY_TRANSCRIPT_TEXT = "No transcript available"


class MediaKind(str, Enum):
    UPLOAD = "upload"
    REMOTE = "remote"


@dataclass(frozen=True)
class MediaReference:
    """Where the source video comes from: a local upload or a remote URL."""
    kind: MediaKind
    location: str

    @classmethod
    def upload(cls, path: str) -> "MediaReference":
        return cls(MediaKind.UPLOAD, path)

    @classmethod
    def remote(cls, url: str) -> "MediaReference":
        return cls(MediaKind.REMOTE, url)

    @property
    def is_remote(self) -> bool:
        return self.kind == MediaKind.REMOTE


@dataclass
class VideoInfo:
    """Probed or best-effort metadata. Every field has a usable default."""
    duration_seconds: float = DEFAULT_DURATION
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    size_bytes: int = 0
    bitrate: int = 0
    title: str = "Unknown Title"
    description: str = ""
    video_id: Optional[str] = None
    is_segmented: bool = False
    segment_start: Optional[float] = None
    segment_end: Optional[float] = None
    original_duration: Optional[float] = None

    def __post_init__(self):
        if not self.duration_seconds or not math.isfinite(self.duration_seconds) or self.duration_seconds <= 0:
            self.duration_seconds = DEFAULT_DURATION


@dataclass
class TranscriptSegment:
    """A timed slice of content: spoken words or a visual description."""
    start: float
    end: float
    text: str
    visual_description: Optional[str] = None


class TranscriptSource(str, Enum):
    CAPTIONS = "captions"
    VISUAL_ANALYSIS = "visual-analysis"
    FALLBACK = "fallback"


@dataclass
class Transcript:
    segments: list[TranscriptSegment] = field(default_factory=list)
    source_kind: TranscriptSource = TranscriptSource.FALLBACK

    @property
    def full_text(self) -> str:
        if not self.segments:
            return EMPTY_TRANSCRIPT_TEXT
        return " ".join(seg.text.strip() for seg in self.segments if seg.text.strip())

    @property
    def has_visual_annotations(self) -> bool:
        return any(seg.visual_description for seg in self.segments)


@dataclass
class Moment:
    """A time interval plus caption chosen for rendering."""
    start_time: float
    end_time: float
    caption: str
    reason: Optional[str] = None
    confidence: float = 0.5

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def overlaps(self, other: "Moment") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time


@dataclass
class Artifact:
    """One rendered GIF and its metadata."""
    id: str
    path: str
    caption: str
    start_time: float
    end_time: float
    size_bytes: int
    has_caption: bool

    @property
    def size_label(self) -> str:
        size_kb = round(self.size_bytes / 1024)
        if size_kb > 1024:
            return f"{size_kb / 1024:.1f}MB"
        return f"{size_kb}KB"


class PipelineStage(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    DESCRIBING = "describing"
    SELECTING = "selecting"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class QualityReport:
    """Advisory post-run scores. Never affects the response."""
    prompt_score: float
    relevance_score: float
    moment_score: float
    artifact_score: float
    has_overlap: bool = False
    issues: list[str] = field(default_factory=list)
    prompt: str = ""
    timestamp: str = ""

    @property
    def overall_score(self) -> float:
        scores = [self.prompt_score, self.relevance_score, self.moment_score, self.artifact_score]
        return sum(scores) / len(scores)


@dataclass
class PipelineRun:
    """Working state of one generation request. Never persisted."""
    job_id: str
    reference: MediaReference
    prompt: str
    stage: PipelineStage = PipelineStage.IDLE
    work_dir: Optional[str] = None
    local_path: Optional[str] = None
    video_info: VideoInfo = field(default_factory=VideoInfo)
    transcript: Optional[Transcript] = None
    moments: list[Moment] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
