"""Shared fakes for every port plus a pipeline factory wired from them."""

import os
import tempfile
from typing import Optional

# Config is a module-level singleton; point it at throwaway dirs before anything imports it.
os.environ["TEMP_DIR"] = tempfile.mkdtemp(prefix="gif-tests-tmp-")
os.environ["OUTPUT_DIR"] = tempfile.mkdtemp(prefix="gif-tests-out-")
os.environ["OPENROUTER_API_KEY"] = ""

import pytest

from adapters.local.file_artifact_store import FileArtifactStore
from domain.errors import ReasoningError, RenderError, StrategyError
from domain.models import TranscriptSegment, VideoInfo
from ports.acquisition import AcquisitionStrategyPort, MetadataProbePort
from ports.captions import CaptionSourcePort
from ports.encoder import EncoderPort
from ports.media import MediaToolsPort
from ports.progress import ProgressPort
from ports.reasoning import ReasoningPort, VisionPort
from use_cases.acquire import SourceAcquirer
from use_cases.describe import ContentDescriber
from use_cases.generate import GenerateGifsUseCase
from use_cases.render import ArtifactRenderer
from use_cases.select_moments import MomentSelector
from use_cases.validate import QualityValidator

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class FakeStrategy(AcquisitionStrategyPort):
    """Writes a small file on success, raises StrategyError with `error` otherwise."""

    def __init__(self, name: str, error: Optional[str] = None, timed_out: bool = False):
        self._name = name
        self._error = error
        self._timed_out = timed_out
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def attempt(self, url: str, work_dir: str) -> str:
        self.calls += 1
        if self._error:
            raise StrategyError(self._error, timed_out=self._timed_out)
        path = os.path.join(work_dir, f"{self._name}.mp4")
        with open(path, "wb") as f:
            f.write(b"\x00" * 2048)
        return path


class FakeProbe(MetadataProbePort):
    def __init__(self, name: str = "fake-probe", info: Optional[VideoInfo] = None, error: Optional[str] = None):
        self.name = name
        self._info = info
        self._error = error
        self.calls = 0

    def fetch(self, url: str) -> VideoInfo:
        self.calls += 1
        if self._error:
            raise RuntimeError(self._error)
        return self._info or VideoInfo(title="Remote Title", duration_seconds=20.0, video_id="dQw4w9WgXcQ")


class FakeMedia(MediaToolsPort):
    def __init__(self, duration: float = 20.0, probe_error: bool = False,
                 scene_changes: Optional[list[float]] = None, frame_error: bool = False,
                 trim_error: bool = False):
        self.duration = duration
        self.probe_error = probe_error
        self.scene_changes = scene_changes or []
        self.frame_error = frame_error
        self.trim_error = trim_error
        self.calls: list[str] = []

    def probe(self, path: str) -> VideoInfo:
        self.calls.append("probe")
        if self.probe_error:
            raise RuntimeError("ffprobe failed")
        return VideoInfo(duration_seconds=self.duration, width=1280, height=720, size_bytes=os.path.getsize(path))

    def extract_frame(self, path: str, timestamp: float, output_path: str) -> str:
        self.calls.append("extract_frame")
        if self.frame_error:
            raise RuntimeError("frame extraction failed")
        with open(output_path, "wb") as f:
            f.write(b"\xff\xd8\xff")
        return output_path

    def detect_scene_changes(self, path: str, duration: float) -> list[float]:
        self.calls.append("detect_scene_changes")
        return list(self.scene_changes)

    def trim(self, path: str, start: float, duration: float, output_path: str) -> str:
        self.calls.append("trim")
        if self.trim_error:
            raise RuntimeError("trim failed")
        with open(output_path, "wb") as f:
            f.write(b"\x00" * 1024)
        return output_path


class FakeCaptionSource(CaptionSourcePort):
    def __init__(self, segments: Optional[list[TranscriptSegment]] = None, error: Optional[str] = None,
                 name: str = "fake-captions"):
        self.name = name
        self._segments = segments or []
        self._error = error
        self.calls = 0

    def fetch(self, url: str, work_dir: str) -> list[TranscriptSegment]:
        self.calls += 1
        if self._error:
            raise RuntimeError(self._error)
        return [TranscriptSegment(s.start, s.end, s.text) for s in self._segments]


class FakeReasoning(ReasoningPort):
    def __init__(self, response: str = "[]", error: Optional[str] = None):
        self._response = response
        self._error = error
        self.calls: list[tuple[str, str]] = []

    def complete(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        if self._error:
            raise ReasoningError(self._error)
        return self._response


class FakeVision(VisionPort):
    def __init__(self, description: str = "A person dancing on a stage", error: Optional[str] = None):
        self._description = description
        self._error = error
        self.calls = 0

    def describe_image(self, image_path: str, instruction: str) -> str:
        self.calls += 1
        if self._error:
            raise ReasoningError(self._error)
        return self._description


class FakeEncoder(EncoderPort):
    """Writes a fake GIF; fails for moments whose start time is in fail_starts."""

    def __init__(self, fail_starts: Optional[set] = None, size: int = 200 * 1024, fail_all: bool = False):
        self.fail_starts = fail_starts or set()
        self.fail_all = fail_all
        self.size = size
        self.calls: list[dict] = []

    def encode(self, input_path, start, duration, output_path, caption=None, font_path=None):
        self.calls.append({"start": start, "duration": duration, "caption": caption, "font_path": font_path})
        if self.fail_all or start in self.fail_starts:
            raise RenderError(f"encoder failed at {start}s")
        with open(output_path, "wb") as f:
            f.write(b"GIF89a" + b"\x00" * self.size)


class RecordingProgress(ProgressPort):
    def __init__(self):
        self.events: list[tuple[str, str, float, Optional[str]]] = []

    def report(self, job_id, stage, progress=0.0, detail=None):
        self.events.append((job_id, stage.value, progress, detail))

    @property
    def stages(self) -> list[str]:
        stages: list[str] = []
        for _, stage, _, _ in self.events:
            if not stages or stages[-1] != stage:
                stages.append(stage)
        return stages


@pytest.fixture
def work_root(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return str(path)


@pytest.fixture
def store(tmp_path):
    return FileArtifactStore(str(tmp_path / "output"))


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "upload.mp4"
    path.write_bytes(b"\x00" * 4096)
    return str(path)


@pytest.fixture
def make_pipeline(work_root, store):
    """Build a GenerateGifsUseCase from fakes; keyword arguments override any collaborator."""

    def _make(**overrides):
        media = overrides.get("media") or FakeMedia()
        parts = {
            "strategies": [FakeStrategy("fake-dl")],
            "probes": [FakeProbe()],
            "caption_sources": [],
            "reasoning": None,
            "vision": None,
            "encoder": FakeEncoder(),
            "progress": RecordingProgress(),
            "validator": QualityValidator(),
            "render_workers": 1,
            "font_path": None,
        }
        parts.update(overrides)

        acquirer = SourceAcquirer(parts["strategies"], media, probes=parts["probes"], backoff=(0, 0),
                                  sleep=lambda s: None)
        describer = ContentDescriber(media, caption_sources=parts["caption_sources"], vision=parts["vision"],
                                     temp_dir=work_root)
        renderer = ArtifactRenderer(parts["encoder"], store, font_path=parts["font_path"])
        pipeline = GenerateGifsUseCase(
            acquirer=acquirer,
            describer=describer,
            selector=MomentSelector(parts["reasoning"]),
            renderer=renderer,
            media=media,
            progress=parts["progress"],
            validator=parts["validator"],
            render_workers=parts["render_workers"],
            temp_dir=work_root,
        )
        return pipeline, parts

    return _make
