"""GenerateGifsUseCase — orchestrates the full video-to-GIF pipeline.

Accepts every collaborator via dependency injection. One call runs one
request through acquiring, describing, selecting and rendering. Working
files live in a per-run directory that is removed on every exit path.
"""

import os
import math
import time
import uuid
import shutil
import logging
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from domain.errors import AllRendersFailedError, InputError, RenderError
from domain.models import (
    Artifact, MediaReference, Moment, PipelineRun, PipelineStage,
    QualityReport, Transcript, VideoInfo,
)
from ports.media import MediaToolsPort
from ports.progress import ProgressPort
from use_cases.acquire import SourceAcquirer
from use_cases.describe import ContentDescriber
from use_cases.render import ArtifactRenderer
from use_cases.select_moments import MomentSelector
from use_cases.validate import QualityValidator

logger = logging.getLogger(__name__)


@dataclass
class GenerateRequest:
    """All parameters for a generation request."""
    prompt: str
    upload_path: Optional[str] = None
    youtube_url: Optional[str] = None
    segment_start: Optional[float] = None
    segment_end: Optional[float] = None
    delete_upload: bool = False

    def validate(self) -> None:
        """Raise InputError for a request that cannot start a run."""
        if not self.prompt or not self.prompt.strip():
            raise InputError("Prompt is required")
        if self.upload_path and self.youtube_url:
            raise InputError("Provide either a video file or a YouTube URL, not both")
        if not self.upload_path and not self.youtube_url:
            raise InputError("Please provide either a video file or a YouTube URL")
        if self.youtube_url:
            parsed = urlparse(self.youtube_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise InputError("Invalid video URL")
        if self.is_segmented:
            if not (math.isfinite(self.segment_start) and math.isfinite(self.segment_end)):
                raise InputError("Invalid segment: bounds must be finite numbers")
            if self.segment_start < 0 or self.segment_end <= self.segment_start:
                raise InputError("Invalid segment: start must be >= 0 and before end")

    @property
    def is_segmented(self) -> bool:
        return self.segment_start is not None and self.segment_end is not None

    @property
    def reference(self) -> MediaReference:
        if self.youtube_url:
            return MediaReference.remote(self.youtube_url)
        return MediaReference.upload(self.upload_path)


@dataclass
class GenerationResult:
    job_id: str
    artifacts: list[Artifact]
    errors: list[str]
    video_info: VideoInfo
    transcript: Transcript
    moments: list[Moment]
    processing_seconds: float
    quality: Optional[QualityReport] = None
    caption_source: str = field(init=False)

    def __post_init__(self):
        self.caption_source = self.transcript.source_kind.value


class GenerateGifsUseCase:
    def __init__(
        self,
        acquirer: SourceAcquirer,
        describer: ContentDescriber,
        selector: MomentSelector,
        renderer: ArtifactRenderer,
        media: MediaToolsPort,
        progress: ProgressPort,
        validator: Optional[QualityValidator] = None,
        render_workers: int = 1,
        temp_dir: Optional[str] = None,
    ):
        self._acquirer = acquirer
        self._describer = describer
        self._selector = selector
        self._renderer = renderer
        self._media = media
        self._progress = progress
        self._validator = validator
        self._render_workers = max(1, render_workers)
        self._temp_dir = temp_dir

    @property
    def validator(self) -> Optional[QualityValidator]:
        return self._validator

    @property
    def has_reasoning(self) -> bool:
        return self._selector.has_reasoning

    @property
    def strategy_names(self) -> list[str]:
        return self._acquirer.strategy_names

    def probe_metadata(self, url: str) -> VideoInfo:
        return self._acquirer.probe_remote(url)

    def execute(self, req: GenerateRequest) -> GenerationResult:
        """Run the pipeline. Raises InputError, AcquisitionError or AllRendersFailedError."""
        req.validate()

        started = time.monotonic()
        run = PipelineRun(job_id=uuid.uuid4().hex[:12], reference=req.reference, prompt=req.prompt.strip())
        if self._temp_dir:
            os.makedirs(self._temp_dir, exist_ok=True)
        run.work_dir = tempfile.mkdtemp(prefix=f"gif_{run.job_id}_", dir=self._temp_dir)
        logger.info(f"[{run.job_id}] New run: {run.reference.kind.value} source, prompt={run.prompt!r}")

        try:
            self._acquire(run, req)

            self._advance(run, PipelineStage.DESCRIBING)
            run.transcript = self._describer.describe(
                run.local_path,
                run.video_info.duration_seconds,
                prompt=run.prompt,
                remote_url=run.reference.location if run.reference.is_remote else None,
                caption_offset=run.video_info.segment_start or 0.0,
            )

            self._advance(run, PipelineStage.SELECTING, detail=run.transcript.source_kind.value)
            run.moments = self._selector.select(run.transcript, run.prompt, run.video_info.duration_seconds)

            self._advance(run, PipelineStage.RENDERING, detail=f"{len(run.moments)} moments")
            self._render_all(run)
            if not run.artifacts:
                raise AllRendersFailedError(run.errors)

            self._advance(run, PipelineStage.COMPLETED, detail=f"{len(run.artifacts)} GIFs")
        except Exception as e:
            run.stage = PipelineStage.FAILED
            self._progress.report(run.job_id, PipelineStage.FAILED, detail=str(e))
            raise
        finally:
            self._cleanup(run, req)

        result = GenerationResult(
            job_id=run.job_id,
            artifacts=run.artifacts,
            errors=run.errors,
            video_info=run.video_info,
            transcript=run.transcript,
            moments=run.moments,
            processing_seconds=time.monotonic() - started,
        )
        result.quality = self._validate(run)
        return result

    def _advance(self, run: PipelineRun, stage: PipelineStage, progress: float = 0.0, detail: Optional[str] = None):
        run.stage = stage
        self._progress.report(run.job_id, stage, progress=progress, detail=detail)

    def _acquire(self, run: PipelineRun, req: GenerateRequest) -> None:
        self._advance(run, PipelineStage.ACQUIRING, detail=run.reference.kind.value)

        remote_info = None
        if run.reference.is_remote:
            remote_info = self._acquirer.probe_remote(run.reference.location)
        run.local_path = self._acquirer.acquire(run.reference, run.work_dir)
        run.video_info = self._acquirer.describe_local(run.local_path, remote_info)
        logger.info(f"[{run.job_id}] Video: {run.video_info.duration_seconds:.1f}s "
                    f"{run.video_info.width}x{run.video_info.height}")

        if req.is_segmented:
            self._trim(run, req.segment_start, req.segment_end)

    def _trim(self, run: PipelineRun, start: float, end: float) -> None:
        full_duration = run.video_info.duration_seconds
        end = min(end, full_duration)
        if start >= end:
            logger.warning(f"[{run.job_id}] Segment {start}-{end} outside video ({full_duration:.1f}s), using full video")
            return

        clip_path = os.path.join(run.work_dir, "segment.mp4")
        try:
            self._media.trim(run.local_path, start, end - start, clip_path)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"[{run.job_id}] Segment trim failed, using full video: {e}")
            return

        run.local_path = clip_path
        info = run.video_info
        info.original_duration = full_duration
        info.duration_seconds = end - start
        info.is_segmented = True
        info.segment_start = start
        info.segment_end = end
        logger.info(f"[{run.job_id}] Using segment {start:.1f}s-{end:.1f}s")

    def _render_one(self, run: PipelineRun, index: int, moment: Moment) -> tuple[Optional[Artifact], Optional[str]]:
        try:
            return self._renderer.render(run.local_path, moment), None
        except RenderError as e:
            logger.warning(f"[{run.job_id}] GIF {index + 1} failed: {e}")
            return None, f"GIF {index + 1}: {e}"
        except Exception as e:  # noqa: BLE001
            logger.exception(f"[{run.job_id}] GIF {index + 1} failed unexpectedly")
            return None, f"GIF {index + 1}: {e}"

    def _render_all(self, run: PipelineRun) -> None:
        total = len(run.moments)
        if self._render_workers > 1 and total > 1:
            with ThreadPoolExecutor(max_workers=min(self._render_workers, total)) as pool:
                futures = [pool.submit(self._render_one, run, i, m) for i, m in enumerate(run.moments)]
                results = [f.result() for f in futures]
        else:
            results = []
            for i, moment in enumerate(run.moments):
                self._progress.report(
                    run.job_id, PipelineStage.RENDERING,
                    progress=i / total, detail=f"GIF {i + 1}/{total}",
                )
                results.append(self._render_one(run, i, moment))

        for artifact, error in results:
            if artifact:
                run.artifacts.append(artifact)
            if error:
                run.errors.append(error)

    def _validate(self, run: PipelineRun) -> Optional[QualityReport]:
        if self._validator is None:
            return None
        try:
            return self._validator.validate(run.prompt, run.transcript, run.moments, run.artifacts)
        except Exception:  # noqa: BLE001
            logger.exception(f"[{run.job_id}] Validation failed")
            return None

    def _cleanup(self, run: PipelineRun, req: GenerateRequest) -> None:
        if req.upload_path and req.delete_upload:
            try:
                if os.path.exists(req.upload_path):
                    os.unlink(req.upload_path)
            except OSError as e:
                logger.warning(f"Cleanup error: {e}")
        if run.work_dir:
            shutil.rmtree(run.work_dir, ignore_errors=True)
        logger.debug(f"[{run.job_id}] Cleaned up working files")
