"""ArtifactRenderer — renders one Moment into a stored GIF Artifact."""

import os
import logging
from typing import Optional

from domain.errors import RenderError
from domain.models import MAX_MOMENT_SECONDS, Artifact, Moment
from ports.artifact_store import ArtifactStorePort
from ports.encoder import EncoderPort

logger = logging.getLogger(__name__)


class ArtifactRenderer:
    def __init__(self, encoder: EncoderPort, store: ArtifactStorePort, font_path: Optional[str] = None):
        self._encoder = encoder
        self._store = store
        self._font_path = font_path

    @property
    def can_caption(self) -> bool:
        return bool(self._font_path) and os.path.isfile(self._font_path)

    def render(self, source_path: str, moment: Moment) -> Artifact:
        """Encode the moment and return its Artifact. Raises RenderError."""
        duration = moment.duration
        if not 0 < duration <= MAX_MOMENT_SECONDS:
            raise RenderError(f"Invalid duration {duration:.2f}s")
        if not os.path.isfile(source_path):
            raise RenderError(f"Source video not found: {source_path}")

        artifact_id = self._store.new_id()
        output_path = self._store.path_for(artifact_id)
        with_caption = self.can_caption and bool(moment.caption)

        logger.info(f"Rendering {moment.start_time:.2f}s-{moment.end_time:.2f}s -> {artifact_id}")
        try:
            self._encoder.encode(
                source_path,
                moment.start_time,
                duration,
                output_path,
                caption=moment.caption if with_caption else None,
                font_path=self._font_path if with_caption else None,
            )
            if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
                raise RenderError("GIF was not created or is empty")
        except Exception:
            self._discard(output_path)
            raise

        size = os.path.getsize(output_path)
        artifact = Artifact(
            id=artifact_id,
            path=output_path,
            caption=moment.caption,
            start_time=moment.start_time,
            end_time=moment.end_time,
            size_bytes=size,
            has_caption=with_caption,
        )
        logger.info(f"GIF created: {artifact_id} ({artifact.size_label})")
        return artifact

    @staticmethod
    def _discard(path: str) -> None:
        if os.path.exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                logger.warning(f"Could not remove partial output {path}: {e}")
