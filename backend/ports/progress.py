"""ProgressPort — where the pipeline announces stage transitions of a job."""

from abc import ABC, abstractmethod
from typing import Optional

from domain.models import PipelineStage


class ProgressPort(ABC):
    @abstractmethod
    def report(
        self,
        job_id: str,
        stage: PipelineStage,
        progress: float = 0.0,
        detail: Optional[str] = None,
    ) -> None:
        """Called on entering a stage and, while rendering, once per GIF (progress in [0, 1])."""
