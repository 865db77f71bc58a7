"""LogProgressAdapter — writes each stage transition of a job to the log."""

import logging
from typing import Optional

from domain.models import PipelineStage
from ports.progress import ProgressPort

logger = logging.getLogger(__name__)


class LogProgressAdapter(ProgressPort):
    def report(
        self,
        job_id: str,
        stage: PipelineStage,
        progress: float = 0.0,
        detail: Optional[str] = None,
    ) -> None:
        parts = [f"[{job_id}]", stage.value]
        if progress > 0:
            parts.append(f"{progress:.0%}")
        if detail:
            parts.append(f"({detail})")
        level = logging.WARNING if stage == PipelineStage.FAILED else logging.INFO
        logger.log(level, " ".join(parts))
