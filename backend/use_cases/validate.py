"""QualityValidator — advisory scoring of a completed generation run.

Scores never change the response. The last MAX_REPORTS reports are kept in
memory for the /api/validation/stats endpoint.
"""

import re
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Sequence

from domain.models import MOMENT_COUNT, Artifact, Moment, QualityReport, Transcript

logger = logging.getLogger(__name__)

MAX_REPORTS = 100
RECENT_COUNT = 5

HIGH_QUALITY = 0.8
LOW_QUALITY = 0.6

EMOTIONAL_WORDS = re.compile(r"funny|sad|exciting|emotional|dramatic")
ACTION_WORDS = re.compile(r"dance|talk|move|action|sport")
SPECIFIC_WORDS = re.compile(r"moment|scene|highlight|best|quote")


def score_prompt(prompt: str) -> float:
    prompt_lower = prompt.lower()
    score = 0.5
    if len(prompt) > 10:
        score += 0.1
    if EMOTIONAL_WORDS.search(prompt_lower):
        score += 0.2
    if ACTION_WORDS.search(prompt_lower):
        score += 0.2
    if SPECIFIC_WORDS.search(prompt_lower):
        score += 0.1
    return min(1.0, score)


def score_relevance(prompt: str, transcript: Transcript) -> float:
    """Fraction of prompt words (longer than 3 chars) that occur in the transcript."""
    words = prompt.lower().split()
    text = transcript.full_text.lower()
    matches = sum(1 for w in words if len(w) > 3 and w in text)
    return min(1.0, matches / max(1, len(words)))


def has_overlaps(moments: Sequence[Moment]) -> bool:
    return any(a.overlaps(b) for i, a in enumerate(moments) for b in moments[i + 1:])


def score_moments(moments: Sequence[Moment], issues: list[str]) -> float:
    if not moments:
        issues.append("No moments selected")
        return 0.0

    score = 0.5
    if len(moments) >= MOMENT_COUNT:
        score += 0.1
    else:
        issues.append("Too few moments selected")

    avg_duration = sum(m.duration for m in moments) / len(moments)
    if 2 <= avg_duration <= 5:
        score += 0.2
    elif avg_duration < 1:
        issues.append("Moments too short")
    elif avg_duration > 8:
        issues.append("Moments too long")

    if has_overlaps(moments):
        issues.append("Some moments overlap")
    else:
        score += 0.1

    avg_confidence = sum(m.confidence for m in moments) / len(moments)
    if avg_confidence > 0.7:
        score += 0.2
    elif avg_confidence < 0.4:
        issues.append("Low confidence scores")
    return min(1.0, score)


def score_artifacts(artifacts: Sequence[Artifact], issues: list[str]) -> float:
    if not artifacts:
        issues.append("No GIFs created")
        return 0.0

    score = 0.5
    if len(artifacts) >= MOMENT_COUNT:
        score += 0.1

    avg_kb = sum(a.size_bytes for a in artifacts) / len(artifacts) / 1024
    if 100 < avg_kb < 2000:
        score += 0.2
    elif avg_kb < 50:
        issues.append("GIFs might be too small")
    elif avg_kb > 3000:
        issues.append("GIFs might be too large")

    if all(a.caption and len(a.caption) > 3 for a in artifacts):
        score += 0.2
    else:
        issues.append("Some GIFs have poor captions")
    return min(1.0, score)


class QualityValidator:
    def __init__(self, max_reports: int = MAX_REPORTS):
        self._reports: deque[QualityReport] = deque(maxlen=max_reports)
        self._lock = threading.Lock()

    def validate(
        self,
        prompt: str,
        transcript: Transcript,
        moments: Sequence[Moment],
        artifacts: Sequence[Artifact],
    ) -> QualityReport:
        issues: list[str] = []
        report = QualityReport(
            prompt_score=score_prompt(prompt),
            relevance_score=score_relevance(prompt, transcript),
            moment_score=score_moments(moments, issues),
            artifact_score=score_artifacts(artifacts, issues),
            has_overlap=has_overlaps(moments),
            issues=issues,
            prompt=prompt,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._reports.append(report)

        logger.info(
            f"Validation: prompt={report.prompt_score:.2f} relevance={report.relevance_score:.2f} "
            f"moments={report.moment_score:.2f} gifs={report.artifact_score:.2f} "
            f"overall={report.overall_score:.2f}"
        )
        if report.overall_score < LOW_QUALITY:
            logger.warning(f"Low validation score: {', '.join(issues) or 'no specific issues'}")
        return report

    def stats(self) -> dict[str, Any]:
        with self._lock:
            reports = list(self._reports)
        if not reports:
            return {"totalValidations": 0, "message": "No validation results available"}

        scores = [r.overall_score for r in reports]
        return {
            "totalValidations": len(reports),
            "averageScore": round(sum(scores) / len(scores), 2),
            "highQualityPercentage": round(100 * sum(1 for s in scores if s > HIGH_QUALITY) / len(scores), 1),
            "lowQualityPercentage": round(100 * sum(1 for s in scores if s < LOW_QUALITY) / len(scores), 1),
            "recentResults": [
                {
                    "prompt": r.prompt,
                    "timestamp": r.timestamp,
                    "overallScore": round(r.overall_score, 2),
                    "hasOverlap": r.has_overlap,
                    "issues": r.issues,
                }
                for r in reports[-RECENT_COUNT:]
            ],
        }
