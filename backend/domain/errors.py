"""Error taxonomy for the generation pipeline.

Only InputError, AcquisitionError and AllRendersFailedError reach the API
layer. The other errors are raised inside a stage and absorbed by it.
"""

import re
from enum import Enum
from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class InputError(PipelineError):
    """The request itself is unusable; no pipeline work was done."""


class AcquisitionReason(str, Enum):
    BOT_DETECTION = "bot_detection"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


REASON_MESSAGES = {
    AcquisitionReason.BOT_DETECTION: "The video platform blocked the download (bot detection).",
    AcquisitionReason.UNAVAILABLE: "The video is unavailable, private, or has been removed.",
    AcquisitionReason.TIMEOUT: "Downloading the video timed out.",
    AcquisitionReason.UNKNOWN: "The video could not be downloaded.",
}

REASON_SUGGESTIONS = {
    AcquisitionReason.BOT_DETECTION: [
        "Try again in a few minutes",
        "Download the video yourself and upload the file instead",
        "Configure YOUTUBE_COOKIES with a signed-in browser session",
    ],
    AcquisitionReason.UNAVAILABLE: [
        "Check that the URL is correct and the video is public",
        "Age-restricted or region-locked videos cannot be processed",
        "Upload the video file directly if you have it",
    ],
    AcquisitionReason.TIMEOUT: [
        "Try a shorter video",
        "Try again when the connection is less busy",
        "Upload the video file directly",
    ],
    AcquisitionReason.UNKNOWN: [
        "Try a different video URL",
        "Upload the video file directly",
    ],
}

_BOT_PATTERNS = [
    r"sign in to confirm",
    r"not a bot",
    r"http error 429",
    r"too many requests",
    r"captcha",
]

_UNAVAILABLE_PATTERNS = [
    r"video unavailable",
    r"private video",
    r"has been removed",
    r"this video is not available",
    r"members-only",
    r"http error 404",
    r"http error 410",
    r"does not exist",
    r"unsupported url",
]


def classify_acquisition_failure(messages: list[str], timed_out: bool = False) -> AcquisitionReason:
    """Map raw tool output from failed attempts to a user-facing reason.

    Precedence: bot detection, then unavailable, then timeout.
    """
    text = "\n".join(messages).lower()
    if any(re.search(p, text) for p in _BOT_PATTERNS):
        return AcquisitionReason.BOT_DETECTION
    if any(re.search(p, text) for p in _UNAVAILABLE_PATTERNS):
        return AcquisitionReason.UNAVAILABLE
    if timed_out or "timed out" in text:
        return AcquisitionReason.TIMEOUT
    return AcquisitionReason.UNKNOWN


class AcquisitionError(PipelineError):
    """Every acquisition strategy failed for a remote source."""

    def __init__(self, reason: AcquisitionReason, attempts: Optional[list[tuple[str, str]]] = None):
        self.reason = reason
        self.attempts = attempts or []
        super().__init__(REASON_MESSAGES[reason])

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self.reason]

    @property
    def suggestions(self) -> list[str]:
        return list(REASON_SUGGESTIONS[self.reason])


class StrategyError(PipelineError):
    """A single acquisition strategy failed."""

    def __init__(self, message: str, timed_out: bool = False):
        self.timed_out = timed_out
        super().__init__(message)


class CaptionError(PipelineError):
    """Platform captions could not be fetched or parsed."""


class ReasoningError(PipelineError):
    """The external reasoning or vision service call failed."""


class MomentParseError(PipelineError):
    """The reasoning response did not contain a usable moment array."""


class RenderError(PipelineError):
    """One moment could not be rendered."""


class AllRendersFailedError(RenderError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Failed to create any GIFs. Errors: {', '.join(errors)}")
