"""MomentSelector — picks exactly three captioned moments for a prompt.

The reasoning service proposes moments from the transcript; anything it
returns is checked against the video bounds before use. If fewer than three
proposals survive, or the service is missing or fails, every proposal is
dropped and the deterministic fallback generator takes over.
"""

import re
import json
import math
import logging
from typing import Any, Optional, Sequence

from domain.errors import MomentParseError, ReasoningError
from domain.models import MAX_MOMENT_SECONDS, MOMENT_COUNT, Moment, Transcript
from ports.reasoning import ReasoningPort
from post_processing import clean_caption, count_words, is_generic_caption

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHARS = 4000

MODEL_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5

DIALOGUE_MARKERS = re.compile(
    r"\b(say|said|tell|told|ask|asked|speak|spoke|talk|talked|hello|hi|yes|no|okay|well)\b",
    re.IGNORECASE,
)
CONVERSATIONAL_WORDS = re.compile(r"\b(I|you|we|they|he|she|yes|no|okay|so|but)\b", re.IGNORECASE)

# Checked in order; first keyword match wins
CAPTION_TEMPLATES = [
    (re.compile(r"funny|comedy|laugh|hilarious|joke|lol"),
     ["When it hits different", "I cant stop laughing", "Comedy gold right here"]),
    (re.compile(r"danc|music|beat|rhythm"),
     ["When the beat drops", "Feeling the rhythm", "Dance floor energy"]),
    (re.compile(r"emotion|sad|touching|cry|heart"),
     ["Right in the feels", "This hits deep", "Not crying, you are"]),
    (re.compile(r"action|sport|intense|fight|fast"),
     ["Here we go", "Full send mode", "Absolute chaos"]),
    (re.compile(r"motivat|inspir|success|grind"),
     ["Never give up", "Main character energy", "Lets get it"]),
    (re.compile(r"scenic|nature|beautiful|view|sunset"),
     ["Just look at this", "Views for days", "Natures masterpiece"]),
    (re.compile(r"fail|oops|mistake|wrong"),
     ["Well that escalated", "Task failed successfully", "Nobody saw that"]),
    (re.compile(r"cute|adorable|puppy|kitten|baby|aww"),
     ["My heart cant take it", "Too cute to handle", "Aww moment"]),
]
DEFAULT_CAPTIONS = ["Wait for it", "This is the moment", "And that happened"]

DIALOGUE_SYSTEM_PROMPT = """You create captioned GIFs from dialogue-heavy videos.

Rules:
1. Pick moments whose spoken content matches the user's theme.
2. Captions reflect what is actually said, max 25 characters.
3. Never use generic captions such as "Scene 2", "Quote 1" or "Later content".
4. Each moment lasts 2-5 seconds, never more than 10, and stays inside the video.

Return exactly 3 moments as a JSON array and nothing else."""

VISUAL_SYSTEM_PROMPT = """You create captioned GIFs from visually driven videos.

Rules:
1. Pick moments whose visuals match the user's theme.
2. Captions describe the actual action or mood on screen, max 25 characters.
3. Never use generic captions such as "Scene 2", "Content with" or "Early content".
4. Each moment lasts 2-5 seconds, never more than 10, and stays inside the video.

Return exactly 3 moments as a JSON array and nothing else."""

RESPONSE_FORMAT = '[{"startTime": 12, "endTime": 15, "caption": "Short caption", "reason": "Why it fits"}]'


def determine_video_type(transcript: Transcript) -> str:
    """Classify as "dialogue" or "visual" from speech density and wording."""
    text = " ".join(seg.text for seg in transcript.segments)
    words = count_words(text)
    span = transcript.segments[-1].end if transcript.segments else 0.0
    words_per_second = words / span if span > 0 else 0.0

    score = 0.0
    if words_per_second > 0.8:
        score += 0.3
    if words > 30:
        score += 0.2
    if DIALOGUE_MARKERS.search(text):
        score += 0.3
    if CONVERSATIONAL_WORDS.search(text):
        score += 0.2

    logger.debug(f"Dialogue analysis: {words} words, {words_per_second:.2f} words/sec, score {score:.2f}")
    return "dialogue" if score > 0.5 else "visual"


def build_context(transcript: Transcript, prompt: str, duration: float) -> str:
    lines = [
        f'USER THEME: "{prompt}"',
        f"VIDEO DURATION: {duration:.1f} seconds",
        f"CONTENT SOURCE: {transcript.source_kind.value} ({len(transcript.segments)} segments)",
        "",
        "CONTENT OVERVIEW:",
        transcript.full_text[:MAX_CONTEXT_CHARS],
        "",
        "TIMELINE:",
    ]
    for seg in transcript.segments:
        lines.append(f"{int(seg.start)}s-{int(seg.end)}s: {seg.text}")

    if transcript.has_visual_annotations:
        lines += ["", "VISUAL NOTES:"]
        for seg in transcript.segments:
            if seg.visual_description:
                lines.append(f"{int(seg.start)}s: {seg.visual_description}")

    lines += [
        "",
        f'Find 3 moments that match "{prompt}". Times are whole seconds between 0 and {int(duration)}.',
        f"Response format: {RESPONSE_FORMAT}",
    ]
    return "\n".join(lines)


def extract_json_array(text: str) -> list:
    """Return the first well-formed JSON array embedded in text."""
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\[", text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    raise MomentParseError("No JSON array found in response")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_moments(candidates: Sequence[Any], duration: float) -> list[Moment]:
    """Keep well-formed, in-bounds candidates in order, at most three."""
    moments: list[Moment] = []
    for i, item in enumerate(candidates):
        if len(moments) == MOMENT_COUNT:
            break
        if not isinstance(item, dict):
            logger.debug(f"Candidate {i} rejected: not an object")
            continue

        start, end = item.get("startTime"), item.get("endTime")
        if not (_is_number(start) and _is_number(end)):
            logger.debug(f"Candidate {i} rejected: non-numeric times")
            continue
        if not (0 <= start < end <= duration) or end - start > MAX_MOMENT_SECONDS:
            logger.debug(f"Candidate {i} rejected: bad interval {start}-{end}")
            continue

        raw_caption = item.get("caption")
        caption = clean_caption(raw_caption) if isinstance(raw_caption, str) else ""
        if not caption or is_generic_caption(caption):
            logger.debug(f"Candidate {i} rejected: caption {raw_caption!r}")
            continue

        confidence = item.get("confidence")
        reason = item.get("reason")
        moments.append(Moment(
            start_time=float(start),
            end_time=float(end),
            caption=caption,
            reason=reason if isinstance(reason, str) else None,
            confidence=float(confidence) if _is_number(confidence) and 0 <= confidence <= 1 else MODEL_CONFIDENCE,
        ))
    return moments


def captions_for_prompt(prompt: str) -> list[str]:
    prompt_lower = prompt.lower()
    for pattern, captions in CAPTION_TEMPLATES:
        if pattern.search(prompt_lower):
            return captions
    return DEFAULT_CAPTIONS


def fallback_moments(duration: float, prompt: str) -> list[Moment]:
    """Three evenly placed moments that are always inside [0, duration]."""
    if duration >= 9:
        middle = duration / 2
        spans = [(0.0, 3.0), (middle - 1, middle + 2), (duration - 3, duration)]
    elif duration >= 6:
        step = (duration - 2) / 2
        spans = [(i * step, i * step + 2) for i in range(MOMENT_COUNT)]
    else:
        length = max(2, math.floor(duration / 2))
        spans = [(i * duration / 4, min(i * duration / 4 + length, duration)) for i in range(MOMENT_COUNT)]

    captions = captions_for_prompt(prompt)
    return [
        Moment(
            start_time=start,
            end_time=end,
            caption=captions[i],
            reason=f"Evenly spaced fallback moment {i + 1}",
            confidence=FALLBACK_CONFIDENCE,
        )
        for i, (start, end) in enumerate(spans)
    ]


class MomentSelector:
    def __init__(self, reasoning: Optional[ReasoningPort] = None):
        self._reasoning = reasoning

    @property
    def has_reasoning(self) -> bool:
        return self._reasoning is not None

    def select(self, transcript: Transcript, prompt: str, duration: float) -> list[Moment]:
        """Return exactly three moments. Never raises."""
        if self._reasoning is None:
            logger.info("No reasoning service configured, using fallback moments")
            return fallback_moments(duration, prompt)

        try:
            moments = self._ask(transcript, prompt, duration)
        except (ReasoningError, MomentParseError) as e:
            logger.warning(f"Moment selection failed: {e}")
            return fallback_moments(duration, prompt)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected moment selection failure")
            return fallback_moments(duration, prompt)

        if len(moments) < MOMENT_COUNT:
            logger.warning(f"Only {len(moments)} valid moments proposed, using fallback moments")
            return fallback_moments(duration, prompt)

        for m in moments:
            logger.info(f"Selected {m.start_time:.1f}s-{m.end_time:.1f}s: {m.caption!r}")
        return moments

    def _ask(self, transcript: Transcript, prompt: str, duration: float) -> list[Moment]:
        video_type = determine_video_type(transcript)
        system = DIALOGUE_SYSTEM_PROMPT if video_type == "dialogue" else VISUAL_SYSTEM_PROMPT
        logger.info(f"Selecting moments for {video_type} video ({transcript.source_kind.value})")

        response = self._reasoning.complete(system, build_context(transcript, prompt, duration))
        return validate_moments(extract_json_array(response), duration)
