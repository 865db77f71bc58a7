"""Tests for moment selection: fallback generator, JSON extraction, candidate validation."""

import json

import pytest

from conftest import FakeReasoning
from domain.errors import MomentParseError
from domain.models import Transcript, TranscriptSegment, TranscriptSource
from use_cases.select_moments import (
    DEFAULT_CAPTIONS,
    MomentSelector,
    build_context,
    captions_for_prompt,
    determine_video_type,
    extract_json_array,
    fallback_moments,
    validate_moments,
)

DURATIONS = [0.1, 0.5, 1.0, 2.0, 3.7, 5.0, 5.99, 6.0, 7.5, 8.99, 9.0, 20.0, 61.3, 3600.0]
PROMPTS = ["funny", "dance moves", "", "something completely different"]


def _transcript(texts=("Hello there", "How are you", "Fine thanks")) -> Transcript:
    segments = [TranscriptSegment(start=i * 5.0, end=(i + 1) * 5.0, text=t) for i, t in enumerate(texts)]
    return Transcript(segments=segments, source_kind=TranscriptSource.CAPTIONS)


def _response(*moments) -> str:
    return "Here you go:\n```json\n" + json.dumps(list(moments)) + "\n```"


GOOD = [
    {"startTime": 1, "endTime": 4, "caption": "Epic dance move", "reason": "peak"},
    {"startTime": 6, "endTime": 9, "caption": "Crowd goes wild", "reason": "crowd"},
    {"startTime": 12, "endTime": 15, "caption": "Big finish", "reason": "end"},
]


# --- fallback generator ---


@pytest.mark.parametrize("duration", DURATIONS)
@pytest.mark.parametrize("prompt", PROMPTS)
def test_fallback_moments_always_valid(duration: float, prompt: str) -> None:
    """Three moments inside [0, d], non-empty, at most 10s, for any duration."""
    moments = fallback_moments(duration, prompt)
    assert len(moments) == 3
    for m in moments:
        assert 0 <= m.start_time < m.end_time <= duration
        assert m.end_time - m.start_time <= 10
        assert m.caption


def test_fallback_short_video_funny() -> None:
    """5s video, funny prompt: 2s moments starting at 0, 1.25, 2.5 with funny captions."""
    moments = fallback_moments(5.0, "funny")
    assert [m.start_time for m in moments] == [0.0, 1.25, 2.5]
    assert [m.end_time for m in moments] == [2.0, 3.25, 4.5]
    assert [m.caption for m in moments] == captions_for_prompt("funny")
    assert captions_for_prompt("funny") != DEFAULT_CAPTIONS


def test_fallback_long_video_bands() -> None:
    moments = fallback_moments(20.0, "anything")
    assert [(m.start_time, m.end_time) for m in moments] == [(0.0, 3.0), (9.0, 12.0), (17.0, 20.0)]


def test_fallback_medium_video_two_second_moments() -> None:
    moments = fallback_moments(8.0, "anything")
    assert [(m.start_time, m.end_time) for m in moments] == [(0.0, 2.0), (3.0, 5.0), (6.0, 8.0)]


def test_fallback_clamps_end_to_duration() -> None:
    moments = fallback_moments(1.0, "cute puppy")
    assert all(m.end_time == 1.0 for m in moments)
    assert [m.caption for m in moments] == captions_for_prompt("cute")


def test_caption_templates_by_keyword() -> None:
    assert captions_for_prompt("When the BEAT drops, DANCE") == captions_for_prompt("dance")
    assert captions_for_prompt("epic fail compilation") == captions_for_prompt("fail")
    assert captions_for_prompt("nothing matches here") == DEFAULT_CAPTIONS
    for captions in [captions_for_prompt(p) for p in ("funny", "dance", "sad", "sport", "inspire", "sunset")]:
        assert len(captions) == 3
        assert all(len(c) <= 25 for c in captions)


# --- JSON extraction ---


def test_extract_json_array_tolerates_prose_and_fences() -> None:
    assert extract_json_array(_response(*GOOD)) == GOOD


def test_extract_json_array_skips_non_json_brackets() -> None:
    text = 'Moments [see below]: [{"startTime": 1, "endTime": 2, "caption": "hi"}] done'
    assert extract_json_array(text) == [{"startTime": 1, "endTime": 2, "caption": "hi"}]


def test_extract_json_array_raises_without_array() -> None:
    with pytest.raises(MomentParseError):
        extract_json_array('{"startTime": 1}')
    with pytest.raises(MomentParseError):
        extract_json_array("no json at all")


# --- candidate validation ---


@pytest.mark.parametrize("bad", [
    {"startTime": 5, "endTime": 5, "caption": "Same time"},
    {"startTime": 6, "endTime": 3, "caption": "Backwards"},
    {"startTime": 15, "endTime": 21, "caption": "Past the end"},
    {"startTime": -1, "endTime": 2, "caption": "Before start"},
    {"startTime": 0, "endTime": 12, "caption": "Too long"},
    {"startTime": 1, "endTime": 3, "caption": ""},
    {"startTime": 1, "endTime": 3, "caption": "   "},
    {"startTime": 1, "endTime": 3},
    {"startTime": "1", "endTime": "3", "caption": "String times"},
    {"startTime": True, "endTime": 3, "caption": "Bool start"},
    {"startTime": 1, "endTime": 3, "caption": "Scene 2"},
    {"startTime": 1, "endTime": 3, "caption": "Later content"},
    "not an object",
])
def test_validate_moments_rejects(bad) -> None:
    assert validate_moments([bad], 20.0) == []


def test_validate_moments_keeps_order_and_caps_at_three() -> None:
    extra = {"startTime": 16, "endTime": 18, "caption": "One more"}
    moments = validate_moments(GOOD + [extra], 20.0)
    assert [m.caption for m in moments] == ["Epic dance move", "Crowd goes wild", "Big finish"]
    assert moments[0].start_time == 1.0
    assert moments[0].reason == "peak"


def test_validate_moments_cleans_caption() -> None:
    moments = validate_moments([{"startTime": 0, "endTime": 3, "caption": '"When it\'s: really <funny> and long"'}], 10.0)
    assert len(moments) == 1
    assert '"' not in moments[0].caption and ":" not in moments[0].caption
    assert len(moments[0].caption) <= 25


# --- selector ---


def test_selector_uses_valid_model_moments() -> None:
    reasoning = FakeReasoning(response=_response(*GOOD))
    moments = MomentSelector(reasoning).select(_transcript(), "dance", 20.0)
    assert [m.caption for m in moments] == ["Epic dance move", "Crowd goes wild", "Big finish"]
    assert all(m.confidence == 0.8 for m in moments)
    assert len(reasoning.calls) == 1


def test_selector_two_valid_entries_falls_back() -> None:
    """Only two candidates: both are discarded, not padded."""
    reasoning = FakeReasoning(response=json.dumps([
        {"startTime": 0, "endTime": 3, "caption": "x"},
        {"startTime": 2, "endTime": 5, "caption": "y"},
    ]))
    moments = MomentSelector(reasoning).select(_transcript(), "funny", 20.0)
    expected = fallback_moments(20.0, "funny")
    assert [(m.start_time, m.end_time, m.caption) for m in moments] == \
        [(m.start_time, m.end_time, m.caption) for m in expected]


def test_selector_one_invalid_of_three_falls_back() -> None:
    bad = dict(GOOD[2], endTime=25)
    reasoning = FakeReasoning(response=_response(GOOD[0], GOOD[1], bad))
    moments = MomentSelector(reasoning).select(_transcript(), "dance", 20.0)
    assert [m.caption for m in moments] == [m.caption for m in fallback_moments(20.0, "dance")]
    assert all(m.confidence == 0.5 for m in moments)


@pytest.mark.parametrize("reasoning", [
    FakeReasoning(error="service down"),
    FakeReasoning(response="I could not find anything"),
    None,
])
def test_selector_degrades_to_fallback(reasoning) -> None:
    moments = MomentSelector(reasoning).select(_transcript(), "funny", 20.0)
    assert len(moments) == 3
    assert [m.caption for m in moments] == captions_for_prompt("funny")


def test_selector_prompt_depends_on_video_type() -> None:
    reasoning = FakeReasoning(response=_response(*GOOD))
    visual = Transcript(
        segments=[TranscriptSegment(0, 10, "Opening: sunset over water (0s-10s)", visual_description="sunset")],
        source_kind=TranscriptSource.VISUAL_ANALYSIS,
    )
    MomentSelector(reasoning).select(visual, "scenic", 20.0)
    system, user = reasoning.calls[0]
    assert "visually driven" in system
    assert "VISUAL NOTES:" in user
    assert "0s-10s: Opening: sunset over water (0s-10s)" in user


def test_determine_video_type() -> None:
    talk = _transcript([
        "So I told you yes, we talked about it and you said okay",
        "Well they asked and we said no but then I spoke to them",
    ])
    assert determine_video_type(talk) == "dialogue"

    scenery = Transcript(segments=[TranscriptSegment(0, 30, "Mountains")])
    assert determine_video_type(scenery) == "visual"


def test_build_context_contains_theme_and_bounds() -> None:
    context = build_context(_transcript(), "funny cats", 15.0)
    assert 'USER THEME: "funny cats"' in context
    assert "between 0 and 15" in context
    assert "5s-10s: How are you" in context
