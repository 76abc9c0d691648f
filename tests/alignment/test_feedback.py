"""Tests for alignment feedback collaborators."""

from __future__ import annotations

from qibla.alignment.alignment_engine import AlignmentEngine
from qibla.alignment.feedback import AlignmentAnnouncer, RatingPromptCounter, alignment_message


def test_alignment_messages() -> None:
    engine = AlignmentEngine(tolerance_deg=5.0)

    gained = engine.update(3.0, 5.0, now=0.0)
    lost = engine.update(47.6, 5.0, now=1.0)

    assert alignment_message(gained) == "Aligned with Qibla"
    assert alignment_message(lost) == "Leaving alignment: adjust 43 degrees"


def test_announcer_speaks_edges_only(announcer) -> None:
    engine = AlignmentEngine(tolerance_deg=5.0)
    speaker = AlignmentAnnouncer(announcer)

    for i, heading in enumerate([5.0, 5.0, 5.0, 30.0]):
        speaker.on_alignment(engine.update(heading, 5.0, now=float(i)))

    assert announcer.messages == ["Aligned with Qibla", "Leaving alignment: adjust 25 degrees"]
    assert speaker.last_message == announcer.messages[-1]


def test_rating_prompt_after_three_alignments() -> None:
    prompts = []
    engine = AlignmentEngine(tolerance_deg=5.0)
    counter = RatingPromptCounter(lambda: prompts.append(True), threshold=3)

    for i, heading in enumerate([5.0, 50.0] * 5):
        counter.on_alignment(engine.update(heading, 5.0, now=float(i)))

    assert prompts == [True]
    assert counter.prompted
    assert counter.count == 3


def test_rating_prompt_counters_are_independent() -> None:
    engine = AlignmentEngine(tolerance_deg=5.0)
    first = RatingPromptCounter(lambda: None, threshold=2)
    second = RatingPromptCounter(lambda: None, threshold=2)

    first.on_alignment(engine.update(5.0, 5.0, now=0.0))

    assert first.count == 1
    assert second.count == 0


def test_rating_prompt_respects_previous_prompt() -> None:
    prompts = []
    engine = AlignmentEngine(tolerance_deg=5.0)
    counter = RatingPromptCounter(lambda: prompts.append(True), threshold=1, already_prompted=True)

    counter.on_alignment(engine.update(5.0, 5.0, now=0.0))

    assert prompts == []
