"""
Review scheduler for the fixed interval curve.

This is a pure computation module with no I/O. A correct answer promotes a
card one memory level; a miss halves the level (floor division, minimum 1)
so well-known cards fall back proportionally instead of restarting.
"""

from collections.abc import Sequence
from dataclasses import replace
from typing import TypeVar

from fluentflow.domain.constants import MAX_INCORRECT_ANSWERS, REVIEW_INTERVALS_MS
from fluentflow.domain.models import CardKind, SentenceCard, WordCard, current_time_ms

C = TypeVar("C", SentenceCard, WordCard)


def process_answer(
    card: C,
    is_correct: bool,
    now: int | None = None,
    user_input: str | None = None,
    intervals: Sequence[int] = REVIEW_INTERVALS_MS,
) -> C:
    """
    Return the card rescheduled after one answer.

    Args:
        card: Card with memory_level >= 1.
        is_correct: Verdict for the answer.
        now: Epoch ms of the answer (defaults to the current time).
        user_input: Submitted text; recorded on sentence cards when wrong.
        intervals: Interval table indexed by memory_level - 1.

    Returns:
        A new card of the same variant. The input is never modified.
    """
    if now is None:
        now = current_time_ms()

    if is_correct:
        new_level = min(card.memory_level + 1, len(intervals))
        interval = intervals[new_level - 1] if 0 < new_level <= len(intervals) else intervals[-1]
        return replace(
            card,
            memory_level=new_level,
            last_reviewed=now,
            next_review=now + interval,
            correct_streak=card.correct_streak + 1,
        )

    # new_level <= memory_level, so the lookup stays in range for valid cards
    new_level = max(1, card.memory_level // 2)
    interval = intervals[new_level - 1]
    changes: dict = {
        "memory_level": new_level,
        "last_reviewed": now,
        "next_review": now + interval,
        "correct_streak": 0,
    }
    if card.kind is CardKind.SENTENCE and user_input is not None:
        history = (*card.incorrect_answers, user_input)
        changes["incorrect_answers"] = history[-MAX_INCORRECT_ANSWERS:]

    return replace(card, **changes)
