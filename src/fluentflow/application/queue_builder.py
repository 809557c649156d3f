"""
Queue builder for study sessions.

Builds ordered study queues by:
1. Filtering the collection for the cards eligible in the chosen mode
2. Ordering them by the mode's priority
3. Capping the result at the session size
"""

import logging
from collections.abc import Iterable, Sequence
from typing import TypeVar

from fluentflow.domain.constants import MAX_SESSION_SIZE
from fluentflow.domain.models import (
    Card,
    CardKind,
    SentenceCard,
    StudyMode,
    WordCard,
    current_time_ms,
)

logger = logging.getLogger(__name__)

C = TypeVar("C", SentenceCard, WordCard)


def build_queue(
    cards: Iterable[C],
    mode: StudyMode,
    now: int | None = None,
    max_size: int = MAX_SESSION_SIZE,
) -> list[C]:
    """
    Select, order and cap the cards for one session.

    Args:
        cards: Full collection.
        mode: LEARN takes due, unskipped cards, most overdue first.
              REVIEW_MISTAKES takes cards with recorded wrong answers,
              most recently reviewed first.
        now: Epoch ms used for the due check (defaults to the current time).
        max_size: Session cap, applied after ordering.

    Returns:
        The session queue, highest priority first.
    """
    if now is None:
        now = current_time_ms()

    if mode is StudyMode.LEARN:
        selected = [c for c in cards if is_due(c, now)]
        selected.sort(key=lambda c: c.next_review)
    else:
        selected = [c for c in cards if has_mistakes(c)]
        selected.sort(key=lambda c: c.last_reviewed or 0, reverse=True)

    queue = selected[:max_size]
    logger.debug(
        f"Built {mode.value} queue: {len(queue)} of {len(selected)} eligible cards"
    )
    return queue


def reconcile(collection: Sequence[C], session_cards: Iterable[C]) -> list[C]:
    """
    Merge a session's updated cards back into the full collection by id.

    Collection membership never changes: cards untouched by the session stay
    as they are, and session cards whose id is not in the collection (for
    example deleted while the session ran) are dropped.
    """
    updated = {card.id: card for card in session_cards}
    known_ids = {card.id for card in collection}

    dropped = [cid for cid in updated if cid not in known_ids]
    if dropped:
        logger.info(f"Dropping {len(dropped)} session cards no longer in the collection")

    return [updated.get(card.id, card) for card in collection]


def is_due(card: Card, now: int) -> bool:
    return card.next_review <= now and not is_skipped(card)


def is_skipped(card: Card) -> bool:
    return card.kind is CardKind.SENTENCE and card.is_skipped


def has_mistakes(card: Card) -> bool:
    return card.kind is CardKind.SENTENCE and len(card.incorrect_answers) > 0
