"""
In-memory state of one study session.

A session owns a capped, ordered queue built from a collection. Answers
replace queue slots in place; the queue is never re-sorted once the
session starts. Ending the session (at the last card or early) reconciles
the queue back into the collection.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from ulid import ULID

from fluentflow.domain.models import Card, StudyBook, StudyMode, WordBook, current_time_ms

from .queue_builder import build_queue, reconcile

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    CAUGHT_UP = "caught_up"  # Empty LEARN queue
    NO_MISTAKES = "no_mistakes"  # Empty REVIEW_MISTAKES queue
    FINISHED = "finished"


@dataclass
class StudySession:
    collection: StudyBook | WordBook
    mode: StudyMode
    queue: list[Card]
    position: int = 0
    answered: bool = False
    status: SessionStatus = SessionStatus.ACTIVE
    id: str = field(default_factory=lambda: f"session_{ULID()}")

    @classmethod
    def start(
        cls,
        collection: StudyBook | WordBook,
        mode: StudyMode,
        now: int | None = None,
    ) -> "StudySession":
        """Build the queue for a collection; empty queues start terminal."""
        if now is None:
            now = current_time_ms()
        queue = build_queue(collection.cards, mode, now)
        session = cls(collection=collection, mode=mode, queue=list(queue))
        if not queue:
            session.status = (
                SessionStatus.CAUGHT_UP if mode is StudyMode.LEARN else SessionStatus.NO_MISTAKES
            )
            logger.info(f"Nothing to study in '{collection.title}': {session.status.value}")
        return session

    @property
    def is_terminal(self) -> bool:
        return self.status is not SessionStatus.ACTIVE

    @property
    def current_card(self) -> Card | None:
        if self.is_terminal or not self.queue:
            return None
        return self.queue[self.position]

    @property
    def progress(self) -> float:
        """Fraction of the queue reached, counting the current card."""
        if not self.queue:
            return 0.0
        return (self.position + 1) / len(self.queue)

    def record_answer(self, updated_card: Card) -> None:
        """Replace the current queue slot with the rescheduled card."""
        self.queue[self.position] = updated_card
        self.answered = True

    def advance(self) -> bool:
        """
        Move to the next card.

        Returns:
            True if another card is available, False once the queue is exhausted
            (the session is then finished).
        """
        if self.is_terminal:
            return False
        if self.position < len(self.queue) - 1:
            self.position += 1
            self.answered = False
            return True
        self.status = SessionStatus.FINISHED
        return False

    def skip(self) -> bool:
        """Leave the current card untouched and move on."""
        return self.advance()

    def end(self, into: StudyBook | WordBook | None = None) -> StudyBook | WordBook:
        """
        Finish the session and return the collection with updated cards.

        Args:
            into: Collection to merge into, typically a freshly loaded copy.
                Defaults to the collection the session started from.

        Safe to call at any point and more than once; nothing answered so far
        is rolled back.
        """
        if self.status is SessionStatus.ACTIVE:
            self.status = SessionStatus.FINISHED
        target = into if into is not None else self.collection
        cards = reconcile(target.cards, self.queue)
        return replace(target, cards=tuple(cards))
