"""
Domain models for study books, cards and sessions.

These are pure data structures with no I/O or external dependencies.
Cards form a tagged union: both variants share the reviewable fields
(memory level, timestamps, streak) and carry a ``kind`` tag so callers
dispatch on the tag instead of probing for optional fields.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal

from .constants import INITIAL_MEMORY_LEVEL, WORD_BOOK_ID, WORD_BOOK_TITLE
from .exceptions import ValidationError


def current_time_ms() -> int:
    """Epoch milliseconds, the time unit used by every card timestamp."""
    return int(time.time() * 1000)


class CardKind(str, Enum):
    SENTENCE = "sentence"
    WORD = "word"


class StudyMode(str, Enum):
    LEARN = "LEARN"
    REVIEW_MISTAKES = "REVIEW_MISTAKES"


class AnswerMode(str, Enum):
    FIXED = "FIXED"
    AI = "AI"


class ImportMode(str, Enum):
    TRANSLATE = "translate"
    BILINGUAL = "bilingual"


@dataclass(frozen=True)
class SentenceCard:
    """
    A bilingual sentence pair with spaced-repetition state.

    Attributes:
        id: Unique within the owning book.
        chinese: Prompt shown to the learner.
        english: Reference translation.
        memory_level: 1-based index into the review interval table.
        last_reviewed: Epoch ms of the most recent answer, None if never answered.
        next_review: Epoch ms before which the card is not due.
        correct_streak: Consecutive correct answers since the last miss.
        incorrect_answers: Most recent wrong submissions, oldest first.
        is_skipped: Excludes the card from the due queue.
    """

    id: int
    chinese: str
    english: str
    memory_level: int = INITIAL_MEMORY_LEVEL
    last_reviewed: int | None = None
    next_review: int = 0
    correct_streak: int = 0
    incorrect_answers: tuple[str, ...] = ()
    is_skipped: bool = False
    kind: Literal[CardKind.SENTENCE] = field(default=CardKind.SENTENCE, init=False)


@dataclass(frozen=True)
class WordCard:
    """A vocabulary entry drilled outside the sentence flow."""

    id: int
    word: str
    chinese: str
    memory_level: int = INITIAL_MEMORY_LEVEL
    last_reviewed: int | None = None
    next_review: int = 0
    correct_streak: int = 0
    kind: Literal[CardKind.WORD] = field(default=CardKind.WORD, init=False)


Card = SentenceCard | WordCard


@dataclass(frozen=True)
class StudyBook:
    id: str
    title: str
    cards: tuple[SentenceCard, ...] = ()
    created_at: int = 0

    def __post_init__(self):
        _check_unique_ids(self.id, self.cards)


@dataclass(frozen=True)
class WordBook:
    id: str = WORD_BOOK_ID
    title: str = WORD_BOOK_TITLE
    cards: tuple[WordCard, ...] = ()

    def __post_init__(self):
        _check_unique_ids(self.id, self.cards)


@dataclass(frozen=True)
class BookSection:
    """One plain-text file of a library book."""

    name: str
    content: str


@dataclass(frozen=True)
class Judgement:
    is_correct: bool
    reason: str


@dataclass(frozen=True)
class ExtractedWord:
    word: str
    chinese: str


@dataclass(frozen=True)
class BookSummary:
    """Per-book counters shown in listings."""

    book_id: str
    title: str
    total: int
    due: int
    mistakes: int
    mastered: int


# ---------------------------------------------------------------------------
# Wire format (camelCase keys, compatible with the browser local store)
# ---------------------------------------------------------------------------


def card_to_dict(card: Card) -> dict[str, Any]:
    data: dict[str, Any] = {"id": card.id}
    if card.kind is CardKind.SENTENCE:
        data["chinese"] = card.chinese
        data["english"] = card.english
    else:
        data["word"] = card.word
        data["chinese"] = card.chinese
    data.update(
        memoryLevel=card.memory_level,
        lastReviewed=card.last_reviewed,
        nextReview=card.next_review,
        correctStreak=card.correct_streak,
    )
    if card.kind is CardKind.SENTENCE:
        data["incorrectAnswers"] = list(card.incorrect_answers)
        data["isSkipped"] = card.is_skipped
    return data


def sentence_card_from_dict(data: dict[str, Any]) -> SentenceCard:
    return SentenceCard(
        id=int(data["id"]),
        chinese=str(data.get("chinese", "")),
        english=str(data.get("english", "")),
        memory_level=int(data.get("memoryLevel") or INITIAL_MEMORY_LEVEL),
        last_reviewed=_optional_int(data.get("lastReviewed")),
        next_review=int(data.get("nextReview") or 0),
        correct_streak=int(data.get("correctStreak") or 0),
        incorrect_answers=tuple(str(a) for a in data.get("incorrectAnswers") or ()),
        is_skipped=bool(data.get("isSkipped", False)),
    )


def word_card_from_dict(data: dict[str, Any]) -> WordCard:
    return WordCard(
        id=int(data["id"]),
        word=str(data.get("word", "")),
        chinese=str(data.get("chinese", "")),
        memory_level=int(data.get("memoryLevel") or INITIAL_MEMORY_LEVEL),
        last_reviewed=_optional_int(data.get("lastReviewed")),
        next_review=int(data.get("nextReview") or 0),
        correct_streak=int(data.get("correctStreak") or 0),
    )


def book_to_dict(book: StudyBook) -> dict[str, Any]:
    return {
        "id": book.id,
        "title": book.title,
        "cards": [card_to_dict(c) for c in book.cards],
        "createdAt": book.created_at,
    }


def book_from_dict(data: dict[str, Any]) -> StudyBook:
    return StudyBook(
        id=str(data["id"]),
        title=str(data.get("title") or data["id"]),
        cards=tuple(sentence_card_from_dict(c) for c in data.get("cards") or ()),
        created_at=int(data.get("createdAt") or 0),
    )


def word_book_to_dict(book: WordBook) -> dict[str, Any]:
    return {
        "id": book.id,
        "title": book.title,
        "cards": [card_to_dict(c) for c in book.cards],
    }


def word_book_from_dict(data: dict[str, Any]) -> WordBook:
    # Older stores used fractional timestamps as word ids; truncating them
    # can collide, so duplicates are renumbered after the current maximum.
    cards: list[WordCard] = []
    seen: set[int] = set()
    pending: list[WordCard] = []
    for raw in data.get("cards") or ():
        card = word_card_from_dict(raw)
        if card.id in seen:
            pending.append(card)
            continue
        seen.add(card.id)
        cards.append(card)

    next_id = max(seen, default=0) + 1
    for card in pending:
        cards.append(replace(card, id=next_id))
        next_id += 1

    return WordBook(
        id=str(data.get("id") or WORD_BOOK_ID),
        title=str(data.get("title") or WORD_BOOK_TITLE),
        cards=tuple(cards),
    )


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _check_unique_ids(collection_id: str, cards: tuple[Card, ...]) -> None:
    seen: set[int] = set()
    for card in cards:
        if card.id in seen:
            raise ValidationError(f"Duplicate card id {card.id} in {collection_id}")
        seen.add(card.id)
