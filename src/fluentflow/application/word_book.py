"""Vocabulary collection maintenance."""

from collections.abc import Iterable
from dataclasses import replace

from fluentflow.domain.models import ExtractedWord, WordBook, WordCard, current_time_ms


def merge_words(
    book: WordBook,
    words: Iterable[ExtractedWord],
    now: int | None = None,
) -> tuple[WordBook, list[WordCard]]:
    """
    Add extracted words that are not in the book yet.

    Words are compared case-insensitively, both against the book and within
    the batch. New cards start at memory level 1 and are due immediately.

    Returns:
        The updated book and the cards that were added.
    """
    if now is None:
        now = current_time_ms()

    existing = {card.word.lower() for card in book.cards}
    next_id = max((card.id for card in book.cards), default=0) + 1
    added: list[WordCard] = []

    for item in words:
        key = item.word.strip().lower()
        if not key or key in existing:
            continue
        added.append(WordCard(id=next_id, word=item.word.strip(), chinese=item.chinese, next_review=now))
        existing.add(key)
        next_id += 1

    if not added:
        return book, []
    return replace(book, cards=(*book.cards, *added)), added
