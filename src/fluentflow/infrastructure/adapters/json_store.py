"""
JSON Store: single-document adapter mirroring the browser local store.

The whole library lives in one JSON file with the same keys the web app kept
in local storage (``studyBooks`` and ``wordBook``), so an exported local
store can be used directly.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from fluentflow.domain.exceptions import ConflictError, NotFoundError, PersistenceError
from fluentflow.domain.interfaces import BookRepository, WordBookRepository
from fluentflow.domain.models import (
    StudyBook,
    WordBook,
    book_from_dict,
    book_to_dict,
    word_book_from_dict,
    word_book_to_dict,
)

logger = logging.getLogger(__name__)

BOOKS_KEY = "studyBooks"
WORD_BOOK_KEY = "wordBook"


class JsonBookRepository(BookRepository, WordBookRepository):
    """Stores study books and the word book in one JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def list_books(self) -> list[StudyBook]:
        books = [book_from_dict(b) for b in self._read().get(BOOKS_KEY, [])]
        return sorted(books, key=lambda b: b.created_at, reverse=True)

    async def load_book(self, book_id: str) -> StudyBook:
        for raw in self._read().get(BOOKS_KEY, []):
            if raw.get("id") == book_id:
                return book_from_dict(raw)
        raise NotFoundError(f"Book not found: {book_id}")

    async def create_book(self, book: StudyBook) -> StudyBook:
        doc = self._read()
        books = doc.setdefault(BOOKS_KEY, [])
        if any(raw.get("id") == book.id for raw in books):
            raise ConflictError(f"Book already exists: {book.id}")
        books.append(book_to_dict(book))
        self._write(doc)
        logger.info(f"Created book '{book.title}' ({len(book.cards)} cards)")
        return book

    async def update_book(self, book: StudyBook) -> StudyBook:
        doc = self._read()
        books = doc.get(BOOKS_KEY, [])
        for i, raw in enumerate(books):
            if raw.get("id") == book.id:
                books[i] = book_to_dict(book)
                self._write(doc)
                return book
        raise NotFoundError(f"Book not found: {book.id}")

    async def delete_book(self, book_id: str) -> None:
        doc = self._read()
        books = doc.get(BOOKS_KEY, [])
        remaining = [raw for raw in books if raw.get("id") != book_id]
        if len(remaining) == len(books):
            raise NotFoundError(f"Book not found: {book_id}")
        doc[BOOKS_KEY] = remaining
        self._write(doc)
        logger.info(f"Deleted book {book_id}")

    async def load_word_book(self) -> WordBook:
        raw = self._read().get(WORD_BOOK_KEY)
        return word_book_from_dict(raw) if raw else WordBook()

    async def save_word_book(self, book: WordBook) -> None:
        doc = self._read()
        doc[WORD_BOOK_KEY] = word_book_to_dict(book)
        self._write(doc)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Unexpected document in {self.path}")
        return data

    def _write(self, doc: dict[str, Any]) -> None:
        # Atomic replace via a sibling temp file
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e
