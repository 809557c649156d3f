"""
Library Store: text-file adapter.

Each book is a directory of ``*.txt`` sections holding ``chinese===english``
lines, the layout of a plain-text sentence library. Scheduling state that
plain text cannot hold lives in a ``progress.json`` sidecar next to the
sections. The sidecar records every card's id, section and text, so a line
keeps its id and progress however the other lines move around it. Lines
added by hand get fresh ids after the largest recorded one.
"""

import json
import logging
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from fluentflow.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from fluentflow.domain.interfaces import BookRepository, SectionRepository
from fluentflow.domain.models import (
    BookSection,
    SentenceCard,
    StudyBook,
    card_to_dict,
    sentence_card_from_dict,
)

logger = logging.getLogger(__name__)

PROGRESS_FILE = "progress.json"
DEFAULT_SECTION = "section_1"
PAIR_DELIMITER = "==="

# (section name, [(chinese, english), ...]) in file order
Sections = list[tuple[str, list[tuple[str, str]]]]
Placement = list[tuple[str, SentenceCard]]


def parse_section(text: str) -> list[tuple[str, str]]:
    """Split section text into pairs; lines without the delimiter are notes."""
    pairs = []
    for line in text.splitlines():
        parts = line.split(PAIR_DELIMITER, 1)
        if len(parts) == 2:
            pairs.append((parts[0].strip(), parts[1].strip()))
    return pairs


class LibraryBookRepository(BookRepository, SectionRepository):
    """Stores each book as a folder of text sections plus a progress sidecar."""

    def __init__(self, root: Path):
        self.root = Path(root)

    async def list_books(self) -> list[StudyBook]:
        if not self.root.exists():
            return []
        books = [self._read_book(d) for d in sorted(self.root.iterdir()) if d.is_dir()]
        return sorted(books, key=lambda b: b.created_at, reverse=True)

    async def load_book(self, book_id: str) -> StudyBook:
        return self._read_book(self._existing_dir(book_id))

    async def create_book(self, book: StudyBook) -> StudyBook:
        book_dir = self._book_dir(book.id)
        if book_dir.exists():
            raise ConflictError(f"Book already exists: {book.id}")
        self._check_text(book.cards)
        try:
            book_dir.mkdir(parents=True)
            self._write_section(book_dir, DEFAULT_SECTION, book.cards)
            self._write_progress(
                book_dir, book.title, book.created_at, [(DEFAULT_SECTION, c) for c in book.cards]
            )
        except OSError as e:
            raise PersistenceError(f"Could not create {book_dir}: {e}") from e
        logger.info(f"Created book '{book.title}' in {book_dir}")
        return book

    async def update_book(self, book: StudyBook) -> StudyBook:
        book_dir = self._existing_dir(book.id)
        self._check_text(book.cards)
        sections = self._read_sections(book_dir)
        progress = self._read_progress(book_dir)
        placed = {card.id: name for name, card in self._place(sections, progress)}

        # Cards stay in their section; new ones go to the last section
        default = sections[-1][0] if sections else DEFAULT_SECTION
        grouped: dict[str, list[SentenceCard]] = {name: [] for name, _ in sections}
        for card in book.cards:
            grouped.setdefault(placed.get(card.id, default), []).append(card)

        stored = dict(sections)
        try:
            for name, cards in grouped.items():
                if stored.get(name) != [(c.chinese, c.english) for c in cards]:
                    self._write_section(book_dir, name, cards)
            placement = [(name, card) for name, cards in grouped.items() for card in cards]
            self._write_progress(book_dir, book.title, book.created_at, placement)
        except OSError as e:
            raise PersistenceError(f"Could not update {book_dir}: {e}") from e
        return book

    async def delete_book(self, book_id: str) -> None:
        book_dir = self._existing_dir(book_id)
        try:
            shutil.rmtree(book_dir)
        except OSError as e:
            raise PersistenceError(f"Could not delete {book_dir}: {e}") from e
        logger.info(f"Deleted book {book_id}")

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    async def list_sections(self, book_id: str) -> list[BookSection]:
        book_dir = self._existing_dir(book_id)
        return [
            BookSection(name=path.stem, content=self._read_text(path).strip())
            for path in self._section_files(book_dir)
        ]

    async def add_section(self, book_id: str, name: str, content: str) -> BookSection:
        path = self._section_path(self._existing_dir(book_id), name)
        if path.exists():
            raise ConflictError(f"Section already exists: {name}")
        return self._save_section(path, content)

    async def update_section(self, book_id: str, name: str, content: str) -> BookSection:
        path = self._section_path(self._existing_dir(book_id), name)
        if not path.is_file():
            raise NotFoundError(f"Section not found: {name}")
        return self._save_section(path, content)

    async def delete_section(self, book_id: str, name: str) -> None:
        book_dir = self._existing_dir(book_id)
        path = self._section_path(book_dir, name)
        if not path.is_file():
            raise NotFoundError(f"Section not found: {name}")
        try:
            path.unlink()
            self._sync_progress(book_dir)
        except OSError as e:
            raise PersistenceError(f"Could not delete {path}: {e}") from e
        logger.info(f"Deleted section {name} of {book_id}")

    # ------------------------------------------------------------------

    def _book_dir(self, book_id: str) -> Path:
        if not _is_plain_name(book_id):
            raise ValidationError(f"Invalid book id: {book_id!r}")
        return self.root / book_id

    def _existing_dir(self, book_id: str) -> Path:
        book_dir = self._book_dir(book_id)
        if not book_dir.is_dir():
            raise NotFoundError(f"Book not found: {book_id}")
        return book_dir

    @staticmethod
    def _section_path(book_dir: Path, name: str) -> Path:
        if not _is_plain_name(name) or name.startswith("."):
            raise ValidationError(f"Invalid section name: {name!r}")
        return book_dir / f"{name}.txt"

    @staticmethod
    def _section_files(book_dir: Path) -> list[Path]:
        return sorted(book_dir.glob("*.txt"))

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def _read_sections(self, book_dir: Path) -> Sections:
        return [
            (path.stem, parse_section(self._read_text(path)))
            for path in self._section_files(book_dir)
        ]

    def _read_book(self, book_dir: Path) -> StudyBook:
        progress = self._read_progress(book_dir)
        placement = self._place(self._read_sections(book_dir), progress)
        return StudyBook(
            id=book_dir.name,
            title=progress.get("title") or book_dir.name,
            cards=tuple(card for _, card in placement),
            created_at=_created_at(book_dir, progress),
        )

    @staticmethod
    def _place(sections: Sections, progress: dict[str, Any]) -> Placement:
        """Give every line the id and state recorded for the same text."""
        entries = [e for e in progress.get("cards", []) if "id" in e]
        recorded: dict[tuple[str, str], list[dict[str, Any]]] = {}
        for entry in entries:
            key = (str(entry.get("chinese", "")).strip(), str(entry.get("english", "")).strip())
            recorded.setdefault(key, []).append(entry)
        next_id = max((int(e["id"]) for e in entries), default=0) + 1

        placement: Placement = []
        used: set[int] = set()
        for name, pairs in sections:
            for chinese, english in pairs:
                matches = recorded.get((chinese, english))
                data = dict(matches.pop(0)) if matches else {}
                if "id" not in data or int(data["id"]) in used:
                    data = {"id": next_id}
                    next_id += 1
                data.update(chinese=chinese, english=english)
                card = sentence_card_from_dict(data)
                used.add(card.id)
                placement.append((name, card))
        return placement

    def _read_progress(self, book_dir: Path) -> dict[str, Any]:
        path = book_dir / PROGRESS_FILE
        if not path.exists():
            return {}
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def _save_section(self, path: Path, content: str) -> BookSection:
        if not content.strip():
            raise ValidationError("Section content is required.")
        try:
            path.write_text(content, encoding="utf-8")
            self._sync_progress(path.parent)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e
        return BookSection(name=path.stem, content=content.strip())

    def _sync_progress(self, book_dir: Path) -> None:
        """Record ids for the current lines so they stay stable across reads."""
        progress = self._read_progress(book_dir)
        placement = self._place(self._read_sections(book_dir), progress)
        title = progress.get("title") or book_dir.name
        self._write_progress(book_dir, title, _created_at(book_dir, progress), placement)

    @staticmethod
    def _check_text(cards: tuple[SentenceCard, ...]) -> None:
        for card in cards:
            if PAIR_DELIMITER in card.chinese:
                raise ValidationError(
                    f"Card {card.id}: Chinese text cannot contain '{PAIR_DELIMITER}'"
                )
            if any(c in text for text in (card.chinese, card.english) for c in "\r\n"):
                raise ValidationError(f"Card {card.id}: text must fit on one line")

    @staticmethod
    def _write_section(book_dir: Path, name: str, cards: Sequence[SentenceCard]) -> None:
        content = "\n".join(f"{c.chinese}{PAIR_DELIMITER}{c.english}" for c in cards)
        (book_dir / f"{name}.txt").write_text(content, encoding="utf-8")

    @staticmethod
    def _write_progress(book_dir: Path, title: str, created_at: int, placement: Placement) -> None:
        cards = [{**card_to_dict(card), "section": name} for name, card in placement]
        doc = {"title": title, "createdAt": created_at, "cards": cards}
        (book_dir / PROGRESS_FILE).write_text(
            json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8"
        )


def _is_plain_name(name: str) -> bool:
    return bool(name) and "/" not in name and "\\" not in name and name not in (".", "..")


def _created_at(book_dir: Path, progress: dict[str, Any]) -> int:
    created_at = progress.get("createdAt")
    if created_at is None:
        # Hand-made folders carry no sidecar yet
        return int(book_dir.stat().st_mtime * 1000)
    return int(created_at)
