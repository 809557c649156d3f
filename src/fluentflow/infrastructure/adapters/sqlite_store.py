"""
SQLite Store: relational adapter built on SQLModel.

Books, their cards and the word book live in three tables. Card rows are
keyed by ``(book_id, card_id)`` so ids stay unique per book, as they are in
every other store.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from fluentflow.domain.exceptions import ConflictError, NotFoundError, PersistenceError
from fluentflow.domain.interfaces import BookRepository, WordBookRepository
from fluentflow.domain.models import SentenceCard, StudyBook, WordBook, WordCard

logger = logging.getLogger(__name__)


class BookRow(SQLModel, table=True):
    """Books table - one row per study book."""

    __tablename__ = "books"

    id: str = Field(primary_key=True)
    title: str
    created_at: int = 0


class CardRow(SQLModel, table=True):
    """Cards table - sentence cards with their review state."""

    __tablename__ = "cards"

    book_id: str = Field(foreign_key="books.id", primary_key=True)
    card_id: int = Field(primary_key=True)
    chinese: str
    english: str
    memory_level: int = 1
    last_reviewed: Optional[int] = None
    next_review: int = 0
    correct_streak: int = 0
    incorrect_answers: str = "[]"  # JSON list of strings
    is_skipped: bool = False


class WordRow(SQLModel, table=True):
    """Words table - the single vocabulary collection."""

    __tablename__ = "words"

    id: int = Field(primary_key=True)
    word: str
    chinese: str
    memory_level: int = 1
    last_reviewed: Optional[int] = None
    next_review: int = 0
    correct_streak: int = 0


class SqliteBookRepository(BookRepository, WordBookRepository):
    """Stores books and words in a local SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
        SQLModel.metadata.create_all(self.engine)
        logger.debug(f"Opened SQLite store at {self.db_path}")

    async def list_books(self) -> list[StudyBook]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(BookRow).order_by(BookRow.created_at.desc())).all()
                return [self._to_book(session, row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list books: {e}") from e

    async def load_book(self, book_id: str) -> StudyBook:
        try:
            with Session(self.engine) as session:
                row = session.get(BookRow, book_id)
                if row is None:
                    raise NotFoundError(f"Book not found: {book_id}")
                return self._to_book(session, row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load book {book_id}: {e}") from e

    async def create_book(self, book: StudyBook) -> StudyBook:
        try:
            with Session(self.engine) as session:
                if session.get(BookRow, book.id) is not None:
                    raise ConflictError(f"Book already exists: {book.id}")
                session.add(BookRow(id=book.id, title=book.title, created_at=book.created_at))
                session.add_all(self._card_rows(book))
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create book {book.id}: {e}") from e
        logger.info(f"Created book '{book.title}' ({len(book.cards)} cards)")
        return book

    async def update_book(self, book: StudyBook) -> StudyBook:
        try:
            with Session(self.engine) as session:
                row = session.get(BookRow, book.id)
                if row is None:
                    raise NotFoundError(f"Book not found: {book.id}")
                row.title = book.title
                session.add(row)
                for card in self._stored_cards(session, book.id):
                    session.delete(card)
                session.flush()
                session.add_all(self._card_rows(book))
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not update book {book.id}: {e}") from e
        return book

    async def delete_book(self, book_id: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.get(BookRow, book_id)
                if row is None:
                    raise NotFoundError(f"Book not found: {book_id}")
                for card in self._stored_cards(session, book_id):
                    session.delete(card)
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not delete book {book_id}: {e}") from e
        logger.info(f"Deleted book {book_id}")

    async def load_word_book(self) -> WordBook:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(WordRow).order_by(WordRow.id)).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load word book: {e}") from e
        return WordBook(
            cards=tuple(
                WordCard(
                    id=r.id,
                    word=r.word,
                    chinese=r.chinese,
                    memory_level=r.memory_level,
                    last_reviewed=r.last_reviewed,
                    next_review=r.next_review,
                    correct_streak=r.correct_streak,
                )
                for r in rows
            )
        )

    async def save_word_book(self, book: WordBook) -> None:
        try:
            with Session(self.engine) as session:
                for row in session.exec(select(WordRow)).all():
                    session.delete(row)
                session.flush()
                session.add_all(
                    WordRow(
                        id=c.id,
                        word=c.word,
                        chinese=c.chinese,
                        memory_level=c.memory_level,
                        last_reviewed=c.last_reviewed,
                        next_review=c.next_review,
                        correct_streak=c.correct_streak,
                    )
                    for c in book.cards
                )
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save word book: {e}") from e

    async def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------

    @staticmethod
    def _card_rows(book: StudyBook) -> list[CardRow]:
        return [
            CardRow(
                book_id=book.id,
                card_id=c.id,
                chinese=c.chinese,
                english=c.english,
                memory_level=c.memory_level,
                last_reviewed=c.last_reviewed,
                next_review=c.next_review,
                correct_streak=c.correct_streak,
                incorrect_answers=json.dumps(list(c.incorrect_answers), ensure_ascii=False),
                is_skipped=c.is_skipped,
            )
            for c in book.cards
        ]

    @staticmethod
    def _stored_cards(session: Session, book_id: str) -> list[CardRow]:
        statement = select(CardRow).where(CardRow.book_id == book_id).order_by(CardRow.card_id)
        return list(session.exec(statement).all())

    @classmethod
    def _to_book(cls, session: Session, row: BookRow) -> StudyBook:
        cards = cls._stored_cards(session, row.id)
        return StudyBook(
            id=row.id,
            title=row.title,
            created_at=row.created_at,
            cards=tuple(
                SentenceCard(
                    id=c.card_id,
                    chinese=c.chinese,
                    english=c.english,
                    memory_level=c.memory_level,
                    last_reviewed=c.last_reviewed,
                    next_review=c.next_review,
                    correct_streak=c.correct_streak,
                    incorrect_answers=tuple(json.loads(c.incorrect_answers or "[]")),
                    is_skipped=c.is_skipped,
                )
                for c in cards
            ),
        )
