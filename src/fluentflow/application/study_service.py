"""
Study Service: Application layer orchestrator.

Coordinates the repositories, the language assistant, the scheduler and the
session queue for one learner.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from fluentflow.domain.constants import JUDGE_TIMEOUT, MASTERED_LEVEL
from fluentflow.domain.exceptions import FluentFlowError, PersistenceError, ValidationError
from fluentflow.domain.interfaces import (
    BookRepository,
    LanguageAssistant,
    SectionRepository,
    WordBookRepository,
)
from fluentflow.domain.models import (
    AnswerMode,
    BookSummary,
    Card,
    CardKind,
    ExtractedWord,
    ImportMode,
    StudyBook,
    StudyMode,
    WordBook,
    WordCard,
    current_time_ms,
)

from .importer import import_book
from .judging import judge_answer
from .queue_builder import has_mistakes, is_due
from .scheduler import process_answer
from .session import StudySession
from .word_book import merge_words

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerOutcome:
    is_correct: bool
    reason: str
    expected: str
    card: Card


class StudyService:
    """
    Application service for running study sessions.

    Follows Dependency Inversion: depends on the repository and assistant
    ports, not on concrete adapters.
    """

    def __init__(
        self,
        books: BookRepository,
        words: WordBookRepository | None = None,
        assistant: LanguageAssistant | None = None,
        judge_timeout: float = JUDGE_TIMEOUT,
    ):
        """
        Args:
            books: Storage for study books.
            words: Storage for the word book; vocabulary collection is off without it.
            assistant: AI collaborator; AI judging and translation need it.
            judge_timeout: Seconds allowed for one AI judgment.
        """
        self._books = books
        self._words = words
        self._assistant = assistant
        self._judge_timeout = judge_timeout
        self._pending: set[asyncio.Task] = set()
        self._words_lock = asyncio.Lock()

    @property
    def books(self) -> BookRepository:
        return self._books

    @property
    def words(self) -> WordBookRepository | None:
        return self._words

    @property
    def sections(self) -> SectionRepository | None:
        """Section editing, available when books are kept as text folders."""
        if isinstance(self._books, SectionRepository):
            return self._books
        return None

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(book: StudyBook, now: int | None = None) -> BookSummary:
        if now is None:
            now = current_time_ms()
        return BookSummary(
            book_id=book.id,
            title=book.title,
            total=len(book.cards),
            due=sum(1 for c in book.cards if is_due(c, now)),
            mistakes=sum(1 for c in book.cards if has_mistakes(c)),
            mastered=sum(1 for c in book.cards if c.memory_level >= MASTERED_LEVEL),
        )

    async def list_summaries(self, now: int | None = None) -> list[BookSummary]:
        books = await self._books.list_books()
        return [self.summarize(book, now) for book in books]

    async def import_book(
        self,
        title: str,
        content: str,
        mode: ImportMode = ImportMode.BILINGUAL,
        now: int | None = None,
    ) -> StudyBook:
        """Parse or translate the content, then store the new book."""
        book = await import_book(title, content, mode, self._assistant, now)
        return await self._books.create_book(book)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start(self, book_id: str, mode: StudyMode, now: int | None = None) -> StudySession:
        book = await self._books.load_book(book_id)
        return StudySession.start(book, mode, now)

    async def start_word_drill(
        self, mode: StudyMode = StudyMode.LEARN, now: int | None = None
    ) -> StudySession:
        if self._words is None:
            raise ValidationError("No word book storage configured.")
        book = await self._words.load_word_book()
        return StudySession.start(book, mode, now)

    async def answer(
        self,
        session: StudySession,
        user_input: str,
        answer_mode: AnswerMode = AnswerMode.FIXED,
        now: int | None = None,
    ) -> AnswerOutcome:
        """
        Judge the answer for the current card and reschedule it.

        On a wrong sentence answer the vocabulary hook runs in the background;
        it never delays the next card.

        Raises:
            ValidationError: Session over, card already answered, or blank input.
        """
        card = session.current_card
        if card is None:
            raise ValidationError("Session has no current card.")
        if session.answered:
            raise ValidationError("Card already answered; move to the next card.")
        if not user_input.strip():
            raise ValidationError("Answer cannot be empty.")

        prompt, reference = _prompt_and_reference(card)
        verdict = await judge_answer(
            prompt,
            reference,
            user_input,
            mode=answer_mode,
            assistant=self._assistant,
            timeout=self._judge_timeout,
        )

        updated = process_answer(card, verdict.is_correct, now=now, user_input=user_input)
        session.record_answer(updated)

        if not verdict.is_correct and card.kind is CardKind.SENTENCE:
            self._schedule_word_collection(user_input, reference)

        return AnswerOutcome(
            is_correct=verdict.is_correct,
            reason=verdict.reason,
            expected=reference,
            card=updated,
        )

    async def finish(self, session: StudySession) -> StudyBook | WordBook:
        """
        Reconcile the session into the stored collection and save it.

        The latest stored version is the merge target, so cards deleted
        elsewhere during the session stay deleted.

        Raises:
            PersistenceError: If saving fails. The session is left intact and
                ``finish`` can be retried.
        """
        try:
            if isinstance(session.collection, WordBook):
                if self._words is None:
                    raise ValidationError("No word book storage configured.")
                async with self._words_lock:
                    current = await self._words.load_word_book()
                    merged = session.end(into=current)
                    await self._words.save_word_book(merged)
            else:
                current = await self._books.load_book(session.collection.id)
                merged = session.end(into=current)
                merged = await self._books.update_book(merged)
        except FluentFlowError:
            raise
        except Exception as e:
            logger.error(f"Saving session {session.id} failed: {e}")
            raise PersistenceError(f"Could not save progress: {e}") from e

        logger.info(f"Session {session.id} saved ({session.mode.value})")
        return merged

    # ------------------------------------------------------------------
    # Word book
    # ------------------------------------------------------------------

    async def add_words(self, words: Iterable[ExtractedWord]) -> list[WordCard]:
        if self._words is None:
            return []
        async with self._words_lock:
            book = await self._words.load_word_book()
            updated, added = merge_words(book, words)
            if added:
                await self._words.save_word_book(updated)
        if added:
            logger.info(f"Added {len(added)} words to '{updated.title}'")
        return added

    def _schedule_word_collection(self, user_input: str, reference: str) -> None:
        if self._assistant is None or self._words is None:
            return
        task = asyncio.create_task(self._collect_words(user_input, reference))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _collect_words(self, user_input: str, reference: str) -> None:
        try:
            words = await self._assistant.extract_words(user_input, reference)
            if words:
                await self.add_words(words)
        except Exception as e:
            logger.warning(f"Vocabulary extraction failed: {e}")

    async def drain(self) -> None:
        """Wait for outstanding background vocabulary tasks."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._books.close()
        if self._words is not None and self._words is not self._books:
            await self._words.close()
        if self._assistant is not None:
            await self._assistant.close()


def _prompt_and_reference(card: Card) -> tuple[str, str]:
    if card.kind is CardKind.SENTENCE:
        return card.chinese, card.english
    return card.chinese, card.word
