"""
Ports (interfaces) for storage and the language assistant.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import BookSection, ExtractedWord, Judgement, StudyBook, WordBook


class BookRepository(ABC):
    """
    Port for loading and saving study books.

    Implementations:
        - JsonBookRepository: Single JSON document (local key-value store).
        - LibraryBookRepository: Directory of text sections per book.
        - SqliteBookRepository: SQLite tables via SQLModel.
        - HttpBookRepository: Remote FluentFlow server.
    """

    @abstractmethod
    async def list_books(self) -> list[StudyBook]:
        """Return every stored book, newest first."""
        pass

    @abstractmethod
    async def load_book(self, book_id: str) -> StudyBook:
        """
        Load one book with its cards.

        Raises:
            NotFoundError: If no book has this id.
        """
        pass

    @abstractmethod
    async def create_book(self, book: StudyBook) -> StudyBook:
        """
        Persist a new book.

        Raises:
            ConflictError: If the id is already used.
        """
        pass

    @abstractmethod
    async def update_book(self, book: StudyBook) -> StudyBook:
        """
        Replace the stored cards and title of an existing book.

        Raises:
            NotFoundError: If the book does not exist.
        """
        pass

    @abstractmethod
    async def delete_book(self, book_id: str) -> None:
        """
        Remove a book and all of its progress.

        Raises:
            NotFoundError: If the book does not exist.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class WordBookRepository(ABC):
    """Port for the single vocabulary collection."""

    @abstractmethod
    async def load_word_book(self) -> WordBook:
        """Return the word book, or an empty one if nothing is stored yet."""
        pass

    @abstractmethod
    async def save_word_book(self, book: WordBook) -> None:
        pass

    async def close(self) -> None:
        return None


class SectionRepository(ABC):
    """
    Port for the text sections a library book is assembled from.

    Only stores that keep books as editable text files implement this.
    """

    @abstractmethod
    async def list_sections(self, book_id: str) -> list[BookSection]:
        pass

    @abstractmethod
    async def add_section(self, book_id: str, name: str, content: str) -> BookSection:
        """
        Raises:
            ConflictError: If the book already has a section with this name.
        """
        pass

    @abstractmethod
    async def update_section(self, book_id: str, name: str, content: str) -> BookSection:
        """
        Raises:
            NotFoundError: If the section does not exist.
        """
        pass

    @abstractmethod
    async def delete_section(self, book_id: str, name: str) -> None:
        pass


class LanguageAssistant(ABC):
    """
    Port for the generative-AI collaborator.

    Implementations:
        - GeminiAssistant: Google Gemini REST API.
        - OfflineAssistant: Deterministic fallback when no API key is set.
    """

    @abstractmethod
    async def translate(self, sentences: list[str]) -> list[str]:
        """Translate source sentences; one output per input, same order."""
        pass

    @abstractmethod
    async def judge(self, chinese: str, reference: str, user_input: str) -> Judgement:
        """
        Decide whether a free-form answer preserves the meaning of the prompt.

        May raise; callers fall back to exact matching.
        """
        pass

    @abstractmethod
    async def extract_words(self, user_input: str, reference: str) -> list[ExtractedWord]:
        """Pick key vocabulary from the reference sentence."""
        pass

    async def close(self) -> None:
        return None
