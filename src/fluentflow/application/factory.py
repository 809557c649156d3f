"""
Repository Factory
Centralizes the logic for selecting the storage and assistant adapters.
"""

import logging

from fluentflow.application.config import AppConfig
from fluentflow.application.study_service import StudyService
from fluentflow.domain.interfaces import BookRepository, LanguageAssistant, WordBookRepository
from fluentflow.infrastructure.adapters.gemini import GeminiAssistant
from fluentflow.infrastructure.adapters.http_store import HttpBookRepository
from fluentflow.infrastructure.adapters.json_store import JsonBookRepository
from fluentflow.infrastructure.adapters.library_store import LibraryBookRepository
from fluentflow.infrastructure.adapters.offline import OfflineAssistant
from fluentflow.infrastructure.adapters.sqlite_store import SqliteBookRepository

logger = logging.getLogger(__name__)


def get_book_repository(config: AppConfig) -> BookRepository:
    """
    Returns the BookRepository implementation selected by ``config.backend``.
    """
    if config.backend == "library":
        return LibraryBookRepository(config.library_dir)

    if config.backend == "sqlite":
        return SqliteBookRepository(config.database_path)

    if config.backend == "http":
        return HttpBookRepository(url=config.server_url, timeout=config.request_timeout)

    return JsonBookRepository(config.store_path)


def get_word_book_repository(
    config: AppConfig, books: BookRepository | None = None
) -> WordBookRepository:
    """
    Returns storage for the word book.

    Backends that store words themselves reuse the book repository; the text
    library has no place for words, so they go to the JSON store instead.
    """
    if isinstance(books, WordBookRepository):
        return books
    if config.backend == "library":
        return JsonBookRepository(config.store_path)
    candidate = get_book_repository(config)
    if isinstance(candidate, WordBookRepository):
        return candidate
    return JsonBookRepository(config.store_path)


def get_assistant(config: AppConfig) -> LanguageAssistant:
    if config.gemini_api_key:
        return GeminiAssistant(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            timeout=config.request_timeout,
        )
    logger.info("No Gemini API key configured; running in offline mode")
    return OfflineAssistant()


def build_study_service(config: AppConfig) -> StudyService:
    books = get_book_repository(config)
    return StudyService(
        books=books,
        words=get_word_book_repository(config, books),
        assistant=get_assistant(config),
        judge_timeout=config.judge_timeout,
    )
