# Domain Package
from .exceptions import (
    AssistantError,
    ConflictError,
    FluentFlowError,
    ImportFormatError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .interfaces import (
    BookRepository,
    LanguageAssistant,
    SectionRepository,
    WordBookRepository,
)
from .models import (
    AnswerMode,
    BookSection,
    BookSummary,
    Card,
    CardKind,
    ExtractedWord,
    ImportMode,
    Judgement,
    SentenceCard,
    StudyBook,
    StudyMode,
    WordBook,
    WordCard,
)

__all__ = [
    "AnswerMode",
    "AssistantError",
    "BookRepository",
    "BookSection",
    "BookSummary",
    "Card",
    "CardKind",
    "ConflictError",
    "ExtractedWord",
    "FluentFlowError",
    "ImportFormatError",
    "ImportMode",
    "Judgement",
    "LanguageAssistant",
    "NotFoundError",
    "PersistenceError",
    "SectionRepository",
    "SentenceCard",
    "StudyBook",
    "StudyMode",
    "ValidationError",
    "WordBook",
    "WordBookRepository",
    "WordCard",
]
