# Storage and Assistant Adapters
from .gemini import GeminiAssistant
from .http_store import HttpBookRepository
from .json_store import JsonBookRepository
from .library_store import LibraryBookRepository
from .offline import OfflineAssistant
from .sqlite_store import SqliteBookRepository

__all__ = [
    "GeminiAssistant",
    "HttpBookRepository",
    "JsonBookRepository",
    "LibraryBookRepository",
    "OfflineAssistant",
    "SqliteBookRepository",
]
