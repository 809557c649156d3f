"""Centralized constants for FluentFlow.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS

# ---------- Scheduling ----------
# Retry interval per memory level (index = level - 1), in milliseconds.
REVIEW_INTERVALS_MS: tuple[int, ...] = (
    5 * _MINUTE_MS,  # Level 1
    30 * _MINUTE_MS,  # Level 2
    12 * _HOUR_MS,  # Level 3
    1 * _DAY_MS,  # Level 4
    2 * _DAY_MS,  # Level 5
    4 * _DAY_MS,  # Level 6
    7 * _DAY_MS,  # Level 7
    15 * _DAY_MS,  # Level 8
    30 * _DAY_MS,  # Level 9
    90 * _DAY_MS,  # Level 10: mastered
)
MASTERED_LEVEL = len(REVIEW_INTERVALS_MS)
INITIAL_MEMORY_LEVEL = 1
MAX_INCORRECT_ANSWERS = 5

# ---------- Sessions ----------
MAX_SESSION_SIZE = 20

# ---------- Import ----------
BILINGUAL_DELIMITERS = ("===", "---", "|")

# ---------- Word book ----------
WORD_BOOK_ID = "main-word-book"
WORD_BOOK_TITLE = "My Word Book"
MAX_EXTRACTED_WORDS = 5

# ---------- AI / HTTP ----------
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
JUDGE_TIMEOUT = 15.0
REQUEST_TIMEOUT = 30.0

# ---------- Server ----------
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 3001
MAX_OPEN_SESSIONS = 100
SESSION_IDLE_TIMEOUT = 60 * 60.0  # seconds
