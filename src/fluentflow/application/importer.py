"""Create study books from pasted or file content."""

import logging
import re

from ulid import ULID

from fluentflow.domain.constants import BILINGUAL_DELIMITERS
from fluentflow.domain.exceptions import ImportFormatError
from fluentflow.domain.interfaces import LanguageAssistant
from fluentflow.domain.models import ImportMode, SentenceCard, StudyBook, current_time_ms

logger = logging.getLogger(__name__)

_DELIMITER_RE = re.compile("|".join(re.escape(d) for d in BILINGUAL_DELIMITERS))
_NUMBER_PREFIX_RE = re.compile(r"^\d+\.\s*")


def generate_book_id() -> str:
    """Generate a stable book ID using ULID."""
    return f"book_{ULID()}"


def new_sentence_card(card_id: int, chinese: str, english: str, now: int) -> SentenceCard:
    return SentenceCard(id=card_id, chinese=chinese, english=english, next_review=now)


def content_lines(content: str) -> list[str]:
    return [line.strip() for line in content.strip().splitlines() if line.strip()]


def parse_bilingual(content: str, now: int | None = None) -> list[SentenceCard]:
    """
    Parse ``chinese === english`` lines into new cards.

    Any of ``===``, ``---`` or ``|`` separates the two sides; a leading
    ``"12. "`` numbering is dropped.

    Raises:
        ImportFormatError: On the first line without a delimiter. No cards
            are returned in that case.
    """
    if now is None:
        now = current_time_ms()

    cards: list[SentenceCard] = []
    for index, line in enumerate(content_lines(content), start=1):
        parts = _DELIMITER_RE.split(line, maxsplit=1)
        if len(parts) < 2:
            raise ImportFormatError(
                f"Invalid format on line {index}. Use 'Chinese === English'."
            )
        chinese = _strip_numbering(parts[0])
        english = _strip_numbering(parts[1])
        cards.append(new_sentence_card(index, chinese, english, now))
    return cards


async def import_book(
    title: str,
    content: str,
    mode: ImportMode,
    assistant: LanguageAssistant | None = None,
    now: int | None = None,
) -> StudyBook:
    """
    Build a new book from raw text.

    TRANSLATE mode treats each line as a source sentence and asks the
    assistant for the translations; BILINGUAL mode parses pairs.

    Raises:
        ImportFormatError: Empty title/content, malformed bilingual lines, or
            TRANSLATE mode without an assistant.
    """
    if not title.strip() or not content.strip():
        raise ImportFormatError("Title and content cannot be empty.")
    if now is None:
        now = current_time_ms()

    if mode is ImportMode.BILINGUAL:
        cards = parse_bilingual(content, now)
    else:
        if assistant is None:
            raise ImportFormatError("Translation import needs a language assistant.")
        sentences = content_lines(content)
        translations = await assistant.translate(sentences)
        if len(translations) != len(sentences):
            logger.warning(
                f"Got {len(translations)} translations for {len(sentences)} sentences"
            )
        cards = [
            new_sentence_card(i, chinese, translations[i - 1] if i <= len(translations) else "", now)
            for i, chinese in enumerate(sentences, start=1)
        ]

    book = StudyBook(id=generate_book_id(), title=title.strip(), cards=tuple(cards), created_at=now)
    logger.info(f"Imported '{book.title}' with {len(cards)} cards ({mode.value})")
    return book


def _strip_numbering(text: str) -> str:
    return _NUMBER_PREFIX_RE.sub("", text.strip())
