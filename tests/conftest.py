import pytest

from fluentflow.domain.models import SentenceCard, StudyBook, WordBook, WordCard
from fluentflow.infrastructure.adapters.json_store import JsonBookRepository

NOW = 1_700_000_000_000


def make_card(card_id: int, **kwargs) -> SentenceCard:
    """Sentence card with readable default text."""
    kwargs.setdefault("chinese", f"句子{card_id}")
    kwargs.setdefault("english", f"Sentence {card_id}.")
    return SentenceCard(id=card_id, **kwargs)


def make_word(card_id: int, word: str, **kwargs) -> WordCard:
    kwargs.setdefault("chinese", f"词{card_id}")
    return WordCard(id=card_id, word=word, **kwargs)


@pytest.fixture
def book():
    """Three cards: one due, one scheduled later, one with a recorded miss."""
    return StudyBook(
        id="book_1",
        title="Daily Phrases",
        created_at=NOW - 10_000,
        cards=(
            make_card(1, chinese="你好", english="Hello.", next_review=NOW - 1_000),
            make_card(2, chinese="谢谢", english="Thank you.", next_review=NOW + 60_000),
            make_card(
                3,
                chinese="再见",
                english="Goodbye.",
                next_review=NOW - 500,
                last_reviewed=NOW - 2_000,
                incorrect_answers=("bye bye",),
            ),
        ),
    )


@pytest.fixture
def word_book():
    return WordBook(cards=(make_word(1, "apple", chinese="苹果"), make_word(2, "river")))


@pytest.fixture
def json_repo(tmp_path):
    return JsonBookRepository(tmp_path / "library.json")


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Keep config resolution away from the real home directory and env."""
    monkeypatch.setattr("fluentflow.application.config.CONFIG_FILES", [])
    for var in (
        "FLUENTFLOW_BACKEND",
        "FLUENTFLOW_DATA_DIR",
        "FLUENTFLOW_GEMINI_API_KEY",
        "GEMINI_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    return tmp_path.resolve()
