from fluentflow.application.word_book import merge_words
from fluentflow.domain.models import ExtractedWord, WordBook


def test_merge_adds_new_words(word_book):
    updated, added = merge_words(
        word_book, [ExtractedWord("journey", "旅程"), ExtractedWord("market", "市场")], now=7
    )

    assert [c.word for c in added] == ["journey", "market"]
    assert [c.id for c in added] == [3, 4]
    assert all(c.memory_level == 1 and c.next_review == 7 for c in added)
    assert len(updated.cards) == 4


def test_merge_skips_existing_words_case_insensitively(word_book):
    updated, added = merge_words(word_book, [ExtractedWord("Apple", "苹果")], now=0)

    assert added == []
    assert updated is word_book


def test_merge_dedupes_within_batch():
    _, added = merge_words(
        WordBook(), [ExtractedWord("Tea", "茶"), ExtractedWord("tea", "茶")], now=0
    )
    assert [(c.id, c.word) for c in added] == [(1, "Tea")]


def test_merge_ignores_blank_words():
    _, added = merge_words(WordBook(), [ExtractedWord("  ", "空")], now=0)
    assert added == []
