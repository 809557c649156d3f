"""Word-slot answers for fixed input mode.

The reference sentence is split into word slots and punctuation; the learner
fills the slots and the answer string is rebuilt around the punctuation.
"""

import re

_TOKEN_RE = re.compile(r"\b[\w']+\b|[^\s\w']")
_WORD_RE = re.compile(r"^[a-zA-Z']+$")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([.,?!;:'\"])")


def tokenize(sentence: str) -> list[str]:
    return _TOKEN_RE.findall(sentence)


def is_word(token: str) -> bool:
    return bool(_WORD_RE.match(token))


def answer_slots(sentence: str) -> int:
    """Number of words the learner has to type."""
    return sum(1 for token in tokenize(sentence) if is_word(token))


def mask_sentence(sentence: str, mask_char: str = "_") -> str:
    """Render the sentence with every word replaced by a blank of equal length."""
    parts = [mask_char * len(t) if is_word(t) else t for t in tokenize(sentence)]
    return _join(parts)


def assemble_answer(sentence: str, words: list[str]) -> str:
    """
    Rebuild an answer from typed words, keeping the reference punctuation.

    Missing words become empty slots; extra words are ignored.
    """
    typed = iter(words)
    parts = [next(typed, "") if is_word(t) else t for t in tokenize(sentence)]
    return _join(parts)


def _join(parts: list[str]) -> str:
    return _SPACE_BEFORE_PUNCT_RE.sub(r"\1", " ".join(parts)).strip()
