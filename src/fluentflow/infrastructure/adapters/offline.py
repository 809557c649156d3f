import logging

from fluentflow.application.judging import exact_match
from fluentflow.domain.interfaces import LanguageAssistant
from fluentflow.domain.models import ExtractedWord, Judgement

logger = logging.getLogger(__name__)


class OfflineAssistant(LanguageAssistant):
    """Deterministic stand-in used when no API key is configured."""

    async def translate(self, sentences: list[str]) -> list[str]:
        logger.info("Offline mode: using placeholder translations")
        return [
            f'[Offline Mode] Translation for sentence {i}: "{s}"'
            for i, s in enumerate(sentences, start=1)
        ]

    async def judge(self, chinese: str, reference: str, user_input: str) -> Judgement:
        is_correct = exact_match(user_input, reference)
        if is_correct:
            reason = "Correct! (Offline mode: Exact match)"
        else:
            reason = (
                f'Incorrect. The expected answer was: "{reference}" '
                "(Offline mode: Exact match required)"
            )
        return Judgement(is_correct=is_correct, reason=reason)

    async def extract_words(self, user_input: str, reference: str) -> list[ExtractedWord]:
        logger.debug("Offline mode: no word extraction available")
        return []
