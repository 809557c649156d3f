"""
Gemini Assistant: Google Gemini ``generateContent`` over REST.

Every call asks for a JSON response constrained by a schema, so replies are
parsed with ``json.loads`` rather than scraped from free text.
"""

import json
import logging
from typing import Any

import httpx

from fluentflow.domain.constants import (
    DEFAULT_GEMINI_MODEL,
    GEMINI_BASE_URL,
    MAX_EXTRACTED_WORDS,
    REQUEST_TIMEOUT,
)
from fluentflow.domain.exceptions import AssistantError
from fluentflow.domain.interfaces import LanguageAssistant
from fluentflow.domain.models import ExtractedWord, Judgement

TRANSLATE_PROMPT = """Translate the following Chinese sentences to English. \
Provide only the English translations as a JSON array of strings.
Chinese Sentences:
{sentences}
"""

JUDGE_PROMPT = """
You are an expert Chinese-to-English translation judge. A user is learning Chinese \
and has provided a translation for a given sentence. Your task is to determine if \
their translation is correct. Minor grammatical errors or alternative phrasings are \
acceptable as long as the core meaning is preserved.

- Chinese Sentence: "{chinese}"
- Reference English Translation: "{reference}"
- User's English Translation: "{user_input}"

If it is correct, respond with isCorrect: true and a short, encouraging reason.
If it is incorrect, respond with isCorrect: false and a concise explanation of what \
is wrong, written for a language learner.

Return a JSON object with two keys: "isCorrect" (boolean) and "reason" (string).
"""

EXTRACT_PROMPT = """
Given a correct English sentence, identify up to {limit} key vocabulary words (nouns, \
verbs, adjectives, important adverbs) that a language learner should study. For each \
key word, provide its Chinese translation in the context of the sentence.

Correct English Sentence: "{reference}"

Return a JSON array of objects with a "word" key (the English word) and a "chinese" \
key (the Chinese translation). Do not include common words like "the", "a", "is" \
unless they are part of a key phrase.
"""

TRANSLATE_SCHEMA = {
    "type": "ARRAY",
    "items": {"type": "STRING", "description": "The English translation of a Chinese sentence."},
}

JUDGE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isCorrect": {"type": "BOOLEAN"},
        "reason": {"type": "STRING"},
    },
    "required": ["isCorrect", "reason"],
}

EXTRACT_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "word": {"type": "STRING"},
            "chinese": {"type": "STRING"},
        },
        "required": ["word", "chinese"],
    },
}


class GeminiAssistant(LanguageAssistant):
    """Language assistant backed by the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT,
        base_url: str = GEMINI_BASE_URL,
    ):
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    async def translate(self, sentences: list[str]) -> list[str]:
        if not sentences:
            return []
        prompt = TRANSLATE_PROMPT.format(sentences="\n".join(f"- {s}" for s in sentences))
        try:
            result = await self._generate(prompt, TRANSLATE_SCHEMA)
            if (
                not isinstance(result, list)
                or len(result) != len(sentences)
                or not all(isinstance(t, str) for t in result)
            ):
                raise AssistantError("AI response was not a matching array of strings.")
            return result
        except Exception as e:
            self.logger.error(f"Error translating sentences with AI: {e}")
            return [
                f'[AI Error] Translation for sentence {i}: "{s}"'
                for i, s in enumerate(sentences, start=1)
            ]

    async def judge(self, chinese: str, reference: str, user_input: str) -> Judgement:
        prompt = JUDGE_PROMPT.format(chinese=chinese, reference=reference, user_input=user_input)
        result = await self._generate(prompt, JUDGE_SCHEMA)
        if not isinstance(result, dict) or not isinstance(result.get("isCorrect"), bool):
            raise AssistantError(f"Malformed judge response: {result!r}")
        return Judgement(is_correct=result["isCorrect"], reason=str(result.get("reason", "")))

    async def extract_words(self, user_input: str, reference: str) -> list[ExtractedWord]:
        prompt = EXTRACT_PROMPT.format(limit=MAX_EXTRACTED_WORDS, reference=reference)
        try:
            result = await self._generate(prompt, EXTRACT_SCHEMA)
        except Exception as e:
            self.logger.error(f"Error extracting words with AI: {e}")
            return []
        if not isinstance(result, list):
            return []

        words = []
        for item in result[:MAX_EXTRACTED_WORDS]:
            if isinstance(item, dict) and item.get("word") and item.get("chinese"):
                words.append(ExtractedWord(word=str(item["word"]), chinese=str(item["chinese"])))
        return words

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _generate(self, prompt: str, schema: dict[str, Any]) -> Any:
        """Call generateContent and decode the JSON text of the first candidate."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        try:
            resp = await self._client.post(
                f"{self.base_url}/{self.model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
            resp.raise_for_status()
            data = resp.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            return json.loads(text.strip())
        except httpx.HTTPError as e:
            raise AssistantError(f"Gemini request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise AssistantError(f"Unexpected Gemini response: {e}") from e
