"""
Answer judging with a safe fallback.

AI judgment is bounded by a timeout; any failure (exception, timeout,
malformed verdict) degrades to a case-insensitive exact match so the
learner always gets a verdict and the session keeps going.
"""

import asyncio
import logging

from fluentflow.domain.constants import JUDGE_TIMEOUT
from fluentflow.domain.interfaces import LanguageAssistant
from fluentflow.domain.models import AnswerMode, Judgement

logger = logging.getLogger(__name__)


def exact_match(user_input: str, reference: str) -> bool:
    return user_input.strip().lower() == reference.strip().lower()


def judge_exact(user_input: str, reference: str) -> Judgement:
    is_correct = exact_match(user_input, reference)
    reason = "Correct!" if is_correct else f"The correct answer is: {reference}"
    return Judgement(is_correct=is_correct, reason=reason)


async def judge_answer(
    prompt: str,
    reference: str,
    user_input: str,
    mode: AnswerMode = AnswerMode.FIXED,
    assistant: LanguageAssistant | None = None,
    timeout: float = JUDGE_TIMEOUT,
) -> Judgement:
    """
    Produce a verdict for one answer.

    Args:
        prompt: Sentence shown to the learner.
        reference: Expected translation.
        user_input: Learner's submission.
        mode: FIXED compares strings; AI delegates to the assistant.
        assistant: Required for AI mode; without one AI mode behaves like FIXED.
        timeout: Seconds to wait for the assistant.
    """
    if mode is not AnswerMode.AI or assistant is None:
        return judge_exact(user_input, reference)

    try:
        verdict = await asyncio.wait_for(
            assistant.judge(prompt, reference, user_input), timeout=timeout
        )
        if not isinstance(verdict, Judgement) or not isinstance(verdict.is_correct, bool):
            raise TypeError(f"unexpected verdict: {verdict!r}")
        return verdict
    except asyncio.TimeoutError:
        logger.warning(f"AI judge timed out after {timeout}s, using exact match")
    except Exception as e:
        logger.warning(f"AI judge failed ({e}), using exact match")

    is_correct = exact_match(user_input, reference)
    reason = "Correct!" if is_correct else f"AI judge failed. Expected: {reference}"
    return Judgement(is_correct=is_correct, reason=reason)
