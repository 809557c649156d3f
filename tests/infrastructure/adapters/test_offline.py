import pytest

from fluentflow.infrastructure.adapters.offline import OfflineAssistant


@pytest.fixture
def assistant():
    return OfflineAssistant()


@pytest.mark.asyncio
async def test_translate_placeholders(assistant):
    assert await assistant.translate(["你好"]) == [
        '[Offline Mode] Translation for sentence 1: "你好"'
    ]


@pytest.mark.asyncio
async def test_judge_exact_match(assistant):
    correct = await assistant.judge("你好", "Hello.", " hello. ")
    wrong = await assistant.judge("你好", "Hello.", "Hi.")

    assert correct.is_correct
    assert correct.reason == "Correct! (Offline mode: Exact match)"
    assert not wrong.is_correct
    assert '"Hello."' in wrong.reason


@pytest.mark.asyncio
async def test_no_word_extraction(assistant):
    assert await assistant.extract_words("wrong", "Hello.") == []
