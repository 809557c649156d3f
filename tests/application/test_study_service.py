from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from conftest import NOW, make_card

from fluentflow.application.session import SessionStatus
from fluentflow.application.study_service import StudyService
from fluentflow.domain.exceptions import NotFoundError, PersistenceError, ValidationError
from fluentflow.domain.models import (
    AnswerMode,
    ExtractedWord,
    ImportMode,
    Judgement,
    StudyBook,
    StudyMode,
)


@pytest.fixture
def assistant():
    mock = AsyncMock()
    mock.extract_words.return_value = [ExtractedWord("goodbye", "再见")]
    return mock


@pytest_asyncio.fixture
async def service(json_repo, book, assistant):
    await json_repo.create_book(book)
    return StudyService(books=json_repo, words=json_repo, assistant=assistant)


def test_summarize(book):
    mastered = make_card(4, memory_level=10, next_review=NOW + 1)
    summary = StudyService.summarize(
        StudyBook(id=book.id, title=book.title, cards=(*book.cards, mastered)), now=NOW
    )
    assert (summary.total, summary.due, summary.mistakes, summary.mastered) == (4, 2, 1, 1)


@pytest.mark.asyncio
async def test_list_summaries(service):
    summaries = await service.list_summaries(now=NOW)
    assert [s.book_id for s in summaries] == ["book_1"]


@pytest.mark.asyncio
async def test_import_book_is_stored(service, json_repo):
    created = await service.import_book("New", "一 === One.\n二 === Two.", ImportMode.BILINGUAL)
    stored = await json_repo.load_book(created.id)
    assert [c.english for c in stored.cards] == ["One.", "Two."]


@pytest.mark.asyncio
async def test_correct_answer_flow(service, json_repo):
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)

    outcome = await service.answer(session, "hello.", now=NOW)

    assert outcome.is_correct
    assert outcome.reason == "Correct!"
    assert outcome.card.memory_level == 2
    assert session.queue[0].memory_level == 2

    session.advance()
    saved = await service.finish(session)
    stored = await json_repo.load_book("book_1")

    assert stored == saved
    assert stored.cards[0].memory_level == 2
    assert stored.cards[0].next_review == NOW + 1_800_000


@pytest.mark.asyncio
async def test_wrong_answer_collects_words(service, json_repo, assistant):
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)
    session.advance()  # card 3, "Goodbye."

    outcome = await service.answer(session, "see you", now=NOW)
    await service.drain()

    assert not outcome.is_correct
    assert outcome.expected == "Goodbye."
    assert outcome.card.incorrect_answers == ("bye bye", "see you")
    assistant.extract_words.assert_awaited_once_with("see you", "Goodbye.")
    words = await json_repo.load_word_book()
    assert [c.word for c in words.cards] == ["goodbye"]


@pytest.mark.asyncio
async def test_word_collection_failure_is_logged(service, json_repo, assistant):
    assistant.extract_words.side_effect = RuntimeError("offline")
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)

    outcome = await service.answer(session, "wrong", now=NOW)
    await service.drain()

    assert not outcome.is_correct
    assert (await json_repo.load_word_book()).cards == ()


@pytest.mark.asyncio
async def test_ai_answer_mode_uses_assistant(service, assistant):
    assistant.judge.return_value = Judgement(True, "Close enough.")
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)

    outcome = await service.answer(session, "Hi.", AnswerMode.AI, now=NOW)

    assert outcome.is_correct
    assert outcome.reason == "Close enough."


@pytest.mark.asyncio
async def test_answer_validation(service):
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)

    with pytest.raises(ValidationError, match="empty"):
        await service.answer(session, "   ", now=NOW)

    await service.answer(session, "Hello.", now=NOW)
    with pytest.raises(ValidationError, match="already answered"):
        await service.answer(session, "Hello.", now=NOW)

    session.advance()
    session.advance()
    with pytest.raises(ValidationError, match="no current card"):
        await service.answer(session, "Hello.", now=NOW)


@pytest.mark.asyncio
async def test_start_unknown_book(service):
    with pytest.raises(NotFoundError):
        await service.start("missing", StudyMode.LEARN)


@pytest.mark.asyncio
async def test_empty_queue_session_is_terminal(service):
    session = await service.start("book_1", StudyMode.LEARN, now=0)
    assert session.status is SessionStatus.CAUGHT_UP


@pytest.mark.asyncio
async def test_finish_merges_into_latest_stored_book(service, json_repo, book):
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)
    await service.answer(session, "Hello.", now=NOW)

    # Card 3 deleted and the book renamed while the session ran
    await json_repo.update_book(StudyBook(id=book.id, title="Renamed", cards=book.cards[:2]))

    saved = await service.finish(session)

    assert saved.title == "Renamed"
    assert [c.id for c in saved.cards] == [1, 2]
    assert saved.cards[0].memory_level == 2


@pytest.mark.asyncio
async def test_persistence_failure_keeps_session_retryable(service, json_repo):
    session = await service.start("book_1", StudyMode.LEARN, now=NOW)
    await service.answer(session, "Hello.", now=NOW)

    original_update = json_repo.update_book
    json_repo.update_book = AsyncMock(side_effect=OSError("disk full"))

    with pytest.raises(PersistenceError):
        await service.finish(session)
    assert session.queue[0].memory_level == 2

    json_repo.update_book = original_update
    await service.finish(session)
    assert (await json_repo.load_book("book_1")).cards[0].memory_level == 2


@pytest.mark.asyncio
async def test_word_drill_round_trip(service, json_repo, word_book):
    await json_repo.save_word_book(word_book)
    session = await service.start_word_drill(now=NOW)

    outcome = await service.answer(session, "Apple", now=NOW)
    await service.finish(session)

    assert outcome.is_correct
    stored = await json_repo.load_word_book()
    assert stored.cards[0].memory_level == 2
    assert stored.cards[1].memory_level == 1


@pytest.mark.asyncio
async def test_word_drill_needs_storage(json_repo):
    service = StudyService(books=json_repo)
    with pytest.raises(ValidationError):
        await service.start_word_drill()


@pytest.mark.asyncio
async def test_add_words(service, json_repo):
    added = await service.add_words([ExtractedWord("river", "河")])
    assert [c.word for c in added] == ["river"]
    assert len((await json_repo.load_word_book()).cards) == 1


@pytest.mark.asyncio
async def test_close_closes_dependencies(json_repo, assistant):
    words = AsyncMock()
    service = StudyService(books=json_repo, words=words, assistant=assistant)
    await service.close()
    words.close.assert_awaited_once()
    assistant.close.assert_awaited_once()
