from dataclasses import replace

import pytest
import pytest_asyncio
from conftest import make_card

from fluentflow.domain.exceptions import ConflictError, NotFoundError
from fluentflow.domain.models import StudyBook, WordBook
from fluentflow.infrastructure.adapters.sqlite_store import SqliteBookRepository


@pytest_asyncio.fixture
async def repo(tmp_path):
    repository = SqliteBookRepository(tmp_path / "db" / "progress.db")
    yield repository
    await repository.close()


@pytest.mark.asyncio
async def test_creates_database_file(repo):
    assert repo.db_path.exists()
    assert await repo.list_books() == []


@pytest.mark.asyncio
async def test_round_trip_book(repo, book):
    await repo.create_book(book)
    assert await repo.load_book(book.id) == book


@pytest.mark.asyncio
async def test_duplicate_create_conflicts(repo, book):
    await repo.create_book(book)
    with pytest.raises(ConflictError):
        await repo.create_book(book)


@pytest.mark.asyncio
async def test_update_replaces_card_set(repo, book):
    await repo.create_book(book)
    updated = replace(
        book,
        title="Renamed",
        cards=(replace(book.cards[0], memory_level=5, incorrect_answers=("x", "y")), make_card(7)),
    )

    await repo.update_book(updated)
    loaded = await repo.load_book(book.id)

    assert loaded.title == "Renamed"
    assert [c.id for c in loaded.cards] == [1, 7]
    assert loaded.cards[0].incorrect_answers == ("x", "y")
    assert loaded.created_at == book.created_at


@pytest.mark.asyncio
async def test_cards_are_scoped_per_book(repo, book):
    await repo.create_book(book)
    await repo.create_book(StudyBook(id="other", title="Other", cards=(make_card(1),)))

    await repo.delete_book("other")

    assert len((await repo.load_book(book.id)).cards) == 3
    with pytest.raises(NotFoundError):
        await repo.load_book("other")


@pytest.mark.asyncio
async def test_missing_book(repo, book):
    with pytest.raises(NotFoundError):
        await repo.update_book(book)
    with pytest.raises(NotFoundError):
        await repo.delete_book(book.id)


@pytest.mark.asyncio
async def test_list_newest_first(repo):
    await repo.create_book(StudyBook(id="a", title="A", created_at=1))
    await repo.create_book(StudyBook(id="b", title="B", created_at=2))
    assert [b.id for b in await repo.list_books()] == ["b", "a"]


@pytest.mark.asyncio
async def test_word_book_round_trip(repo, word_book):
    assert await repo.load_word_book() == WordBook()

    await repo.save_word_book(word_book)
    assert await repo.load_word_book() == word_book

    await repo.save_word_book(replace(word_book, cards=word_book.cards[1:]))
    assert [c.word for c in (await repo.load_word_book()).cards] == ["river"]
