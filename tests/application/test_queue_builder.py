from conftest import make_card, make_word

from fluentflow.application.queue_builder import build_queue, has_mistakes, is_due, reconcile
from fluentflow.domain.constants import MAX_SESSION_SIZE
from fluentflow.domain.models import StudyMode


def test_learn_orders_most_overdue_first():
    cards = [make_card(1, next_review=300), make_card(2, next_review=100), make_card(3, next_review=200)]
    queue = build_queue(cards, StudyMode.LEARN, now=1000)
    assert [c.next_review for c in queue] == [100, 200, 300]


def test_learn_excludes_future_and_skipped():
    cards = [
        make_card(1, next_review=500),
        make_card(2, next_review=1000),  # due exactly now
        make_card(3, next_review=1001),
        make_card(4, next_review=0, is_skipped=True),
    ]
    queue = build_queue(cards, StudyMode.LEARN, now=1000)
    assert [c.id for c in queue] == [1, 2]


def test_mistakes_orders_most_recent_first():
    cards = [
        make_card(1, last_reviewed=10, incorrect_answers=("x",)),
        make_card(2, last_reviewed=30, incorrect_answers=("x",)),
        make_card(3, last_reviewed=20, incorrect_answers=("x",)),
        make_card(4, last_reviewed=40),
    ]
    queue = build_queue(cards, StudyMode.REVIEW_MISTAKES, now=0)
    assert [c.last_reviewed for c in queue] == [30, 20, 10]


def test_mistakes_ignore_due_and_skip_state():
    cards = [make_card(1, next_review=10**15, is_skipped=True, incorrect_answers=("x",))]
    assert [c.id for c in build_queue(cards, StudyMode.REVIEW_MISTAKES, now=0)] == [1]


def test_mistakes_without_review_time_sort_last():
    cards = [
        make_card(1, incorrect_answers=("x",)),
        make_card(2, last_reviewed=5, incorrect_answers=("x",)),
    ]
    queue = build_queue(cards, StudyMode.REVIEW_MISTAKES, now=0)
    assert [c.id for c in queue] == [2, 1]


def test_queue_is_capped_after_ordering():
    cards = [make_card(i, next_review=100 - i) for i in range(1, 31)]
    queue = build_queue(cards, StudyMode.LEARN, now=1000)

    assert len(queue) == MAX_SESSION_SIZE
    # The 20 most overdue cards are kept
    assert queue[0].id == 30
    assert queue[-1].id == 11


def test_mistakes_queue_keeps_most_recent_when_capped():
    # Shuffled review times so input order does not match the expected order
    times = [(i * 7) % 30 + 1 for i in range(30)]
    cards = [
        make_card(i, last_reviewed=t, incorrect_answers=("x",)) for i, t in enumerate(times, 1)
    ]
    cards.append(make_card(99, last_reviewed=1000))

    queue = build_queue(cards, StudyMode.REVIEW_MISTAKES, now=0)

    assert len(queue) == MAX_SESSION_SIZE
    assert [c.last_reviewed for c in queue] == list(range(30, 10, -1))


def test_empty_collection_gives_empty_queue():
    assert build_queue([], StudyMode.LEARN, now=0) == []
    assert build_queue([], StudyMode.REVIEW_MISTAKES, now=0) == []


def test_word_cards_are_never_mistakes():
    word = make_word(1, "apple", next_review=0)
    assert is_due(word, 0)
    assert not has_mistakes(word)
    assert build_queue([word], StudyMode.REVIEW_MISTAKES, now=0) == []


def test_reconcile_replaces_by_id():
    collection = [make_card(1), make_card(2), make_card(3)]
    updated = make_card(2, memory_level=4)

    result = reconcile(collection, [updated])

    assert [c.id for c in result] == [1, 2, 3]
    assert result[1].memory_level == 4
    assert result[0] is collection[0]


def test_reconcile_empty_queue_is_identity():
    collection = [make_card(1), make_card(2)]
    assert reconcile(collection, []) == collection


def test_reconcile_drops_unknown_ids():
    collection = [make_card(1)]
    result = reconcile(collection, [make_card(1, memory_level=3), make_card(99)])
    assert [c.id for c in result] == [1]
    assert result[0].memory_level == 3
