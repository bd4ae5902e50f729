from datetime import timedelta

import pytest

from enforcer.config import SessionConfig
from enforcer.session import SessionManager, SessionState
from enforcer.srs.constants import Grade

from tests.conftest import NOW


def fill(store, count, prefix="woord"):
    return [store.create(f"{prefix} {index}", now=NOW - timedelta(minutes=count - index))[1] for index in range(count)]


def review_run(manager, count, grade=Grade.GOOD, now=NOW):
    graded = []
    for _ in range(count):
        card = manager.next_due_card(now)
        assert card is not None
        manager.grade_card(card.card_id, grade, now)
        graded.append(card.card_id)
    return graded


def test_starts_idle(store):
    manager = SessionManager(store)
    assert manager.state is SessionState.IDLE
    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.IDLE


def test_start_session_draws_first_due_card(store):
    cards = fill(store, 3)
    manager = SessionManager(store)

    first = manager.start_session(NOW)

    assert manager.state is SessionState.ACTIVE
    assert first.card_id == cards[0].id
    assert manager.current == first
    assert manager.reviewed == 0


def test_cap_of_ten_with_drained_queue_prompts(store):
    fill(store, 10)
    manager = SessionManager(store, SessionConfig(max_cards=10))
    manager.start_session(NOW)

    graded = review_run(manager, 10)

    assert len(set(graded)) == 10
    assert manager.reviewed == 10
    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.PROMPT


def test_cap_prompts_even_when_cards_remain(store):
    fill(store, 12)
    manager = SessionManager(store, SessionConfig(max_cards=10))
    manager.start_session(NOW)
    review_run(manager, 10)

    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.PROMPT
    assert manager.prompt_reason == "session cap reached"

    assert manager.continue_session(NOW) is not None
    assert manager.state is SessionState.ACTIVE
    assert manager.reviewed == 0
    review_run(manager, 2)
    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.PROMPT


def test_empty_queue_without_reviews_stays_active(store):
    manager = SessionManager(store)
    assert manager.start_session(NOW) is None
    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.ACTIVE


def test_grading_does_not_advance(store):
    fill(store, 2)
    manager = SessionManager(store)
    first = manager.start_session(NOW)

    manager.grade_card(first.card_id, Grade.GOOD, NOW)

    assert manager.current is None
    second = manager.next_due_card(NOW)
    assert second.card_id != first.card_id


def test_again_card_returns_after_relapse_interval(store):
    fill(store, 1)
    manager = SessionManager(store)
    card = manager.start_session(NOW)
    manager.grade_card(card.card_id, Grade.AGAIN, NOW)

    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.PROMPT

    manager.continue_session(NOW + timedelta(minutes=11))
    assert manager.current.card_id == card.card_id


def test_new_card_limit(store):
    _, old = store.create("oud", now=NOW - timedelta(days=3))
    store.apply_grade(old.id, Grade.GOOD, NOW - timedelta(days=3))
    fill(store, 4, prefix="nieuw")

    manager = SessionManager(store, SessionConfig(max_new_cards=2))
    first = manager.start_session(NOW)
    assert first.card_id == old.id
    assert not first.is_new

    manager.grade_card(first.card_id, Grade.GOOD, NOW)
    review_run(manager, 2)

    assert manager.new_reviewed == 2
    assert manager.next_due_card(NOW) is None
    assert manager.state is SessionState.PROMPT
    assert store.counts(NOW)[0] == 2


def test_stop_after_correct(store):
    fill(store, 5)
    manager = SessionManager(store, SessionConfig(stop_after_correct=2))
    manager.start_session(NOW)

    for grade in (Grade.GOOD, Grade.AGAIN, Grade.EASY):
        card = manager.next_due_card(NOW)
        manager.grade_card(card.card_id, grade, NOW)

    assert manager.correct == 2
    assert manager.next_due_card(NOW) is None
    assert manager.prompt_reason == "correct-answer target reached"


def test_time_limit(store):
    fill(store, 5)
    manager = SessionManager(store, SessionConfig(max_minutes=5))
    manager.start_session(NOW)

    assert manager.next_due_card(NOW + timedelta(minutes=4)) is not None
    assert manager.next_due_card(NOW + timedelta(minutes=6)) is None
    assert manager.state is SessionState.PROMPT
    assert manager.prompt_reason == "time limit reached"


def test_end_session_discards_counters_and_keeps_cards(store):
    fill(store, 3)
    manager = SessionManager(store)
    manager.start_session(NOW)
    review_run(manager, 2)
    before = store.snapshot()

    manager.end_session()

    assert manager.state is SessionState.IDLE
    assert manager.reviewed == 0
    assert manager.current is None
    assert store.snapshot() == before


def test_decline_ends_session(store):
    fill(store, 1)
    manager = SessionManager(store)
    manager.start_session(NOW)
    review_run(manager, 1)
    manager.next_due_card(NOW)

    manager.decline()
    assert manager.state is SessionState.IDLE


def test_prompt_helpers_need_prompt_state(store):
    manager = SessionManager(store)
    manager.start_session(NOW)
    with pytest.raises(RuntimeError):
        manager.decline()
    with pytest.raises(RuntimeError):
        manager.continue_session(NOW)
