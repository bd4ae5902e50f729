import threading
from datetime import timedelta

import pytest

from enforcer.card_store import CardStore
from enforcer.errors import Conflict, NotFound
from enforcer.srs.constants import Grade
from enforcer.srs.scheduler import process_review
from enforcer.types import UNCHANGED, ContentCorrection, Language

from tests.conftest import NOW


def test_create_makes_word_and_due_card(store):
    word, card = store.create("het huis", "the house", chapter="H1", group="Wonen", now=NOW)

    assert word.text == "het huis"
    assert word.language is Language.DUTCH
    assert card.word_id == word.id
    assert card.due_at == NOW
    assert store.get_card_for_word(word.id) == card
    assert store.counts(NOW) == (1, 1)


def test_get_due_orders_by_due_time_then_id(store):
    _, late = store.create("laat", now=NOW - timedelta(hours=1))
    _, early = store.create("vroeg", now=NOW - timedelta(hours=2))
    _, tie_a = store.create("gelijk a", now=NOW - timedelta(minutes=30))
    _, tie_b = store.create("gelijk b", now=NOW - timedelta(minutes=30))
    store.create("morgen", now=NOW + timedelta(days=1))

    due = store.get_due(NOW)

    tie_ids = sorted([tie_a.id, tie_b.id])
    assert [c.card_id for c in due] == [early.id, late.id] + tie_ids
    assert store.get_due(NOW, limit=2) == due[:2]
    assert store.counts(NOW) == (4, 5)


def test_get_due_never_returns_future_cards(store):
    for index in range(6):
        _, card = store.create(f"woord {index}", now=NOW - timedelta(hours=index))
        if index % 2:
            store.apply_grade(card.id, Grade.GOOD, NOW)

    due = store.get_due(NOW)

    assert len(due) == 3
    assert all(card.due_at <= NOW for card in due)


def test_apply_grade_updates_card_and_appends_review(store):
    _, card = store.create("de fiets", "the bike", now=NOW)

    updated = store.apply_grade(card.id, Grade.GOOD, NOW)

    assert updated.reps == 1
    assert updated.due_at == NOW + timedelta(days=1)
    assert store.get_card(card.id) == updated
    reviews = store.reviews_for(card.id)
    assert len(reviews) == 1
    assert reviews[0].grade == 3
    assert reviews[0].reviewed_at == NOW


def test_apply_grade_accepts_grade_names(store):
    _, card = store.create("de kat", now=NOW)
    assert store.apply_grade(card.id, "easy", NOW).reps == 1


def test_apply_grade_unknown_card(store):
    with pytest.raises(NotFound):
        store.apply_grade("no-such-card", Grade.GOOD, NOW)


def test_failure_before_review_append_rolls_back(store, monkeypatch):
    _, card = store.create("de hond", "the dog", now=NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW)
    before = store.snapshot()

    def broken_append(session, event_data):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "_append_review", broken_append)
    with pytest.raises(RuntimeError):
        store.apply_grade(card.id, Grade.EASY, NOW + timedelta(days=1))

    assert store.snapshot() == before


def test_concurrent_grade_on_same_card_conflicts():
    entered = threading.Event()
    release = threading.Event()

    def slow_processor(card, grade, now):
        entered.set()
        release.wait(timeout=5)
        return process_review(card, grade, now)

    store = CardStore.open("sqlite://", review_processor=slow_processor)
    _, card = store.create("de boom", now=NOW)

    worker = threading.Thread(target=store.apply_grade, args=(card.id, Grade.GOOD, NOW))
    worker.start()
    try:
        assert entered.wait(timeout=5)
        with pytest.raises(Conflict):
            store.apply_grade(card.id, Grade.EASY, NOW)
    finally:
        release.set()
        worker.join(timeout=5)

    assert len(store.reviews_for(card.id)) == 1
    assert store.get_card(card.id).reps == 1
    store.engine.dispose()


def test_card_is_released_after_grading(store):
    _, card = store.create("de zon", now=NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW + timedelta(days=1))
    assert len(store.reviews_for(card.id)) == 2


def test_correction_changes_content_only(store):
    word, card = store.create("de mann", "the man", now=NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW)
    card_before = store.get_card(card.id)

    updated = store.correct_content(word.id, ContentCorrection(text="de man"))

    assert updated.text == "de man"
    assert updated.translation == "the man"
    assert store.get_card(card.id) == card_before


def test_correction_accepts_empty_string(store):
    word, _ = store.create("de stoel", "the chair", now=NOW)
    updated = store.correct_content(word.id, ContentCorrection(translation=""))
    assert updated.translation == ""
    assert updated.text == "de stoel"


def test_empty_correction_is_a_noop(store):
    assert store.correct_content("no-such-word", ContentCorrection()) is None
    assert store.correct_content("no-such-word", ContentCorrection(text=UNCHANGED)) is None


def test_correction_of_unknown_word(store):
    with pytest.raises(NotFound):
        store.correct_content("no-such-word", ContentCorrection(text="x"))


def test_delete_requires_confirmation(store):
    word, _ = store.create("de tafel", now=NOW)
    with pytest.raises(ValueError):
        store.delete(word.id)
    with pytest.raises(ValueError):
        store.delete_all()
    assert store.counts(NOW) == (1, 1)


def test_delete_cascades_to_card_and_reviews(store):
    word, card = store.create("de deur", now=NOW)
    other, _ = store.create("het raam", now=NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW)

    store.delete(word.id, confirm=True)

    snapshot = store.snapshot()
    assert [w["id"] for w in snapshot["words"]] == [other.id]
    assert len(snapshot["cards"]) == 1
    assert snapshot["reviews"] == []
    with pytest.raises(NotFound):
        store.get_card(card.id)
    with pytest.raises(NotFound):
        store.delete(word.id, confirm=True)


def test_delete_all(store):
    _, card = store.create("de lamp", now=NOW)
    store.apply_grade(card.id, Grade.HARD, NOW)
    store.delete_all(confirm=True)
    assert store.snapshot() == {"words": [], "cards": [], "reviews": []}


def test_word_exists_ignores_case(store):
    store.create("Het Huis", now=NOW)
    assert store.word_exists("het huis")
    assert not store.word_exists("het huis", Language.ENGLISH)
    assert not store.word_exists("de tuin")


def test_chapters_and_last_group(store):
    store.create("de moeder", chapter="H2", group="Familie", now=NOW)
    store.create("het brood", chapter="H2", group="Eten", now=NOW + timedelta(minutes=1))
    store.create("de auto", chapter="H1", group="Verkeer", now=NOW)
    store.create("los", now=NOW)

    assert store.list_chapters() == ["H1", "H2"]
    assert store.last_group_for_chapter("H2") == "Eten"
    assert store.last_group_for_chapter("H9") is None
    assert len(store.list_words()) == 4


def test_snapshot_is_in_wire_format(store):
    word, card = store.create("de appel", "the apple", now=NOW)
    store.apply_grade(card.id, Grade.GOOD, NOW)

    snapshot = store.snapshot()

    assert snapshot["words"][0]["id"] == word.id
    assert snapshot["words"][0]["created_at"] == NOW.isoformat()
    assert set(snapshot["cards"][0]) == {
        "id", "word_id", "due_at", "interval_days", "ease", "reps", "lapses",
    }
    assert snapshot["reviews"][0]["grade"] == 3
