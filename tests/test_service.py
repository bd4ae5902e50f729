from datetime import timedelta

import pytest

from enforcer.errors import AuthRequired, NotFound
from enforcer.session import SessionState
from enforcer.srs.constants import RELAPSE_INTERVAL_DAYS, Grade
from enforcer.types import UNCHANGED

from tests.conftest import NOW


def test_huis_graded_good_three_times(service):
    _, card = service.store.create("huis", "house", now=NOW)

    when = NOW
    due_dates = []
    for _ in range(3):
        service.grade_card(card.id, Grade.GOOD, when)
        state = service.store.get_card(card.id)
        due_dates.append(state.due_at)
        when = state.due_at

    assert state.reps == 3
    assert state.lapses == 0
    assert NOW < due_dates[0] < due_dates[1] < due_dates[2]


def test_again_after_two_goods(service):
    _, card = service.store.create("huis", "house", now=NOW)

    service.grade_card(card.id, Grade.GOOD, NOW)
    service.grade_card(card.id, Grade.GOOD, NOW + timedelta(days=1))
    service.grade_card(card.id, Grade.AGAIN, NOW + timedelta(days=7))

    state = service.store.get_card(card.id)
    assert state.reps == 0
    assert state.lapses == 1
    assert state.interval_days == pytest.approx(RELAPSE_INTERVAL_DAYS)


def test_session_of_ten_ends_in_prompt(service):
    for index in range(10):
        service.store.create(f"woord {index}", now=NOW - timedelta(minutes=index))

    service.start_session(NOW)
    for _ in range(10):
        card = service.next_due_card(NOW)
        service.grade_card(card.card_id, "good", NOW)

    assert service.next_due_card(NOW) is None
    assert service.session_state is SessionState.PROMPT

    service.decline()
    assert service.session_state is SessionState.IDLE


def test_refresh_without_auth_changes_nothing(service, snapshot):
    service.store.create("huis", "house", now=NOW)
    before = service.store.snapshot()

    with pytest.raises(AuthRequired):
        service.refresh_from_data_api(snapshot, None)

    assert service.store.snapshot() == before


def test_refresh_clears_drawn_card(service, snapshot, auth):
    service.store.create("huis", "house", now=NOW)
    service.start_session(NOW)
    assert service.session.current is not None

    result = service.refresh_from_data_api(snapshot, auth)

    assert result.words_added == 2
    assert service.session.current is None
    assert service.counts(NOW) == (3, 3)


def test_refresh_from_remote(service, auth):
    assert service.refresh_from_remote(auth).cards_added == 2


def test_counts(service):
    service.store.create("nu", now=NOW)
    service.store.create("later", now=NOW + timedelta(hours=2))
    assert service.counts(NOW) == (1, 2)


@pytest.mark.parametrize("grade", [Grade.EASY, 4, "easy", "EASY"])
def test_grade_card_accepts_any_grade_form(service, grade):
    _, card = service.store.create("snel", now=NOW)
    service.grade_card(card.id, grade, NOW)
    assert service.store.reviews_for(card.id)[0].grade == 4


def test_grade_unknown_card(service):
    with pytest.raises(NotFound):
        service.grade_card("nope", Grade.GOOD, NOW)


def test_apply_correction_local(service):
    word, _ = service.store.create("het huis", "the house", now=NOW)

    updated = service.apply_correction_local(word.id, translation="")
    assert updated.translation == ""
    assert updated.text == "het huis"

    assert service.apply_correction_local(word.id, text=UNCHANGED) is None


def test_apply_correction_goes_through_remote(service, remote, auth):
    service.refresh_from_remote(auth)

    updated = service.apply_correction("w-fiets", text="de fiets!", auth=auth)

    assert updated.text == "de fiets!"
    assert remote.updates == [("w-fiets", {"text": "de fiets!"})]

    with pytest.raises(AuthRequired):
        service.apply_correction("w-fiets", text="x", auth=None)


def test_report_issue_appends_json_line(service, issue_log):
    word, card = service.store.create("het huis", "the hose", now=NOW)
    before = service.store.get_card(card.id)

    service.report_issue(card.id, word.id, note="typo in translation", reported_at=NOW)
    service.report_issue(card.id, word.id)

    reports = issue_log.read_all()
    assert len(reports) == 2
    assert reports[0].note == "typo in translation"
    assert reports[0].translation == "the hose"
    assert reports[0].reported_at == NOW
    assert len(issue_log.path.read_text(encoding="utf-8").splitlines()) == 2
    assert service.store.get_card(card.id) == before


def test_import_ocr(service):
    lines = [
        {"text": "Familie", "bbox": {"x": 0.1, "y": 0.8, "w": 0.2, "h": 0.03}},
        {"text": "de moeder", "bbox": {"x": 0.1, "y": 0.75, "w": 0.2, "h": 0.02}},
        {"text": "de vader", "bbox": {"x": 0.1, "y": 0.70, "w": 0.2, "h": 0.02}},
    ]

    report = service.import_ocr(lines, "H1")

    assert report.inserted == 2
    assert service.store.last_group_for_chapter("H1") == "Familie"
