import copy
from datetime import datetime, timezone

import pytest

from enforcer.card_store import CardStore
from enforcer.config import SessionConfig
from enforcer.errors import Transient
from enforcer.issues import IssueLog
from enforcer.reconciliation import AuthContext
from enforcer.service import ReviewService

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeRemote:
    """In-memory RemoteStore; set `fail` to simulate an unreachable server."""

    def __init__(self, snapshot=None):
        self.snapshot = snapshot or {"words": [], "cards": [], "reviews": []}
        self.updates = []
        self.fetches = 0
        self.fail = False

    def fetch_snapshot(self):
        if self.fail:
            raise Transient("remote unreachable")
        self.fetches += 1
        return copy.deepcopy(self.snapshot)

    def update_word(self, word_id, changes):
        if self.fail:
            raise Transient("remote unreachable")
        self.updates.append((word_id, dict(changes)))
        for word in self.snapshot["words"]:
            if word["id"] == word_id:
                word.update(changes)
                return 1
        return 0


def make_snapshot():
    """Two words with cards and one review, as the remote sends them."""
    return {
        "words": [
            {
                "id": "w-huis",
                "text": "het huis",
                "language": "Dutch",
                "translation": "the house",
                "chapter": "Hoofdstuk 1",
                "group_name": "Wonen",
                "sentence": None,
                "created_at": "2024-02-01T10:00:00+00:00",
            },
            {
                "id": "w-fiets",
                "text": "de fiets",
                "language": "Dutch",
                "translation": "the bike",
                "chapter": "Hoofdstuk 1",
                "group_name": "Verkeer",
                "sentence": "Ik ga met de fiets.",
                "created_at": "2024-02-01T10:05:00+00:00",
            },
        ],
        "cards": [
            {
                "id": "c-huis",
                "word_id": "w-huis",
                "due_at": "2024-02-20T10:00:00+00:00",
                "interval_days": 6.0,
                "ease": 2.5,
                "reps": 2,
                "lapses": 0,
            },
            {
                "id": "c-fiets",
                "word_id": "w-fiets",
                "due_at": "2024-02-01T10:05:00+00:00",
                "interval_days": 0.0,
                "ease": 2.5,
                "reps": 0,
                "lapses": 0,
            },
        ],
        "reviews": [
            {
                "id": "r-1",
                "card_id": "c-huis",
                "grade": 3,
                "reviewed_at": "2024-02-14T10:00:00+00:00",
            },
        ],
    }


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    card_store = CardStore.open("sqlite://")
    yield card_store
    card_store.engine.dispose()


@pytest.fixture
def auth():
    return AuthContext(user_id="learner-1", token="token-abc")


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def remote():
    return FakeRemote(make_snapshot())


@pytest.fixture
def issue_log(tmp_path):
    return IssueLog(tmp_path / "reported_issues.jsonl")


@pytest.fixture
def service(store, remote, issue_log):
    return ReviewService(
        store,
        remote=remote,
        session_config=SessionConfig(),
        issue_log=issue_log,
    )
