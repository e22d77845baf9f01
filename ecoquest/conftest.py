# ecoquest/conftest.py
import random
from datetime import datetime, timedelta, timezone

import pytest

from ecoquest.core.database import build_engine, create_all_tables, drop_all_tables
from ecoquest.features.badges.service import seed_default_badges
from ecoquest.features.notifications.sink import RecordingNotificationSink
from ecoquest.features.services import build_services, set_services
from ecoquest.features.store import SqlStore
from ecoquest.models.neighborhood import Neighborhood
from ecoquest.models.task import (
    Frequency,
    ImpactMetrics,
    Quiz,
    QuizQuestion,
    Task,
    VerificationCriteria,
    VerificationMethod,
)
from ecoquest.models.user import User

START = datetime(2024, 6, 12, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually driven clock; call it like `utc_now`."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, moment: datetime) -> datetime:
        self.now = moment
        return self.now


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    eng = build_engine("sqlite://")
    create_all_tables(eng)
    yield eng
    drop_all_tables(eng)
    eng.dispose()


@pytest.fixture
def store(engine):
    return SqlStore(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def services(store, clock, sink):
    svc = build_services(store, clock=clock, rng=random.Random(7), notifier=sink, cooldown_minutes=0)
    set_services(svc)
    yield svc
    set_services(None)


@pytest.fixture
def badge_catalog(store):
    seed_default_badges(store)
    return store.list_badges()


@pytest.fixture
def make_neighborhood(store):
    def _make(neighborhood_id="n1", name=None, **fields):
        store.insert_neighborhood(Neighborhood(neighborhood_id=neighborhood_id, name=name or neighborhood_id, **fields))
        return store.get_neighborhood(neighborhood_id)

    return _make


@pytest.fixture
def make_user(store):
    def _make(user_id="u1", **fields):
        store.insert_user(User(user_id=user_id, **fields))
        return store.get_user(user_id)

    return _make


@pytest.fixture
def make_task(store, clock):
    counter = {"n": 0}

    def _make(task_id=None, **fields):
        counter["n"] += 1
        fields.setdefault("title", f"Task {counter['n']}")
        fields.setdefault("category", "Mobility")
        fields.setdefault("base_points", 100)
        fields.setdefault("verification_method", VerificationMethod.MANUAL_REPORT)
        fields.setdefault("created_at", clock() + timedelta(seconds=counter["n"]))
        task = Task(task_id=task_id or f"t{counter['n']}", **fields)
        store.insert_task(task)
        return store.get_task(task.task_id)

    return _make


@pytest.fixture
def gps_task(make_task):
    return make_task(
        task_id="bike-to-work",
        category="Mobility",
        base_points=100,
        verification_method=VerificationMethod.GPS,
        verification_criteria=VerificationCriteria(target_location=(0.0, 0.0), min_distance_meters=100),
        impact_metrics=ImpactMetrics(co2_saved=2.5, waste_recycled=0.0, distance=8.0),
        frequency=Frequency.ON_DEMAND,
    )


@pytest.fixture
def make_quiz(store):
    def _make(quiz_id="q1", correct=(0, 1), passing_score=None):
        quiz = Quiz(
            quiz_id=quiz_id,
            title="Recycling basics",
            passing_score=passing_score,
            questions=[
                QuizQuestion(text=f"Question {i + 1}", options=["a", "b", "c"], correct_option_index=answer)
                for i, answer in enumerate(correct)
            ],
        )
        store.insert_quiz(quiz)
        return quiz

    return _make

