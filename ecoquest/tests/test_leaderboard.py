from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ecoquest.core.errors import InvalidPeriod, ValidationError
from ecoquest.features.leaderboard.service import improvement_factor, window_bounds
from ecoquest.features.services import build_services
from ecoquest.features.store import SqlStore
from ecoquest.models.submission import Submission, SubmissionStatus
from ecoquest.workers.leaderboard_refresh import run_leaderboard_refresh


def _populate(make_neighborhood, make_user, nid, base_points, user_count, **user_fields):
    make_neighborhood(nid, base_points=base_points)
    for i in range(user_count):
        make_user(f"{nid}-u{i}", neighborhood_id=nid, **user_fields)


def _approved(store, nid, points, completed_at, status=SubmissionStatus.APPROVED):
    store.insert_submission(
        Submission(
            submission_id=str(uuid4()),
            user_id="someone",
            task_id="t",
            status=status,
            neighborhood_id=nid,
            points_awarded=points,
            submitted_at=completed_at,
            completed_at=completed_at,
        )
    )


def test_normalization_lets_small_neighborhoods_win(services, make_neighborhood, make_user):
    _populate(make_neighborhood, make_user, "a", 1000, 10)
    _populate(make_neighborhood, make_user, "b", 600, 3)

    entries = services.leaderboard.get_leaderboard("all_time")

    assert [e.neighborhood_id for e in entries] == ["b", "a"]
    assert [e.rank for e in entries] == [1, 2]
    assert entries[0].normalized_points == pytest.approx(200.0)
    assert entries[1].normalized_points == pytest.approx(100.0)
    assert entries[1].points_earned == 1000
    assert entries[1].improvement_factor == 0.0


def test_rankings_are_persisted(services, make_neighborhood, make_user, store, clock):
    _populate(make_neighborhood, make_user, "a", 1000, 10)
    _populate(make_neighborhood, make_user, "b", 600, 3)

    services.leaderboard.get_leaderboard("all_time", limit=1)

    a, b = store.get_neighborhood("a"), store.get_neighborhood("b")
    assert (a.ranking_position, b.ranking_position) == (2, 1)
    assert a.normalized_points == pytest.approx(100.0)
    assert b.last_ranking_update == clock()


def test_empty_neighborhood_normalizes_to_zero_and_ties_keep_order(services, make_neighborhood):
    make_neighborhood("x", base_points=50)
    make_neighborhood("y", base_points=70)

    entries = services.leaderboard.get_leaderboard()

    assert [e.neighborhood_id for e in entries] == ["x", "y"]
    assert all(e.normalized_points == 0 and e.participation_rate == 0 for e in entries)


def test_limit_slices_after_ranking(services, make_neighborhood, make_user):
    for nid, base in (("a", 10), ("b", 30), ("c", 20)):
        _populate(make_neighborhood, make_user, nid, base, 1)

    entries = services.leaderboard.get_leaderboard("all_time", limit=2)

    assert [e.neighborhood_id for e in entries] == ["b", "c"]


@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limit_is_rejected(services, make_neighborhood, store, limit):
    make_neighborhood("a", base_points=10)

    with pytest.raises(ValidationError):
        services.leaderboard.get_leaderboard("all_time", limit=limit)
    assert store.get_neighborhood("a").ranking_position is None


def test_weekly_window_points_and_participation(services, make_neighborhood, make_user, store, clock):
    now = clock()
    make_neighborhood("a", base_points=500)
    make_user("a-1", neighborhood_id="a", last_activity_date=now - timedelta(days=1))
    make_user("a-2", neighborhood_id="a", last_activity_date=now - timedelta(days=10))
    make_user("a-3", neighborhood_id="a")
    _approved(store, "a", 30, now - timedelta(days=2))
    _approved(store, "a", 20, now - timedelta(days=6, hours=23))
    _approved(store, "a", 40, now - timedelta(days=9))
    _approved(store, "a", 99, now - timedelta(days=1), status=SubmissionStatus.REJECTED)
    _approved(store, "a", 77, now)  # window is half-open at now

    entry = services.leaderboard.get_leaderboard("weekly")[0]

    assert entry.points_earned == 50
    assert entry.active_users == 1
    assert entry.total_users == 3
    assert entry.participation_rate == 33.3
    assert entry.improvement_factor == 25.0


def test_improvement_factor_edges():
    assert improvement_factor(10, 0) == 100.0
    assert improvement_factor(0, 0) == 0.0
    assert improvement_factor(50, 100) == -50.0
    assert improvement_factor(150, 100) == 50.0


def test_period_windows():
    now = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)

    assert window_bounds("weekly", now) == (now - timedelta(days=7), now - timedelta(days=14))
    assert window_bounds("monthly", now) == (
        datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 29, 12, 0, tzinfo=timezone.utc),
    )
    assert window_bounds("annually", now)[0] == datetime(2023, 3, 31, 12, 0, tzinfo=timezone.utc)
    assert window_bounds("all_time", now)[1] is None
    with pytest.raises(InvalidPeriod):
        window_bounds("daily", now)


def test_refresh_failure_keeps_previous_rankings(engine, make_neighborhood, make_user, clock, sink):
    class FlakyStore(SqlStore):
        fail = False

        def count_users(self, neighborhood_id, **kwargs):
            if self.fail:
                raise RuntimeError("replica unavailable")
            return super().count_users(neighborhood_id, **kwargs)

    store = FlakyStore(engine)
    svc = build_services(store, clock=clock, notifier=sink)
    _populate(make_neighborhood, make_user, "a", 1000, 10)
    _populate(make_neighborhood, make_user, "b", 600, 3)

    ok = run_leaderboard_refresh(svc)
    assert ok.status == "ok"
    assert ok.counts["neighborhoods_ranked"] == 2

    store.fail = True
    clock.advance(hours=1)
    failed = run_leaderboard_refresh(svc)

    assert failed.status == "failed"
    assert "replica unavailable" in failed.errors[0]
    b = store.get_neighborhood("b")
    assert b.ranking_position == 1
    assert b.last_ranking_update == clock() - timedelta(hours=1)
