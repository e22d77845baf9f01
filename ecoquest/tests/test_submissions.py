from datetime import timedelta

import math
import pytest

from ecoquest.core.database import badges
from ecoquest.core.errors import (
    AssignmentNotFound,
    QuizNotFound,
    SubmissionAlreadyProcessed,
    SubmissionNotFound,
    TaskOnCooldown,
    TaskOrUserNotFound,
    ValidationError,
)
from ecoquest.features.services import build_services
from ecoquest.features.verification.geo import EARTH_RADIUS_METERS
from ecoquest.models.assignment import AssignmentStatus
from ecoquest.models.submission import SubmissionStatus
from ecoquest.models.task import Frequency, VerificationCriteria, VerificationMethod


def _near_origin(meters=20):
    return [math.degrees(meters / EARTH_RADIUS_METERS), 0.0]


def test_end_to_end_gps_approval(services, badge_catalog, make_user, gps_task, clock, store):
    make_user("u1", streak=8, last_activity_date=clock() - timedelta(hours=1))

    result = services.submissions.submit_proof("u1", gps_task.task_id, {"location": _near_origin()})

    assert result.status == SubmissionStatus.APPROVED
    assert result.points_awarded == 125
    assert result.new_streak == 8
    assert {b.badge_id for b in result.new_badges} >= {"points-100", "tasks-1"}

    user = store.get_user("u1")
    assert user.points == 125
    assert user.ambient.co2_saved == pytest.approx(2.5)
    assert user.ambient.km_green == pytest.approx(8.0)
    assert {"points-100", "tasks-1"} <= user.badges

    (submission,) = services.submissions.list_submissions(user_id="u1")
    assert submission.status == SubmissionStatus.APPROVED
    assert submission.points_awarded == 125
    assert submission.completed_at == clock()
    assert submission.proof["distance_meters"] == pytest.approx(20, abs=0.01)


def test_failed_check_is_recorded_without_points(services, make_user, gps_task, store):
    make_user("u1")

    result = services.submissions.submit_proof("u1", gps_task.task_id, {"location": _near_origin(500)})

    assert result.status == SubmissionStatus.REJECTED
    assert "exceeds limit" in result.reason
    assert store.get_user("u1").points == 0
    (submission,) = store.list_submissions(status=SubmissionStatus.REJECTED)
    assert submission.rejection_reason == result.reason
    assert submission.proof["rejection"]["code"] == "gps_out_of_range"


def test_lookup_errors(services, make_user, make_task, gps_task):
    make_user("u1", neighborhood_id="home")
    make_task("theirs", neighborhood_id="other")
    make_task("retired", is_active=False)

    with pytest.raises(TaskOrUserNotFound):
        services.submissions.submit_proof("ghost", gps_task.task_id, {})
    with pytest.raises(TaskOrUserNotFound):
        services.submissions.submit_proof("u1", "missing", {})
    with pytest.raises(TaskOrUserNotFound):
        services.submissions.submit_proof("u1", "theirs", {})
    with pytest.raises(TaskOrUserNotFound):
        services.submissions.submit_proof("u1", "retired", {})


def test_quiz_lookup_failure_persists_nothing(services, make_user, make_task, store):
    make_user("u1")
    make_task("quiz-task", verification_method=VerificationMethod.QUIZ, verification_criteria=VerificationCriteria(quiz_id="gone"))

    with pytest.raises(QuizNotFound):
        services.submissions.submit_proof("u1", "quiz-task", {"answers": [0]})
    assert store.list_submissions() == []


def test_quiz_submission_through_store(services, make_user, make_task, make_quiz):
    make_user("u1")
    make_quiz("q1", correct=(0, 1), passing_score=0.5)
    make_task("quiz-task", base_points=30, verification_method=VerificationMethod.QUIZ, verification_criteria=VerificationCriteria(quiz_id="q1"))

    result = services.submissions.submit_proof("u1", "quiz-task", {"answers": [0, 2]})

    assert result.status == SubmissionStatus.APPROVED
    assert result.points_awarded == 30


def _daily_qr(make_task):
    return make_task(
        "daily-qr",
        base_points=50,
        frequency=Frequency.DAILY,
        verification_method=VerificationMethod.QR_SCAN,
        verification_criteria=VerificationCriteria(qr_code_secret="BIN-7"),
    )


def test_recurring_task_requires_assignment(services, make_user, make_task):
    _daily_qr(make_task)
    make_user("u1")

    with pytest.raises(AssignmentNotFound):
        services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "BIN-7"})


def test_assignment_is_claimed_exactly_once(services, make_user, make_task, store):
    _daily_qr(make_task)
    make_user("u1")
    (item,) = services.assignments.get_assigned_tasks("u1")

    first = services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "BIN-7"})
    with pytest.raises(AssignmentNotFound):
        services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "BIN-7"})

    assert first.points_awarded == 50
    assert store.get_user("u1").points == 50
    (live,) = store.list_valid_assignments("u1")
    assert live.assignment_id == item.assignment_id
    assert live.status == AssignmentStatus.COMPLETED


def test_concurrent_submission_loses_claim_and_scores_nothing(services, make_user, make_task, store, clock, monkeypatch):
    _daily_qr(make_task)
    make_user("u1")
    services.assignments.get_assigned_tasks("u1")
    stale = store.find_claimable_assignment("u1", "daily-qr", clock())

    # The other request wins the claim between our lookup and our claim.
    assert store.claim_assignment(stale.assignment_id, clock())
    monkeypatch.setattr(store, "find_claimable_assignment", lambda *args: stale)

    with pytest.raises(AssignmentNotFound):
        services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "BIN-7"})
    assert store.get_user("u1").points == 0
    assert store.list_submissions() == []


def test_rejected_recurring_submission_keeps_assignment_open(services, make_user, make_task, store):
    _daily_qr(make_task)
    make_user("u1")
    services.assignments.get_assigned_tasks("u1")

    rejected = services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "nope"})
    approved = services.submissions.submit_proof("u1", "daily-qr", {"qr_code_data": "BIN-7"})

    assert rejected.status == SubmissionStatus.REJECTED
    assert approved.status == SubmissionStatus.APPROVED


def _photo_daily(make_task):
    return make_task(
        "daily-photo",
        base_points=80,
        frequency=Frequency.DAILY,
        verification_method=VerificationMethod.PHOTO_UPLOAD,
    )


def test_photo_review_approval_scores_and_claims(services, make_user, make_task, store):
    _photo_daily(make_task)
    make_user("u1")
    services.assignments.get_assigned_tasks("u1")

    pending = services.submissions.submit_proof("u1", "daily-photo", {"photo_url": "https://cdn/p.jpg"})
    assert pending.status == SubmissionStatus.PENDING
    assert store.list_valid_assignments("u1")[0].status == AssignmentStatus.ASSIGNED
    assert [s.submission_id for s in services.submissions.list_submissions(status="PENDING")] == [pending.submission_id]

    reviewed = services.submissions.review_submission(pending.submission_id, "APPROVED", reviewer="ops")

    assert reviewed.points_awarded == 80
    assert store.get_user("u1").points == 80
    assert store.list_valid_assignments("u1")[0].status == AssignmentStatus.COMPLETED
    stored = store.get_submission(pending.submission_id)
    assert stored.status == SubmissionStatus.APPROVED
    assert stored.reviewed_by == "ops"
    assert stored.points_awarded == 80

    with pytest.raises(SubmissionAlreadyProcessed):
        services.submissions.review_submission(pending.submission_id, "REJECTED")


def test_second_pending_for_same_assignment_scores_nothing(services, make_user, make_task, store):
    _photo_daily(make_task)
    make_user("u1")
    services.assignments.get_assigned_tasks("u1")
    one = services.submissions.submit_proof("u1", "daily-photo", {"photo_url": "https://cdn/1.jpg"})
    two = services.submissions.submit_proof("u1", "daily-photo", {"photo_url": "https://cdn/2.jpg"})

    services.submissions.review_submission(one.submission_id, "APPROVED")
    duplicate = services.submissions.review_submission(two.submission_id, "APPROVED")

    assert duplicate.points_awarded == 0
    assert duplicate.reason
    assert store.get_user("u1").points == 80


def test_review_rejection_and_validation(services, make_user, make_task, store):
    make_task("report", verification_method=VerificationMethod.MANUAL_REPORT)
    make_user("u1")
    pending = services.submissions.submit_proof("u1", "report", {"note": "cleaned the park"})

    with pytest.raises(ValidationError):
        services.submissions.review_submission(pending.submission_id, "MAYBE")
    with pytest.raises(ValidationError):
        services.submissions.review_submission(pending.submission_id, "PENDING")
    with pytest.raises(SubmissionNotFound):
        services.submissions.review_submission("missing", "APPROVED")

    result = services.submissions.review_submission(pending.submission_id, "REJECTED", reason="no evidence")

    assert result.status == SubmissionStatus.REJECTED
    assert store.get_submission(pending.submission_id).rejection_reason == "no evidence"
    assert store.get_user("u1").points == 0


def test_on_demand_is_repeatable_by_default(services, make_user, gps_task, store):
    make_user("u1")
    for _ in range(2):
        services.submissions.submit_proof("u1", gps_task.task_id, {"location": _near_origin()})
    assert store.get_user("u1").points == 200


def test_on_demand_cooldown(store, clock, sink, make_user, gps_task):
    svc = build_services(store, clock=clock, notifier=sink, cooldown_minutes=60)
    make_user("u1")
    proof = {"location": _near_origin()}

    svc.submissions.submit_proof("u1", gps_task.task_id, proof)
    clock.advance(minutes=30)
    with pytest.raises(TaskOnCooldown):
        svc.submissions.submit_proof("u1", gps_task.task_id, proof)
    clock.advance(minutes=31)
    assert svc.submissions.submit_proof("u1", gps_task.task_id, proof).status == SubmissionStatus.APPROVED


def test_list_submissions_rejects_unknown_status(services):
    with pytest.raises(ValidationError):
        services.submissions.list_submissions(status="DONE")


def test_unreadable_badge_row_does_not_break_approval(services, engine, make_neighborhood, make_user, gps_task, store):
    make_neighborhood("n1")
    make_user("u1", neighborhood_id="n1")
    with engine.begin() as conn:
        conn.execute(badges.insert().values(badge_id="legacy", name="Legacy", requirements={"min_level": 3}))

    result = services.submissions.submit_proof("u1", gps_task.task_id, {"location": _near_origin()})

    assert result.status == SubmissionStatus.APPROVED
    assert result.points_awarded == 100
    assert store.get_user("u1").points == 100
    assert store.get_neighborhood("n1").base_points == 100
    (submission,) = store.list_submissions(user_id="u1")
    assert submission.points_awarded == 100


def test_neighborhood_failure_keeps_award_consistent(services, make_neighborhood, make_user, gps_task, store, monkeypatch):
    make_neighborhood("n1")
    make_user("u1", neighborhood_id="n1")

    def broken_record_award(*args, **kwargs):
        raise RuntimeError("neighborhood write failed")

    monkeypatch.setattr(services.leaderboard, "record_award", broken_record_award)

    result = services.submissions.submit_proof("u1", gps_task.task_id, {"location": _near_origin()})

    assert result.status == SubmissionStatus.APPROVED
    assert result.points_awarded == 100
    assert store.get_user("u1").points == 100
    (submission,) = store.list_submissions(user_id="u1")
    assert submission.points_awarded == 100
