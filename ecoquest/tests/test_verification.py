import math

import pytest

from ecoquest.core.errors import (
    IncompleteQuizAnswers,
    MissingPhotoProof,
    QuizBelowThreshold,
    QuizMisconfigured,
    QuizNotFound,
    VerificationInputInvalid,
)
from ecoquest.features.verification.geo import EARTH_RADIUS_METERS, haversine
from ecoquest.features.verification.service import ProofVerifier
from ecoquest.models.submission import SubmissionStatus
from ecoquest.models.task import Quiz, QuizQuestion, Task, VerificationCriteria, VerificationMethod


def north_of_origin(meters):
    return [math.degrees(meters / EARTH_RADIUS_METERS), 0.0]


def _task(method, **criteria):
    return Task(
        task_id="t1",
        title="Task",
        category="Mobility",
        base_points=10,
        verification_method=method,
        verification_criteria=VerificationCriteria(**criteria),
    )


def _verifier(quizzes=None, **kwargs):
    quizzes = quizzes or {}
    return ProofVerifier(quizzes.get, **kwargs)


def _quiz(passing_score=0.5):
    return Quiz(
        quiz_id="q1",
        title="Basics",
        passing_score=passing_score,
        questions=[
            QuizQuestion(text="Which bin?", options=["glass", "paper"], correct_option_index=0),
            QuizQuestion(text="Compost?", options=["yes", "no"], correct_option_index=1),
        ],
    )


def test_haversine_one_degree_of_latitude():
    assert haversine((0, 0), (1, 0)) == pytest.approx(111_194.9, rel=1e-4)
    assert haversine((45.0, 7.0), (45.0, 7.0)) == 0


def test_gps_boundary_is_monotonic_around_radius():
    verifier = _verifier()
    task = _task(VerificationMethod.GPS, target_location=(0.0, 0.0), min_distance_meters=100)

    inside = verifier.verify(task, {"location": north_of_origin(99)})
    outside = verifier.verify(task, {"location": north_of_origin(101)})

    assert inside.status == SubmissionStatus.APPROVED
    assert inside.enriched_proof["distance_meters"] == pytest.approx(99, abs=0.01)
    assert outside.status == SubmissionStatus.REJECTED
    assert outside.rejection.code == "gps_out_of_range"
    assert "exceeds limit 100m" in outside.reason


def test_gps_uses_default_radius_when_unset():
    verifier = _verifier(default_radius_meters=100)
    task = _task(VerificationMethod.GPS, target_location=(0.0, 0.0))

    assert verifier.verify(task, {"gps_location": north_of_origin(50)}).status == SubmissionStatus.APPROVED
    assert verifier.verify(task, {"gps_location": north_of_origin(150)}).status == SubmissionStatus.REJECTED


def test_gps_missing_location_is_rejection_not_error():
    verifier = _verifier()
    with_target = _task(VerificationMethod.GPS, target_location=(0.0, 0.0))
    without_target = _task(VerificationMethod.GPS)

    missing_proof = verifier.verify(with_target, {})
    missing_target = verifier.verify(without_target, {"location": [0.0, 0.0]})

    assert missing_proof.status == SubmissionStatus.REJECTED
    assert missing_proof.rejection.code == "gps_location_missing"
    assert missing_target.status == SubmissionStatus.REJECTED


def test_gps_malformed_location_raises_input_error():
    verifier = _verifier()
    task = _task(VerificationMethod.GPS, target_location=(0.0, 0.0))
    with pytest.raises(VerificationInputInvalid):
        verifier.verify(task, {"location": ["north", 0]})


def test_qr_requires_exact_match():
    verifier = _verifier()
    task = _task(VerificationMethod.QR_SCAN, qr_code_secret="PARK-42")

    assert verifier.verify(task, {"qr_code_data": "PARK-42"}).status == SubmissionStatus.APPROVED
    assert verifier.verify(task, {"qr_code_data": "park-42"}).status == SubmissionStatus.REJECTED
    assert verifier.verify(task, {"qr_code_data": "PARK-42 "}).status == SubmissionStatus.REJECTED
    rejected = verifier.verify(task, {})
    assert rejected.status == SubmissionStatus.REJECTED
    assert rejected.reason == "Invalid QR Code"


def test_quiz_passing_boundary_is_inclusive():
    verifier = _verifier({"q1": _quiz(passing_score=0.5)})
    task = _task(VerificationMethod.QUIZ, quiz_id="q1")

    result = verifier.verify(task, {"answers": [0, 0]})

    assert result.status == SubmissionStatus.APPROVED
    assert result.enriched_proof["quiz_score"] == 0.5


def test_quiz_below_threshold_reports_score():
    verifier = _verifier({"q1": _quiz(passing_score=0.8)})
    task = _task(VerificationMethod.QUIZ, quiz_id="q1")

    result = verifier.verify(task, {"quiz_answers": [0, 0]})

    assert result.status == SubmissionStatus.REJECTED
    assert isinstance(result.rejection, QuizBelowThreshold)
    assert result.reason == "Quiz score 50% is below passing score 80%"
    assert result.enriched_proof["rejection"]["score"] == 0.5


def test_quiz_default_passing_score_applies():
    verifier = _verifier({"q1": _quiz(passing_score=None)}, default_passing_score=0.8)
    task = _task(VerificationMethod.QUIZ, quiz_id="q1")

    assert verifier.verify(task, {"answers": [0, 1]}).status == SubmissionStatus.APPROVED
    assert verifier.verify(task, {"answers": [0, 0]}).status == SubmissionStatus.REJECTED


@pytest.mark.parametrize("answers", [None, [0], [0, 1, 1], ["0", "1"], [True, False]])
def test_quiz_incomplete_answers_raise(answers):
    verifier = _verifier({"q1": _quiz()})
    task = _task(VerificationMethod.QUIZ, quiz_id="q1")
    with pytest.raises(IncompleteQuizAnswers):
        verifier.verify(task, {"answers": answers})


def test_quiz_lookup_errors():
    verifier = _verifier({"empty": Quiz(quiz_id="empty", title="Empty", questions=[])})

    with pytest.raises(QuizMisconfigured):
        verifier.verify(_task(VerificationMethod.QUIZ), {"answers": []})
    with pytest.raises(QuizNotFound):
        verifier.verify(_task(VerificationMethod.QUIZ, quiz_id="missing"), {"answers": []})
    with pytest.raises(QuizMisconfigured):
        verifier.verify(_task(VerificationMethod.QUIZ, quiz_id="empty"), {"answers": []})


def test_photo_and_manual_defer_to_review():
    verifier = _verifier()

    photo = verifier.verify(_task(VerificationMethod.PHOTO_UPLOAD), {"photo_url": "https://cdn/x.jpg"})
    manual = verifier.verify(_task(VerificationMethod.MANUAL_REPORT), None)

    assert photo.status == SubmissionStatus.PENDING
    assert manual.status == SubmissionStatus.PENDING
    with pytest.raises(MissingPhotoProof):
        verifier.verify(_task(VerificationMethod.PHOTO_UPLOAD), {"photo_url": "  "})


def test_non_object_proof_is_invalid():
    with pytest.raises(VerificationInputInvalid):
        _verifier().verify(_task(VerificationMethod.MANUAL_REPORT), ["not", "a", "dict"])
