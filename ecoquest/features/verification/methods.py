"""
Per-method proof evaluators.

Each evaluator judges `proof` against the task's criteria and returns the
resulting status. Deterministic failed checks raise `VerificationRejected`
subclasses; malformed input raises `VerificationInputInvalid`. Audit fields
(distance, quiz score) are written into `enriched`, a copy of the proof.
"""
from __future__ import annotations

import hmac
from numbers import Real
from typing import Any, Callable, Dict, Optional, Sequence

from ecoquest.core.errors import (
    GpsOutOfRange,
    IncompleteQuizAnswers,
    MissingPhotoProof,
    QrCodeMismatch,
    QuizBelowThreshold,
    QuizMisconfigured,
    QuizNotFound,
    VerificationInputInvalid,
    VerificationRejected,
)
from ecoquest.features.verification.geo import haversine
from ecoquest.models.submission import SubmissionStatus
from ecoquest.models.task import Quiz, Task

QuizLoader = Callable[[str], Optional[Quiz]]


def _first_present(proof: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if proof.get(key) is not None:
            return proof[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _as_coordinates(value: Any, field: str) -> Sequence[float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2 or not all(_is_number(v) for v in value):
        raise VerificationInputInvalid(f"{field} must be a [lat, lon] pair")
    return value


def verify_gps(task: Task, proof: Dict[str, Any], enriched: Dict[str, Any], *, default_radius: float) -> SubmissionStatus:
    criteria = task.verification_criteria
    target = criteria.target_location
    location = _first_present(proof, "location", "gps_location")
    if not target or location is None:
        raise VerificationRejected("Missing GPS location data", code="gps_location_missing")

    distance = haversine(_as_coordinates(target, "target_location"), _as_coordinates(location, "location"))
    limit = criteria.min_distance_meters or default_radius
    enriched["distance_meters"] = round(distance, 2)
    if distance > limit:
        raise GpsOutOfRange(distance, limit)
    return SubmissionStatus.APPROVED


def verify_qr(task: Task, proof: Dict[str, Any], enriched: Dict[str, Any]) -> SubmissionStatus:
    secret = task.verification_criteria.qr_code_secret
    scanned = proof.get("qr_code_data")
    if not isinstance(secret, str) or not isinstance(scanned, str):
        raise QrCodeMismatch("Invalid QR Code")
    if not hmac.compare_digest(scanned.encode("utf-8"), secret.encode("utf-8")):
        raise QrCodeMismatch("Invalid QR Code")
    return SubmissionStatus.APPROVED


def verify_quiz(
    task: Task,
    proof: Dict[str, Any],
    enriched: Dict[str, Any],
    *,
    quiz_loader: QuizLoader,
    default_passing_score: float,
) -> SubmissionStatus:
    quiz_id = task.verification_criteria.quiz_id
    if not quiz_id:
        raise QuizMisconfigured(f"Task {task.task_id} has no quiz configured")
    quiz = quiz_loader(quiz_id)
    if quiz is None:
        raise QuizNotFound(f"Quiz {quiz_id} not found")
    if not quiz.questions:
        raise QuizMisconfigured(f"Quiz {quiz_id} has no questions")

    answers = _first_present(proof, "answers", "quiz_answers")
    if (
        not isinstance(answers, list)
        or len(answers) != len(quiz.questions)
        or not all(isinstance(a, int) and not isinstance(a, bool) for a in answers)
    ):
        raise IncompleteQuizAnswers("Incomplete or missing quiz answers")

    correct = sum(
        1 for answer, question in zip(answers, quiz.questions) if answer == question.correct_option_index
    )
    score = correct / len(quiz.questions)
    passing_score = quiz.passing_score if quiz.passing_score is not None else default_passing_score
    enriched["quiz_score"] = score
    if score < passing_score:
        raise QuizBelowThreshold(score, passing_score)
    return SubmissionStatus.APPROVED


def verify_photo(task: Task, proof: Dict[str, Any], enriched: Dict[str, Any]) -> SubmissionStatus:
    photo_url = proof.get("photo_url")
    if not isinstance(photo_url, str) or not photo_url.strip():
        raise MissingPhotoProof("Photo proof required")
    # Operator review decides.
    return SubmissionStatus.PENDING


def verify_manual(task: Task, proof: Dict[str, Any], enriched: Dict[str, Any]) -> SubmissionStatus:
    return SubmissionStatus.PENDING
