"""
Submission intake and manual review.

submit_proof: lookups -> assignment / cooldown gate -> verification ->
(on APPROVED) atomic assignment claim -> scoring. Points are persisted only
after verification has fully succeeded and the claim was won, so two
concurrent submissions for the same assignment can never both score.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ecoquest.core.clock import Clock, utc_now
from ecoquest.core.config import settings
from ecoquest.core.errors import (
    AssignmentNotFound,
    SubmissionAlreadyProcessed,
    SubmissionNotFound,
    TaskOnCooldown,
    TaskOrUserNotFound,
    ValidationError,
)
from ecoquest.core.logging import log_event
from ecoquest.features.scoring.service import ScoringEngine
from ecoquest.features.store.base import Store
from ecoquest.features.verification.service import ProofVerifier
from ecoquest.models.assignment import Assignment
from ecoquest.models.badge import Badge
from ecoquest.models.submission import Submission, SubmissionStatus
from ecoquest.models.task import Task
from ecoquest.models.user import User

logger = logging.getLogger("ecoquest.submissions")

REVIEW_VERDICTS = (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED)


@dataclass
class SubmitResult:
    status: SubmissionStatus
    submission_id: str
    points_awarded: int = 0
    new_badges: List[Badge] = field(default_factory=list)
    reason: Optional[str] = None
    new_streak: Optional[int] = None
    leveled_up: bool = False


class SubmissionService:
    def __init__(
        self,
        store: Store,
        verifier: ProofVerifier,
        scoring: ScoringEngine,
        *,
        clock: Clock = utc_now,
        cooldown_minutes: Optional[int] = None,
    ):
        self._store = store
        self._verifier = verifier
        self._scoring = scoring
        self._clock = clock
        self._cooldown_minutes = (
            cooldown_minutes if cooldown_minutes is not None else settings.ON_DEMAND_COOLDOWN_MINUTES
        )

    def submit_proof(self, user_id: str, task_id: str, proof: Optional[Dict[str, Any]]) -> SubmitResult:
        user, task = self._load(user_id, task_id)
        now = self._clock()

        assignment: Optional[Assignment] = None
        if task.is_recurring:
            assignment = self._store.find_claimable_assignment(user_id, task_id, now)
            if assignment is None:
                raise AssignmentNotFound(f"No valid assignment of task {task_id} for user {user_id}")
        else:
            if not task.is_active:
                raise TaskOrUserNotFound(f"Task {task_id} not found")
            self._check_cooldown(user_id, task, now)

        verdict = self._verifier.verify(task, proof)
        submission = Submission(
            submission_id=str(uuid4()),
            user_id=user_id,
            task_id=task_id,
            status=verdict.status,
            proof=verdict.enriched_proof,
            neighborhood_id=user.neighborhood_id,
            assignment_id=assignment.assignment_id if assignment else None,
            submitted_at=now,
        )

        if verdict.status == SubmissionStatus.REJECTED:
            submission.rejection_reason = verdict.reason
            submission.completed_at = now
            self._store.insert_submission(submission)
            return SubmitResult(status=verdict.status, submission_id=submission.submission_id, reason=verdict.reason)

        if verdict.status == SubmissionStatus.PENDING:
            self._store.insert_submission(submission)
            log_event(
                "info",
                "submission.pending",
                user_id=user_id,
                task_id=task_id,
                event_type="submission.pending",
                extra={"submission_id": submission.submission_id},
                logger_name="ecoquest.submissions",
            )
            return SubmitResult(status=verdict.status, submission_id=submission.submission_id)

        if assignment is not None and not self._store.claim_assignment(assignment.assignment_id, now):
            raise AssignmentNotFound(f"Assignment {assignment.assignment_id} is no longer claimable")
        submission.completed_at = now
        self._store.insert_submission(submission)
        return self._score(submission, user, task)

    def review_submission(
        self,
        submission_id: str,
        verdict: str,
        reviewer: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> SubmitResult:
        """
        Operator verdict on a PENDING submission. Exactly one reviewer wins the
        PENDING -> verdict transition; an approval then goes through the same
        claim + scoring path as an automatic one.
        """
        try:
            status = SubmissionStatus(verdict)
        except ValueError:
            status = None
        if status not in REVIEW_VERDICTS:
            raise ValidationError(f"Verdict must be APPROVED or REJECTED, got {verdict!r}")

        submission = self._store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound(f"Submission {submission_id} not found")
        if submission.status != SubmissionStatus.PENDING:
            raise SubmissionAlreadyProcessed(f"Submission {submission_id} is already {submission.status.value}")
        user, task = self._load(submission.user_id, submission.task_id)

        now = self._clock()
        resolved = self._store.resolve_submission(
            submission_id,
            status,
            completed_at=now,
            reviewed_by=reviewer,
            rejection_reason=reason if status == SubmissionStatus.REJECTED else None,
        )
        if not resolved:
            raise SubmissionAlreadyProcessed(f"Submission {submission_id} was reviewed concurrently")

        log_event(
            "info",
            "submission.reviewed",
            user_id=submission.user_id,
            task_id=submission.task_id,
            event_type="submission.reviewed",
            extra={"submission_id": submission_id, "verdict": status.value, "reviewer": reviewer},
            logger_name="ecoquest.submissions",
        )
        if status == SubmissionStatus.REJECTED:
            return SubmitResult(status=status, submission_id=submission_id, reason=reason)

        if submission.assignment_id and not self._store.claim_assignment(submission.assignment_id, now):
            logger.warning(
                "review.assignment_unclaimable",
                extra={
                    "user_id": submission.user_id,
                    "task_id": submission.task_id,
                    "event_type": "review.assignment_unclaimable",
                    "assignment_id": submission.assignment_id,
                },
            )
            return SubmitResult(
                status=status,
                submission_id=submission_id,
                reason="Assignment already completed or expired; no points awarded",
            )
        return self._score(submission, user, task)

    def list_submissions(
        self,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Submission]:
        if status is not None:
            try:
                status = SubmissionStatus(status)
            except ValueError as exc:
                raise ValidationError(f"Unknown submission status {status!r}") from exc
        return self._store.list_submissions(status=status, user_id=user_id, limit=limit)

    def _load(self, user_id: str, task_id: str):
        user = self._store.get_user(user_id)
        if user is None or not user.is_active:
            raise TaskOrUserNotFound(f"User {user_id} not found")
        task = self._store.get_task(task_id)
        if task is None:
            raise TaskOrUserNotFound(f"Task {task_id} not found")
        if task.neighborhood_id and task.neighborhood_id != user.neighborhood_id:
            raise TaskOrUserNotFound(f"Task {task_id} is not available in the user's neighborhood")
        return user, task

    def _check_cooldown(self, user_id: str, task: Task, now: datetime) -> None:
        if self._cooldown_minutes <= 0:
            return
        last = self._store.last_approved_at(user_id, task.task_id)
        if last is None:
            return
        available_at = last + timedelta(minutes=self._cooldown_minutes)
        if now < available_at:
            raise TaskOnCooldown(
                f"Task {task.task_id} can be completed again at {available_at.isoformat()}",
                details={"available_at": available_at.isoformat()},
            )

    def _score(self, submission: Submission, user: User, task: Task) -> SubmitResult:
        award = self._scoring.award_points(user, task)
        self._store.set_submission_points(submission.submission_id, award.points_awarded)
        log_event(
            "info",
            "submission.approved",
            user_id=user.user_id,
            task_id=task.task_id,
            event_type="submission.approved",
            extra={"submission_id": submission.submission_id, "points": award.points_awarded},
            logger_name="ecoquest.submissions",
        )
        return SubmitResult(
            status=SubmissionStatus.APPROVED,
            submission_id=submission.submission_id,
            points_awarded=award.points_awarded,
            new_badges=award.new_badges,
            new_streak=award.new_streak,
            leveled_up=award.leveled_up,
        )
