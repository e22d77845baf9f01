"""Response shapes shared by the routers."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from ecoquest.models.assignment import AssignedTask
from ecoquest.models.badge import Badge, BadgeStatus
from ecoquest.models.neighborhood import RankedEntry
from ecoquest.models.submission import Submission
from ecoquest.models.task import Task


class BadgeOut(BaseModel):
    badge_id: str
    name: str
    description: str = ""
    icon: str = ""
    category: str = ""
    rarity: str = "Common"
    earned: Optional[bool] = None

    @classmethod
    def from_badge(cls, badge: Badge, earned: Optional[bool] = None) -> "BadgeOut":
        return cls(
            badge_id=badge.badge_id,
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            category=badge.category,
            rarity=badge.rarity,
            earned=earned,
        )

    @classmethod
    def from_status(cls, status: BadgeStatus) -> "BadgeOut":
        return cls.from_badge(status.badge, status.earned)


class TaskOut(BaseModel):
    task_id: str
    title: str
    description: str = ""
    category: str
    base_points: int
    verification_method: str
    frequency: str
    neighborhood_id: Optional[str] = None
    target_location: Optional[Tuple[float, float]] = None
    quiz_id: Optional[str] = None
    assignment_status: str
    assignment_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_assigned(cls, item: AssignedTask) -> "TaskOut":
        task: Task = item.task
        # The QR secret never leaves the server.
        return cls(
            task_id=task.task_id,
            title=task.title,
            description=task.description,
            category=task.category,
            base_points=task.base_points,
            verification_method=task.verification_method.value,
            frequency=task.frequency.value,
            neighborhood_id=task.neighborhood_id,
            target_location=task.verification_criteria.target_location,
            quiz_id=task.verification_criteria.quiz_id,
            assignment_status=item.assignment_status,
            assignment_id=item.assignment_id,
            expires_at=item.expires_at,
        )


class EnvironmentalOut(BaseModel):
    co2_saved: float
    waste_recycled: float
    km_green: float


class LeaderboardEntryOut(BaseModel):
    rank: int
    neighborhood_id: str
    name: str
    city: str
    base_points: int
    normalized_points: float
    points_earned: int
    active_users: int
    total_users: int
    participation_rate: float
    improvement_factor: float
    environmental_data: EnvironmentalOut

    @classmethod
    def from_entry(cls, entry: RankedEntry) -> "LeaderboardEntryOut":
        env = entry.environmental_data
        return cls(
            rank=entry.rank,
            neighborhood_id=entry.neighborhood_id,
            name=entry.name,
            city=entry.city,
            base_points=entry.base_points,
            normalized_points=entry.normalized_points,
            points_earned=entry.points_earned,
            active_users=entry.active_users,
            total_users=entry.total_users,
            participation_rate=entry.participation_rate,
            improvement_factor=entry.improvement_factor,
            environmental_data=EnvironmentalOut(
                co2_saved=env.co2_saved, waste_recycled=env.waste_recycled, km_green=env.km_green
            ),
        )


class SubmissionOut(BaseModel):
    submission_id: str
    user_id: str
    task_id: str
    status: str
    points_awarded: int
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    proof: Dict[str, Any] = {}

    @classmethod
    def from_submission(cls, submission: Submission) -> "SubmissionOut":
        return cls(
            submission_id=submission.submission_id,
            user_id=submission.user_id,
            task_id=submission.task_id,
            status=submission.status.value,
            points_awarded=submission.points_awarded,
            rejection_reason=submission.rejection_reason,
            submitted_at=submission.submitted_at,
            completed_at=submission.completed_at,
            reviewed_by=submission.reviewed_by,
            proof=submission.proof,
        )


class SubmitResponse(BaseModel):
    status: str
    submission_id: str
    points_awarded: int = 0
    new_badges: List[BadgeOut] = []
    reason: Optional[str] = None
    new_streak: Optional[int] = None
    leveled_up: bool = False
