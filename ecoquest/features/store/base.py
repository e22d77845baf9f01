"""
Persistent store protocol.

The engine is written against this interface only. Implementations must
provide atomic single-row conditional updates (the `claim_*`, `resolve_*`
and `expire_*` methods report whether they won) and simple filtered
aggregation.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ecoquest.models.assignment import Assignment
from ecoquest.models.badge import Badge
from ecoquest.models.neighborhood import Neighborhood
from ecoquest.models.submission import Submission, SubmissionStatus
from ecoquest.models.task import Frequency, Quiz, Task
from ecoquest.models.user import User


class Store(Protocol):
    # Users ----------------------------------------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    def insert_user(self, user: User) -> None:
        ...

    def apply_award(
        self,
        user_id: str,
        *,
        points: int,
        streak: int,
        last_activity_date: datetime,
        co2_saved: float,
        waste_recycled: float,
        km_green: float,
        category: str,
    ) -> Optional[User]:
        """
        Add `points`, the ambient deltas and one completion (overall and for
        `category`) to the user, set streak and last activity.

        Counters are incremented in the store, never written back from a
        snapshot. Returns the refreshed user, or None if it does not exist.
        """
        ...

    def set_user_level(self, user_id: str, level: str) -> None:
        ...

    def grant_badges(self, user_id: str, badge_ids: Sequence[str], awarded_at: datetime) -> List[str]:
        """Append badge grants; ids already held are skipped. Returns ids actually granted."""
        ...

    def count_users(
        self,
        neighborhood_id: str,
        *,
        active_since: Optional[datetime] = None,
    ) -> int:
        """Count active users of a neighborhood, optionally only those active since a given time."""
        ...

    def list_users_last_active_between(self, start: datetime, end: datetime) -> List[User]:
        ...

    # Neighborhoods ---------------------------------------------------
    def get_neighborhood(self, neighborhood_id: str) -> Optional[Neighborhood]:
        ...

    def insert_neighborhood(self, neighborhood: Neighborhood) -> None:
        ...

    def list_neighborhoods(self) -> List[Neighborhood]:
        ...

    def apply_neighborhood_delta(
        self,
        neighborhood_id: str,
        *,
        points: int,
        co2_saved: float,
        waste_recycled: float,
        km_green: float,
        now: datetime,
    ) -> bool:
        ...

    def set_normalized_points(self, neighborhood_id: str, normalized_points: float) -> None:
        ...

    def save_rankings(self, rankings: Sequence[Tuple[str, int, float]], now: datetime) -> None:
        """Persist (neighborhood_id, rank, normalized_points) rows all-or-nothing."""
        ...

    # Tasks -----------------------------------------------------------
    def get_task(self, task_id: str) -> Optional[Task]:
        ...

    def insert_task(self, task: Task) -> None:
        ...

    def count_eligible_tasks(self, frequency: Frequency, neighborhood_id: Optional[str]) -> int:
        ...

    def eligible_task_at(self, frequency: Frequency, neighborhood_id: Optional[str], offset: int) -> Optional[Task]:
        """The `offset`-th eligible task in a stable order (server-side skip)."""
        ...

    def list_on_demand_tasks(self, neighborhood_id: Optional[str]) -> List[Task]:
        ...

    def deactivate_expired_tasks(self, now: datetime) -> int:
        ...

    def list_rotation_candidates(self, now: datetime) -> List[Task]:
        ...

    def rotate_task(self, task_id: str, replacement: Task, now: datetime) -> bool:
        """Mark `task_id` rotated and insert `replacement` atomically; False if already rotated."""
        ...

    # Quizzes ---------------------------------------------------------
    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        ...

    def insert_quiz(self, quiz: Quiz) -> None:
        ...

    # Assignments -----------------------------------------------------
    def list_valid_assignments(self, user_id: str) -> List[Assignment]:
        """Assignments in ASSIGNED or COMPLETED status, expired or not."""
        ...

    def expire_assignments(self, now: datetime, user_id: Optional[str] = None) -> List[Assignment]:
        """Flip elapsed ASSIGNED/COMPLETED rows to EXPIRED. Returns the rows this call flipped."""
        ...

    def insert_assignment(self, assignment: Assignment) -> None:
        """Raises AssignmentConflict if the (user, frequency) slot is already live."""
        ...

    def find_claimable_assignment(self, user_id: str, task_id: str, now: datetime) -> Optional[Assignment]:
        ...

    def claim_assignment(self, assignment_id: str, now: datetime) -> bool:
        """Compare-and-swap ASSIGNED -> COMPLETED on a non-elapsed assignment."""
        ...

    # Submissions -----------------------------------------------------
    def insert_submission(self, submission: Submission) -> None:
        ...

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        ...

    def resolve_submission(
        self,
        submission_id: str,
        status: SubmissionStatus,
        *,
        completed_at: Optional[datetime],
        reviewed_by: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        """Compare-and-swap PENDING -> `status`."""
        ...

    def set_submission_points(self, submission_id: str, points_awarded: int) -> None:
        ...

    def list_submissions(
        self,
        *,
        status: Optional[SubmissionStatus] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Submission]:
        ...

    def sum_approved_points(self, neighborhood_id: str, start: datetime, end: datetime) -> int:
        """Sum of points_awarded for APPROVED submissions with completed_at in [start, end)."""
        ...

    def last_approved_at(self, user_id: str, task_id: str) -> Optional[datetime]:
        ...

    # Badges ----------------------------------------------------------
    def list_badges(self) -> List[Badge]:
        ...

    def upsert_badge(self, badge: Badge) -> bool:
        """Insert the badge unless one with the same name exists. Returns True if inserted."""
        ...

    # Jobs ------------------------------------------------------------
    def record_job_run(
        self,
        job_name: str,
        *,
        started_at: datetime,
        finished_at: datetime,
        status: str,
        stats: Dict[str, object],
    ) -> None:
        ...
