"""
Per-user assignment scheduler.

Each user holds at most one live assignment per recurring frequency. Gaps are
filled lazily whenever the user's task list is read, and by the hourly sweep.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from ecoquest.core.clock import Clock, add_months, end_of_utc_day, utc_now
from ecoquest.core.errors import AssignmentConflict, TaskOrUserNotFound
from ecoquest.features.notifications.sink import (
    TASK_AVAILABLE,
    NotificationSink,
    NullNotificationSink,
    safe_notify,
)
from ecoquest.features.store.base import Store
from ecoquest.models.assignment import AssignedTask, Assignment, AssignmentStatus
from ecoquest.models.task import RECURRING_FREQUENCIES, Frequency
from ecoquest.models.user import User

logger = logging.getLogger("ecoquest.assignments")

AVAILABLE = "AVAILABLE"


def compute_expiry(frequency: Frequency, now: datetime) -> datetime:
    frequency = Frequency(frequency)
    if frequency == Frequency.DAILY:
        return end_of_utc_day(now)
    if frequency == Frequency.WEEKLY:
        return now + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(now, 1)
    raise ValueError(f"{frequency.value} tasks are not assigned")


class AssignmentScheduler:
    def __init__(
        self,
        store: Store,
        *,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self._store = store
        self._clock = clock
        self._rng = rng or random.Random()
        self._notifier = notifier or NullNotificationSink()

    def get_assigned_tasks(self, user_id: str) -> List[AssignedTask]:
        """
        The user's current recurring assignments (expired ones swept first,
        empty slots refilled) followed by every eligible on_demand task.
        """
        user = self._store.get_user(user_id)
        if user is None:
            raise TaskOrUserNotFound(f"User {user_id} not found")

        now = self._clock()
        self._store.expire_assignments(now, user_id=user_id)
        live = self._fill_gaps(user, now)

        listed: List[AssignedTask] = []
        for frequency in RECURRING_FREQUENCIES:
            assignment = live.get(frequency)
            if assignment is None:
                continue
            task = self._store.get_task(assignment.task_id)
            if task is None:
                continue
            listed.append(
                AssignedTask(
                    task=task,
                    assignment_status=AssignmentStatus(assignment.status).value,
                    assignment_id=assignment.assignment_id,
                    expires_at=assignment.expires_at,
                )
            )
        listed.extend(AssignedTask(task=task, assignment_status=AVAILABLE) for task in self._store.list_on_demand_tasks(user.neighborhood_id))
        return listed

    def refill_user(self, user_id: str) -> int:
        """Fill empty slots for one user; returns how many assignments were created."""
        user = self._store.get_user(user_id)
        if user is None or not user.is_active:
            return 0
        before = {a.assignment_id for a in self._store.list_valid_assignments(user_id)}
        live = self._fill_gaps(user, self._clock())
        return sum(1 for a in live.values() if a.assignment_id not in before)

    def _fill_gaps(self, user: User, now: datetime) -> Dict[Frequency, Assignment]:
        live = {Frequency(a.frequency): a for a in self._store.list_valid_assignments(user.user_id)}
        for frequency in RECURRING_FREQUENCIES:
            if frequency in live:
                continue
            assignment = self._assign(user, frequency, now)
            if assignment is not None:
                live[frequency] = assignment
        return live

    def _assign(self, user: User, frequency: Frequency, now: datetime) -> Optional[Assignment]:
        # Uniform pick: count on the server, then skip to a random offset.
        count = self._store.count_eligible_tasks(frequency, user.neighborhood_id)
        if count == 0:
            return None
        task = self._store.eligible_task_at(frequency, user.neighborhood_id, self._rng.randrange(count))
        if task is None:
            return None

        assignment = Assignment(
            assignment_id=str(uuid4()),
            user_id=user.user_id,
            task_id=task.task_id,
            frequency=frequency,
            status=AssignmentStatus.ASSIGNED,
            assigned_at=now,
            expires_at=compute_expiry(frequency, now),
        )
        try:
            self._store.insert_assignment(assignment)
        except AssignmentConflict:
            # A concurrent reader filled the slot first; use theirs.
            return next(
                (a for a in self._store.list_valid_assignments(user.user_id) if Frequency(a.frequency) == frequency),
                None,
            )

        logger.info(
            "assignment.created",
            extra={
                "user_id": user.user_id,
                "task_id": task.task_id,
                "event_type": "assignment.created",
                "frequency": frequency.value,
            },
        )
        safe_notify(
            self._notifier,
            user.user_id,
            TASK_AVAILABLE,
            {"task_id": task.task_id, "title": task.title, "frequency": frequency.value, "expires_at": assignment.expires_at.isoformat()},
        )
        return assignment
