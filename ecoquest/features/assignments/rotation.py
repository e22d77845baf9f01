"""
Hourly catalog rotation.

Runs may overlap (a slow run plus the next tick), so every mutation is keyed on
the row's current state: deactivation only touches still-active expired rows,
and a definition is cloned only by the run that wins its rotated_at claim,
in the same transaction as the claim.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from ecoquest.core.clock import Clock, add_months, utc_now
from ecoquest.features.assignments.service import AssignmentScheduler
from ecoquest.features.store.base import Store
from ecoquest.models.job import JobResult
from ecoquest.models.task import Frequency, Task

logger = logging.getLogger("ecoquest.rotation")

JOB_NAME = "hourly_rotation"


def next_task_expiry(frequency: Frequency, now: datetime) -> datetime:
    frequency = Frequency(frequency)
    if frequency == Frequency.DAILY:
        return now + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return now + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(now, 1)
    raise ValueError(f"{frequency.value} tasks do not rotate")


def clone_for_rotation(task: Task, now: datetime) -> Task:
    return replace(
        task,
        task_id=str(uuid4()),
        is_active=True,
        expires_at=next_task_expiry(task.frequency, now),
        rotated_at=None,
        rotated_from=task.task_id,
        created_at=now,
    )


class CatalogRotation:
    def __init__(self, store: Store, scheduler: AssignmentScheduler, *, clock: Clock = utc_now):
        self._store = store
        self._scheduler = scheduler
        self._clock = clock

    def run(self, now: Optional[datetime] = None) -> JobResult:
        now = now or self._clock()
        result = JobResult(job_name=JOB_NAME, started_at=now)
        counts = result.counts

        counts["deactivated"] = self._store.deactivate_expired_tasks(now)

        counts["rotated"] = 0
        for task in self._store.list_rotation_candidates(now):
            try:
                if self._store.rotate_task(task.task_id, clone_for_rotation(task, now), now):
                    counts["rotated"] += 1
            except Exception as exc:
                logger.error(
                    "rotation.task_failed",
                    exc_info=True,
                    extra={"task_id": task.task_id, "event_type": "rotation.task_failed"},
                )
                result.errors.append(f"task {task.task_id}: {exc}")

        expired = self._store.expire_assignments(now)
        counts["assignments_expired"] = len(expired)
        counts["assignments_created"] = 0
        for user_id in sorted({a.user_id for a in expired}):
            try:
                counts["assignments_created"] += self._scheduler.refill_user(user_id)
            except Exception as exc:
                logger.error(
                    "rotation.refill_failed",
                    exc_info=True,
                    extra={"user_id": user_id, "event_type": "rotation.refill_failed"},
                )
                result.errors.append(f"user {user_id}: {exc}")

        result.status = "partial" if result.errors else "ok"
        return result
