"""
Daily streak-at-risk reminders.

Meant to run once a day around STREAK_REMINDER_HOUR_UTC: anyone whose last
activity fell on yesterday (UTC) still has today to keep their streak alive.
"""
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from ecoquest.core.clock import utc_day
from ecoquest.features.notifications.sink import STREAK_AT_RISK, safe_notify
from ecoquest.features.services import Services, get_services
from ecoquest.models.job import JobResult
from ecoquest.workers.ledger import finish_job

logger = logging.getLogger("ecoquest.workers.streaks")

JOB_NAME = "streak_reminders"


def run_streak_reminders(services: Optional[Services] = None) -> JobResult:
    svc = services or get_services()
    now = svc.clock()
    result = JobResult(job_name=JOB_NAME, started_at=now)

    today_start = datetime.combine(utc_day(now), time.min, tzinfo=timezone.utc)
    yesterday_start = today_start - timedelta(days=1)

    notified = 0
    try:
        for user in svc.store.list_users_last_active_between(yesterday_start, today_start):
            if user.streak <= 0:
                continue
            safe_notify(
                svc.notifier,
                user.user_id,
                STREAK_AT_RISK,
                {"streak": user.streak, "expires_at": (today_start + timedelta(days=1)).isoformat()},
            )
            notified += 1
    except Exception as exc:
        logger.error("[streaks] reminder run failed", exc_info=True, extra={"job_name": JOB_NAME})
        result.status = "failed"
        result.errors.append(str(exc))

    result.counts["notified"] = notified
    return finish_job(svc.store, result, svc.clock())


if __name__ == "__main__":
    print(run_streak_reminders().to_dict())
