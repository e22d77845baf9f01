"""Periodic leaderboard recomputation. A failed run keeps the previously persisted rankings."""
from __future__ import annotations

import logging
from typing import Optional

from ecoquest.features.services import Services, get_services
from ecoquest.models.job import JobResult
from ecoquest.workers.ledger import finish_job

logger = logging.getLogger("ecoquest.workers.leaderboard")

JOB_NAME = "leaderboard_refresh"


def run_leaderboard_refresh(services: Optional[Services] = None, period: str = "all_time") -> JobResult:
    svc = services or get_services()
    result = JobResult(job_name=JOB_NAME, started_at=svc.clock())
    try:
        entries = svc.leaderboard.get_leaderboard(period)
        result.counts["neighborhoods_ranked"] = len(entries)
    except Exception as exc:
        logger.error("[leaderboard] refresh aborted", exc_info=True, extra={"job_name": JOB_NAME, "period": period})
        result.status = "failed"
        result.errors.append(str(exc))
    return finish_job(svc.store, result, svc.clock())


if __name__ == "__main__":
    print(run_leaderboard_refresh().to_dict())
