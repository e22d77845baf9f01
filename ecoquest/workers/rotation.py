"""Hourly catalog rotation and assignment sweep. Invoked by an external scheduler (cron or equivalent)."""
from __future__ import annotations

import logging
from typing import Optional

from ecoquest.features.assignments.rotation import JOB_NAME
from ecoquest.features.services import Services, get_services
from ecoquest.models.job import JobResult
from ecoquest.workers.ledger import finish_job

logger = logging.getLogger("ecoquest.workers.rotation")


def run_hourly_rotation(services: Optional[Services] = None) -> JobResult:
    svc = services or get_services()
    started_at = svc.clock()
    try:
        result = svc.rotation.run(started_at)
    except Exception as exc:
        logger.error("[rotation] run failed", exc_info=True, extra={"job_name": JOB_NAME})
        result = JobResult(job_name=JOB_NAME, started_at=started_at, status="failed", errors=[str(exc)])
    return finish_job(svc.store, result, svc.clock())


if __name__ == "__main__":
    print(run_hourly_rotation().to_dict())
