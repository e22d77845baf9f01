"""Shared bookkeeping for periodic jobs: stamp the finish time and write the job_runs row."""
from __future__ import annotations

import logging

from ecoquest.features.store.base import Store
from ecoquest.models.job import JobResult

logger = logging.getLogger("ecoquest.jobs")


def finish_job(store: Store, result: JobResult, finished_at) -> JobResult:
    result.finished_at = finished_at
    try:
        store.record_job_run(
            result.job_name,
            started_at=result.started_at,
            finished_at=finished_at,
            status=result.status,
            stats={"counts": result.counts, "errors": result.errors},
        )
    except Exception:
        logger.error("job.ledger_write_failed", exc_info=True, extra={"job_name": result.job_name})
    logger.info(
        "[job] %s finished",
        result.job_name,
        extra={"job_name": result.job_name, "status": result.status, "counts": result.counts, "errors": len(result.errors)},
    )
    return result
