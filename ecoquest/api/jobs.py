"""Manual triggers for the periodic jobs (the same entry points cron calls)."""
from __future__ import annotations

from fastapi import APIRouter, Query

from ecoquest.features.services import get_services
from ecoquest.workers.leaderboard_refresh import run_leaderboard_refresh
from ecoquest.workers.rotation import run_hourly_rotation

router = APIRouter()


@router.post("/v1/jobs/rotation")
def trigger_rotation():
    return run_hourly_rotation(get_services()).to_dict()


@router.post("/v1/jobs/leaderboard")
def trigger_leaderboard_refresh(period: str = Query("all_time")):
    return run_leaderboard_refresh(get_services(), period=period).to_dict()
