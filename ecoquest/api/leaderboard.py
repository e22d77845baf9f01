from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from ecoquest.api.schemas import LeaderboardEntryOut
from ecoquest.core.config import settings
from ecoquest.features.services import get_services

router = APIRouter()


@router.get("/v1/leaderboard")
def get_leaderboard(
    period: str = Query("all_time"),
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    entries = get_services().leaderboard.get_leaderboard(period, limit or settings.LEADERBOARD_DEFAULT_LIMIT)
    return {"period": period, "entries": [LeaderboardEntryOut.from_entry(e) for e in entries]}
