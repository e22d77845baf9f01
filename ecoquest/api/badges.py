from __future__ import annotations

from fastapi import APIRouter

from ecoquest.api.schemas import BadgeOut
from ecoquest.features.services import get_services

router = APIRouter()


@router.get("/v1/users/{user_id}/badges")
def get_user_badges(user_id: str):
    statuses = get_services().badges.get_user_badges(user_id)
    return {"badges": [BadgeOut.from_status(s) for s in statuses]}
