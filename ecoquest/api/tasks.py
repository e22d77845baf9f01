from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ecoquest.api.schemas import BadgeOut, SubmitResponse, TaskOut
from ecoquest.features.services import get_services
from ecoquest.features.submissions.service import SubmitResult

router = APIRouter()


class SubmitRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    proof: Optional[Dict[str, Any]] = None


def to_response(result: SubmitResult) -> SubmitResponse:
    return SubmitResponse(
        status=result.status.value,
        submission_id=result.submission_id,
        points_awarded=result.points_awarded,
        new_badges=[BadgeOut.from_badge(b) for b in result.new_badges],
        reason=result.reason,
        new_streak=result.new_streak,
        leveled_up=result.leveled_up,
    )


@router.post("/v1/tasks/{task_id}/submit", response_model=SubmitResponse)
def submit_task(task_id: str, body: SubmitRequest):
    """Submit proof for a task. REJECTED is a normal 200 response carrying the reason."""
    result = get_services().submissions.submit_proof(body.user_id, task_id, body.proof)
    return to_response(result)


@router.get("/v1/users/{user_id}/tasks")
def get_user_tasks(user_id: str):
    tasks = get_services().assignments.get_assigned_tasks(user_id)
    return {"tasks": [TaskOut.from_assigned(item) for item in tasks]}
