from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from ecoquest.api.schemas import SubmissionOut, SubmitResponse
from ecoquest.api.tasks import to_response
from ecoquest.features.services import get_services

router = APIRouter()


class ReviewRequest(BaseModel):
    verdict: str = Field(..., min_length=1)
    reviewer: Optional[str] = None
    reason: Optional[str] = None


@router.get("/v1/submissions")
def list_submissions(
    status: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    items = get_services().submissions.list_submissions(status=status, user_id=user_id, limit=limit)
    return {"submissions": [SubmissionOut.from_submission(s) for s in items]}


@router.post("/v1/submissions/{submission_id}/review", response_model=SubmitResponse)
def review_submission(submission_id: str, body: ReviewRequest):
    result = get_services().submissions.review_submission(
        submission_id, body.verdict.upper(), reviewer=body.reviewer, reason=body.reason
    )
    return to_response(result)
