"""Error taxonomy and FastAPI handlers."""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ecoquest.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details or {}
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


# Verification -------------------------------------------------------

class VerificationRejected(AppError):
    """A deterministic check failed. Surfaced as a REJECTED result, not raised to callers."""
    code = "verification_rejected"
    status_code = 422


class GpsOutOfRange(VerificationRejected):
    code = "gps_out_of_range"

    def __init__(self, distance_meters: float, limit_meters: float):
        super().__init__(
            f"Distance {round(distance_meters)}m exceeds limit {round(limit_meters)}m",
            details={"distance_meters": distance_meters, "limit_meters": limit_meters},
        )
        self.distance_meters = distance_meters
        self.limit_meters = limit_meters


class QrCodeMismatch(VerificationRejected):
    code = "qr_code_mismatch"


class QuizBelowThreshold(VerificationRejected):
    code = "quiz_below_threshold"

    def __init__(self, score: float, passing_score: float):
        super().__init__(
            f"Quiz score {score * 100:.0f}% is below passing score {passing_score * 100:.0f}%",
            details={"score": score, "passing_score": passing_score},
        )
        self.score = score
        self.passing_score = passing_score


class VerificationInputInvalid(ValidationError):
    code = "verification_input_invalid"


class IncompleteQuizAnswers(VerificationInputInvalid):
    code = "incomplete_quiz_answers"


class MissingPhotoProof(VerificationInputInvalid):
    code = "missing_photo_proof"


class QuizNotFound(NotFoundError):
    code = "quiz_not_found"


class QuizMisconfigured(AppError):
    code = "quiz_misconfigured"
    status_code = 422


# Lookups and state --------------------------------------------------

class TaskOrUserNotFound(NotFoundError):
    code = "task_or_user_not_found"


class SubmissionNotFound(NotFoundError):
    code = "submission_not_found"


class AssignmentNotFound(ConflictError):
    code = "assignment_not_found"


class AssignmentConflict(ConflictError):
    code = "assignment_conflict"


class SubmissionAlreadyProcessed(ConflictError):
    code = "submission_already_processed"


class TaskOnCooldown(ConflictError):
    code = "task_on_cooldown"


class InvalidPeriod(ValidationError):
    code = "invalid_period"


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[dict] = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details:
        error["details"] = details
    return {"error": error, "detail": message}


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("ecoquest")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("ecoquest")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("ecoquest")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
