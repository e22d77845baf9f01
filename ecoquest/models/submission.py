from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass
class Submission:
    """One proof-verification attempt. Immutable once APPROVED or REJECTED."""

    submission_id: str
    user_id: str
    task_id: str
    status: SubmissionStatus
    proof: Dict[str, Any] = field(default_factory=dict)
    neighborhood_id: Optional[str] = None
    assignment_id: Optional[str] = None
    points_awarded: int = 0
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
