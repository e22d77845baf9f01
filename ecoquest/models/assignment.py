from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ecoquest.models.task import Frequency, Task


class AssignmentStatus(str, Enum):
    """Lifecycle: ASSIGNED -> COMPLETED | EXPIRED. A slot frees up once EXPIRED."""

    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


def slot_key(user_id: str, frequency: Frequency) -> str:
    return f"{user_id}:{Frequency(frequency).value}"


@dataclass
class Assignment:
    """Binding of one recurring task to one user for one rotation period."""

    assignment_id: str
    user_id: str
    task_id: str
    frequency: Frequency
    status: AssignmentStatus
    assigned_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None


@dataclass
class AssignedTask:
    """A task as listed to its user, with assignment metadata."""

    task: Task
    assignment_status: str  # ASSIGNED | COMPLETED | AVAILABLE
    assignment_id: Optional[str] = None
    expires_at: Optional[datetime] = None
