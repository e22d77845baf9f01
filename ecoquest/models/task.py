from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class VerificationMethod(str, Enum):
    GPS = "GPS"
    QR_SCAN = "QR_SCAN"
    QUIZ = "QUIZ"
    PHOTO_UPLOAD = "PHOTO_UPLOAD"
    MANUAL_REPORT = "MANUAL_REPORT"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ON_DEMAND = "on_demand"


RECURRING_FREQUENCIES = (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY)


@dataclass
class VerificationCriteria:
    """Method-specific settings; only the fields relevant to the method are set."""

    target_location: Optional[Tuple[float, float]] = None
    min_distance_meters: Optional[float] = None
    qr_code_secret: Optional[str] = None
    quiz_id: Optional[str] = None


@dataclass
class ImpactMetrics:
    co2_saved: float = 0.0
    waste_recycled: float = 0.0
    distance: float = 0.0


@dataclass
class Task:
    task_id: str
    title: str
    category: str
    base_points: int
    verification_method: VerificationMethod
    verification_criteria: VerificationCriteria = field(default_factory=VerificationCriteria)
    impact_metrics: ImpactMetrics = field(default_factory=ImpactMetrics)
    frequency: Frequency = Frequency.ON_DEMAND
    neighborhood_id: Optional[str] = None
    is_active: bool = True
    description: str = ""
    expires_at: Optional[datetime] = None
    rotated_at: Optional[datetime] = None
    rotated_from: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency in RECURRING_FREQUENCIES


@dataclass
class QuizQuestion:
    text: str
    options: List[str]
    correct_option_index: int


@dataclass
class Quiz:
    quiz_id: str
    title: str
    questions: List[QuizQuestion] = field(default_factory=list)
    passing_score: Optional[float] = None
