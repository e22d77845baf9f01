from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class RequirementKind(str, Enum):
    MIN_POINTS = "min_points"
    MIN_TASKS_COMPLETED = "min_tasks_completed"
    MIN_CATEGORY_TASKS = "tasks_by_category"
    MIN_STREAK = "min_streak"
    MIN_CO2_SAVED = "min_co2_saved"
    MIN_WASTE_RECYCLED = "min_waste_recycled"
    MIN_KM_GREEN = "min_km_green"


@dataclass(frozen=True)
class Requirement:
    """One threshold predicate. `category` is only set for MIN_CATEGORY_TASKS."""

    kind: RequirementKind
    threshold: float
    category: Optional[str] = None


@dataclass
class Badge:
    badge_id: str
    name: str
    description: str = ""
    icon: str = ""
    category: str = ""
    rarity: str = "Common"
    display_order: int = 0
    requirements: Tuple[Requirement, ...] = field(default_factory=tuple)


@dataclass
class BadgeStatus:
    badge: Badge
    earned: bool
