from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Set


@dataclass
class AmbientImpact:
    """Accumulated environmental metrics attributed to a user. Never decreases."""

    co2_saved: float = 0.0
    waste_recycled: float = 0.0
    km_green: float = 0.0


@dataclass
class UserStats:
    total_tasks_completed: int = 0
    tasks_by_category: Dict[str, int] = field(default_factory=dict)


@dataclass
class User:
    """
    Domain model for a participant. Day-level streak, UTC only, no direct DB concerns.
    """

    user_id: str
    name: str = ""
    neighborhood_id: Optional[str] = None
    points: int = 0
    streak: int = 0
    last_activity_date: Optional[datetime] = None
    ambient: AmbientImpact = field(default_factory=AmbientImpact)
    stats: UserStats = field(default_factory=UserStats)
    badges: Set[str] = field(default_factory=set)
    level: str = "Citizen"
    is_active: bool = True
