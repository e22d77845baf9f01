from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class EnvironmentalData:
    co2_saved: float = 0.0
    waste_recycled: float = 0.0
    km_green: float = 0.0
    last_updated: Optional[datetime] = None


@dataclass
class Neighborhood:
    neighborhood_id: str
    name: str
    city: str = ""
    base_points: int = 0
    normalized_points: float = 0.0
    ranking_position: Optional[int] = None
    last_ranking_update: Optional[datetime] = None
    environmental_data: EnvironmentalData = field(default_factory=EnvironmentalData)


@dataclass
class RankedEntry:
    neighborhood_id: str
    name: str
    city: str
    rank: int
    base_points: int
    normalized_points: float
    points_earned: int
    active_users: int
    total_users: int
    participation_rate: float
    improvement_factor: float
    environmental_data: EnvironmentalData
