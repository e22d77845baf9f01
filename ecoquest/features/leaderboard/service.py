"""
Neighborhood leaderboard aggregation.

Ranking is by normalized points (base points per active resident) so small
neighborhoods compete on per-capita engagement. Windowed periods add
participation, points earned in the window and improvement over the
preceding window of equal length.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from ecoquest.core.clock import Clock, add_months, utc_now
from ecoquest.core.errors import InvalidPeriod, ValidationError
from ecoquest.features.store.base import Store
from ecoquest.models.neighborhood import Neighborhood, RankedEntry
from ecoquest.models.task import ImpactMetrics

logger = logging.getLogger("ecoquest.leaderboard")

PERIODS = ("weekly", "monthly", "annually", "all_time")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def window_bounds(period: str, now: datetime) -> Tuple[datetime, Optional[datetime]]:
    """Return (window_start, previous_window_start). all_time has no previous window."""
    if period == "weekly":
        start = now - timedelta(days=7)
        return start, start - timedelta(days=7)
    if period == "monthly":
        start = add_months(now, -1)
        return start, add_months(start, -1)
    if period == "annually":
        start = add_months(now, -12)
        return start, add_months(start, -12)
    if period == "all_time":
        return EPOCH, None
    raise InvalidPeriod(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")


def improvement_factor(current: int, previous: int) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def normalized(base_points: int, total_users: int) -> float:
    return base_points / total_users if total_users else 0.0


class LeaderboardAggregator:
    def __init__(self, store: Store, *, clock: Clock = utc_now):
        self._store = store
        self._clock = clock

    def get_leaderboard(self, period: str = "all_time", limit: Optional[int] = None) -> List[RankedEntry]:
        """
        Compute, rank and persist every neighborhood, then return the top `limit`.

        Rankings are written all-or-nothing: a failure anywhere leaves the
        previously persisted positions intact.
        """
        if limit is not None and limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        now = self._clock()
        start, previous_start = window_bounds(period, now)

        entries = [self._build_entry(n, period, start, previous_start, now) for n in self._store.list_neighborhoods()]
        entries.sort(key=lambda entry: entry.normalized_points, reverse=True)
        for position, entry in enumerate(entries, start=1):
            entry.rank = position

        self._store.save_rankings(
            [(entry.neighborhood_id, entry.rank, entry.normalized_points) for entry in entries],
            now,
        )
        logger.info(
            "leaderboard.computed",
            extra={"event_type": "leaderboard.computed", "period": period, "neighborhoods": len(entries)},
        )
        return entries if limit is None else entries[:limit]

    def record_award(self, neighborhood_id: str, *, points: int, impact: ImpactMetrics, now: datetime) -> bool:
        """Incremental update after one approval: base points, environmental totals, normalization."""
        applied = self._store.apply_neighborhood_delta(
            neighborhood_id,
            points=points,
            co2_saved=impact.co2_saved or 0.0,
            waste_recycled=impact.waste_recycled or 0.0,
            km_green=impact.distance or 0.0,
            now=now,
        )
        if not applied:
            logger.warning(
                "leaderboard.neighborhood_missing",
                extra={"event_type": "leaderboard.neighborhood_missing", "neighborhood_id": neighborhood_id},
            )
            return False
        neighborhood = self._store.get_neighborhood(neighborhood_id)
        total_users = self._store.count_users(neighborhood_id)
        self._store.set_normalized_points(neighborhood_id, normalized(neighborhood.base_points, total_users))
        return True

    def _build_entry(
        self,
        neighborhood: Neighborhood,
        period: str,
        start: datetime,
        previous_start: Optional[datetime],
        now: datetime,
    ) -> RankedEntry:
        nid = neighborhood.neighborhood_id
        total_users = self._store.count_users(nid)
        active_users = self._store.count_users(nid, active_since=start)

        if previous_start is None:
            points_earned = neighborhood.base_points
            improvement = 0.0
        else:
            points_earned = self._store.sum_approved_points(nid, start, now)
            previous_points = self._store.sum_approved_points(nid, previous_start, start)
            improvement = improvement_factor(points_earned, previous_points)

        return RankedEntry(
            neighborhood_id=nid,
            name=neighborhood.name,
            city=neighborhood.city,
            rank=0,
            base_points=neighborhood.base_points,
            normalized_points=normalized(neighborhood.base_points, total_users),
            points_earned=points_earned,
            active_users=active_users,
            total_users=total_users,
            participation_rate=round(active_users / total_users * 100, 1) if total_users else 0.0,
            improvement_factor=improvement,
            environmental_data=neighborhood.environmental_data,
        )
