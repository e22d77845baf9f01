"""
Scoring & streak engine.

Runs only after a submission reached APPROVED. Order matters: the user is
updated first, then level and badges are re-evaluated against the post-award
totals, then the points delta is propagated to the user's neighborhood.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ecoquest.core.clock import Clock, utc_day, utc_now
from ecoquest.core.errors import TaskOrUserNotFound
from ecoquest.core.logging import log_event
from ecoquest.features.badges.service import BadgeEngine
from ecoquest.features.leaderboard.service import LeaderboardAggregator
from ecoquest.features.store.base import Store
from ecoquest.models.badge import Badge
from ecoquest.models.task import Task
from ecoquest.models.user import User

logger = logging.getLogger("ecoquest.scoring")

# (streak strictly greater than, multiplier), checked from the top
MULTIPLIER_TIERS = ((30, 1.5), (7, 1.25), (3, 1.1))


@dataclass
class AwardResult:
    points_awarded: int
    new_streak: int
    leveled_up: bool
    user: User
    new_badges: List[Badge] = field(default_factory=list)


def streak_multiplier(streak: int) -> float:
    for floor, multiplier in MULTIPLIER_TIERS:
        if streak > floor:
            return multiplier
    return 1.0


def next_streak(current: int, last_activity: Optional[datetime], now: datetime) -> int:
    """Day-granular (UTC) streak transition; same-day activity leaves the counter alone."""
    if last_activity is None:
        return 1
    gap_days = (utc_day(now) - utc_day(last_activity)).days
    if gap_days <= 0:
        return max(current, 1)
    if gap_days == 1:
        return current + 1
    return 1


def compute_points(base_points: int, multiplier: float) -> int:
    # Half-up rounding: 12.5 -> 13.
    return int(math.floor(base_points * multiplier + 0.5))


class ScoringEngine:
    def __init__(
        self,
        store: Store,
        badge_engine: BadgeEngine,
        leaderboard: LeaderboardAggregator,
        *,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._badges = badge_engine
        self._leaderboard = leaderboard
        self._clock = clock

    def award_points(self, user: User, task: Task) -> AwardResult:
        now = self._clock()
        streak = next_streak(user.streak, user.last_activity_date, now)
        points = compute_points(task.base_points, streak_multiplier(streak))
        impact = task.impact_metrics

        updated = self._store.apply_award(
            user.user_id,
            points=points,
            streak=streak,
            last_activity_date=now,
            co2_saved=impact.co2_saved or 0.0,
            waste_recycled=impact.waste_recycled or 0.0,
            km_green=impact.distance or 0.0,
            category=task.category,
        )
        if updated is None:
            raise TaskOrUserNotFound(f"User {user.user_id} not found")

        # Points are committed; each follow-up step fails on its own.
        leveled_up = False
        new_badges: List[Badge] = []
        try:
            leveled_up = self._badges.refresh_level(updated)
        except Exception:
            self._log_step_failure("level", user.user_id, task.task_id)
        try:
            new_badges = self._badges.evaluate_badges(updated)
        except Exception:
            self._log_step_failure("badges", user.user_id, task.task_id)
        if updated.neighborhood_id:
            try:
                self._leaderboard.record_award(
                    updated.neighborhood_id,
                    points=points,
                    impact=impact,
                    now=now,
                )
            except Exception:
                self._log_step_failure("neighborhood", user.user_id, task.task_id)

        log_event(
            "info",
            "points.awarded",
            user_id=user.user_id,
            task_id=task.task_id,
            event_type="points.awarded",
            extra={
                "points": points,
                "streak": streak,
                "total_points": updated.points,
                "leveled_up": leveled_up,
                "new_badges": [b.badge_id for b in new_badges],
            },
            logger_name="ecoquest.scoring",
        )
        return AwardResult(
            points_awarded=points,
            new_streak=streak,
            leveled_up=leveled_up,
            user=updated,
            new_badges=new_badges,
        )

    def _log_step_failure(self, step: str, user_id: str, task_id: str) -> None:
        logger.exception(
            "points.award_step_failed",
            extra={
                "event_type": "points.award_step_failed",
                "step": step,
                "user_id": user_id,
                "task_id": task_id,
            },
        )
