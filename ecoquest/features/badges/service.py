from __future__ import annotations

import logging
from typing import List, Optional

from ecoquest.core.clock import Clock, utc_now
from ecoquest.core.errors import TaskOrUserNotFound
from ecoquest.features.badges.catalog import default_badges, derive_level
from ecoquest.features.badges.rules import qualifies
from ecoquest.features.notifications.sink import (
    BADGE_AWARDED,
    NotificationSink,
    NullNotificationSink,
    safe_notify,
)
from ecoquest.features.store.base import Store
from ecoquest.models.badge import Badge, BadgeStatus
from ecoquest.models.user import User

logger = logging.getLogger("ecoquest.badges")


class BadgeEngine:
    """Grants newly qualifying badges and keeps the user's level in step with points."""

    def __init__(self, store: Store, *, clock: Clock = utc_now, notifier: Optional[NotificationSink] = None):
        self._store = store
        self._clock = clock
        self._notifier = notifier or NullNotificationSink()

    def evaluate_badges(self, user: User) -> List[Badge]:
        """
        Award every catalog badge the user does not hold yet and now qualifies for.

        Idempotent: held badges are skipped by id, and grants are never revoked,
        so re-running against an unchanged user returns an empty list.
        """
        candidates = [
            badge
            for badge in self._store.list_badges()
            if badge.badge_id not in user.badges and qualifies(badge.requirements, user)
        ]
        if not candidates:
            return []

        granted_ids = set(
            self._store.grant_badges(user.user_id, [badge.badge_id for badge in candidates], self._clock())
        )
        awarded = [badge for badge in candidates if badge.badge_id in granted_ids]
        user.badges.update(granted_ids)

        for badge in awarded:
            logger.info(
                "badge.awarded",
                extra={"user_id": user.user_id, "event_type": "badge.awarded", "badge_id": badge.badge_id},
            )
            safe_notify(
                self._notifier,
                user.user_id,
                BADGE_AWARDED,
                {"badge_id": badge.badge_id, "name": badge.name, "icon": badge.icon},
            )
        return awarded

    def refresh_level(self, user: User) -> bool:
        """Re-derive the level from points. Returns True when it changed."""
        level = derive_level(user.points)
        if level == user.level:
            return False
        self._store.set_user_level(user.user_id, level)
        user.level = level
        return True

    def get_user_badges(self, user_id: str) -> List[BadgeStatus]:
        user = self._store.get_user(user_id)
        if user is None:
            raise TaskOrUserNotFound(f"User {user_id} not found")
        return [BadgeStatus(badge=badge, earned=badge.badge_id in user.badges) for badge in self._store.list_badges()]


def seed_default_badges(store: Store) -> int:
    """Insert the default catalog; badges already present by name are left untouched."""
    inserted = sum(1 for badge in default_badges() if store.upsert_badge(badge))
    if inserted:
        logger.info("badges.seeded", extra={"event_type": "badges.seeded", "inserted": inserted})
    return inserted
