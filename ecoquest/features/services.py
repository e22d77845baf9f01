"""
Wiring for the engine components.

The API and the workers share one `Services` bundle; tests build their own
around an in-memory store, a fake clock and a recording sink.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from ecoquest.core.clock import Clock, utc_now
from ecoquest.core.config import settings
from ecoquest.features.assignments.rotation import CatalogRotation
from ecoquest.features.assignments.service import AssignmentScheduler
from ecoquest.features.badges.service import BadgeEngine
from ecoquest.features.leaderboard.service import LeaderboardAggregator
from ecoquest.features.notifications.sink import (
    LoggingNotificationSink,
    NotificationSink,
    NullNotificationSink,
)
from ecoquest.features.scoring.service import ScoringEngine
from ecoquest.features.store import SqlStore, Store
from ecoquest.features.submissions.service import SubmissionService
from ecoquest.features.verification.service import ProofVerifier


@dataclass
class Services:
    store: Store
    clock: Clock
    notifier: NotificationSink
    verifier: ProofVerifier
    badges: BadgeEngine
    leaderboard: LeaderboardAggregator
    scoring: ScoringEngine
    assignments: AssignmentScheduler
    rotation: CatalogRotation
    submissions: SubmissionService


def build_services(
    store: Optional[Store] = None,
    *,
    clock: Clock = utc_now,
    rng: Optional[random.Random] = None,
    notifier: Optional[NotificationSink] = None,
    cooldown_minutes: Optional[int] = None,
) -> Services:
    store = store or SqlStore()
    if notifier is None:
        notifier = LoggingNotificationSink() if settings.NOTIFICATIONS_ENABLED else NullNotificationSink()

    verifier = ProofVerifier(store.get_quiz)
    badges = BadgeEngine(store, clock=clock, notifier=notifier)
    leaderboard = LeaderboardAggregator(store, clock=clock)
    scoring = ScoringEngine(store, badges, leaderboard, clock=clock)
    assignments = AssignmentScheduler(store, clock=clock, rng=rng, notifier=notifier)
    return Services(
        store=store,
        clock=clock,
        notifier=notifier,
        verifier=verifier,
        badges=badges,
        leaderboard=leaderboard,
        scoring=scoring,
        assignments=assignments,
        rotation=CatalogRotation(store, assignments, clock=clock),
        submissions=SubmissionService(store, verifier, scoring, clock=clock, cooldown_minutes=cooldown_minutes),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services
