"""
Notification sink (fire-and-forget).

The engine informs the sink of badge grants, streaks at risk and new task
availability. Delivery failures are logged and never propagate.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger("ecoquest.notifications")

BADGE_AWARDED = "badge_awarded"
STREAK_AT_RISK = "streak_at_risk"
TASK_AVAILABLE = "task_available"


class NotificationSink(Protocol):
    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: records notifications in the log stream."""

    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        logger.info("notification.%s", kind, extra={"user_id": user_id, "event_type": kind, "payload": payload})


class NullNotificationSink:
    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        return None


class RecordingNotificationSink:
    """Keeps notifications in memory; handy for inspection and tests."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        self.sent.append((user_id, kind, payload))

    def kinds(self) -> List[str]:
        return [kind for _, kind, _ in self.sent]


def safe_notify(sink: NotificationSink, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
    try:
        sink.notify(user_id, kind, payload)
    except Exception:
        logger.warning(
            "notification.delivery_failed",
            exc_info=True,
            extra={"user_id": user_id, "event_type": kind},
        )
