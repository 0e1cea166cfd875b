"""Publish/subscribe bus for telling views their data may be stale."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

_NO_PAYLOAD = object()


class Topic(str, Enum):
    """Topics published by record writes."""
    DASHBOARD = "refreshDashboard"
    REMINDERS = "refreshReminders"
    RECAP = "refreshRecap"
    CHART = "reloadChart"


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(), used to unsubscribe."""
    topic: str
    id: int


class EventBus:
    """Topic-keyed observer registry.

    Listeners run synchronously in registration order. A listener that
    raises is logged and skipped; the publisher and the remaining
    listeners are unaffected. Subscriptions live only as long as the bus.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, dict[int, Callable[..., Any]]] = {}
        self._ids = itertools.count(1)

    def subscribe(self, topic: str, listener: Callable[..., Any]) -> Subscription:
        """Register a listener for a topic."""
        topic = _topic_name(topic)
        sub = Subscription(topic=topic, id=next(self._ids))
        self._listeners.setdefault(topic, {})[sub.id] = listener
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a listener. Unknown or already-removed handles are ignored."""
        self._listeners.get(subscription.topic, {}).pop(subscription.id, None)

    def publish(self, topic: str, payload: Any = _NO_PAYLOAD) -> None:
        """Invoke every listener currently registered for a topic."""
        topic = _topic_name(topic)
        # Snapshot so listeners may (un)subscribe while being notified
        listeners = list(self._listeners.get(topic, {}).items())
        logger.debug("Publishing %s to %d listener(s)", topic, len(listeners))
        for sub_id, listener in listeners:
            try:
                if payload is _NO_PAYLOAD:
                    listener()
                else:
                    listener(payload)
            except Exception:
                logger.exception("Listener %d for %s failed", sub_id, topic)

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(_topic_name(topic), {}))


def _topic_name(topic: str) -> str:
    return topic.value if isinstance(topic, Topic) else topic
