"""View feeds — the reads each refresh topic tells a view to repeat."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from enum import Enum
from typing import Any, Callable

from health_tracker.client import HealthTrackerClient
from health_tracker.events import EventBus, Subscription, Topic
from health_tracker.services.records import error_detail
from health_tracker.utils.errors import ApiError, HealthTrackerError

logger = logging.getLogger(__name__)

# Paths may use {today}, filled with the local date as YYYY-MM-DD
VIEW_FEEDS: dict[Topic, tuple[str, ...]] = {
    Topic.DASHBOARD: ("/clinical/ps/date/{today}", "/clinical/appt/f"),
    Topic.REMINDERS: ("/clinical/ps/c", "/clinical/appt/f"),
    Topic.RECAP: ("/wellness/diet/recap", "/wellness/hyd/recap"),
    Topic.CHART: (
        "/wellness/symp/recap",
        "/wellness/bm/recap",
        "/wellness/ls/slrecap",
        "/wellness/ls/exrecap",
        "/wellness/ls/mrecap",
    ),
}


class ViewName(str, Enum):
    """CLI-facing names for the views behind each topic."""
    DASHBOARD = "dashboard"
    REMINDERS = "reminders"
    RECAP = "recap"
    CHART = "chart"

    @property
    def topic(self) -> Topic:
        return _VIEW_TOPICS[self]


_VIEW_TOPICS = {
    ViewName.DASHBOARD: Topic.DASHBOARD,
    ViewName.REMINDERS: Topic.REMINDERS,
    ViewName.RECAP: Topic.RECAP,
    ViewName.CHART: Topic.CHART,
}


def feed_paths(topic: Topic, today: date | None = None) -> list[str]:
    """Concrete GET paths behind a topic."""
    today = today or date.today()
    return [path.format(today=today.isoformat()) for path in VIEW_FEEDS[Topic(topic)]]


class ViewService:
    """Fetches the data a view shows."""

    def __init__(self, client: HealthTrackerClient) -> None:
        self._client = client

    async def fetch(self, topic: Topic, today: date | None = None) -> dict[str, Any]:
        """GET every feed of a view, in order. Returns ``{path: body}``."""
        result: dict[str, Any] = {}
        for path in feed_paths(topic, today):
            response = await self._client.get(path)
            if not response.is_success:
                raise ApiError(response.status_code, error_detail(response))
            try:
                result[path] = response.json()
            except ValueError:
                result[path] = response.text
        return result


class ViewLoader:
    """Reloads views when their topic is published on the bus.

    Publishing is synchronous, so each reload is scheduled as a task on the
    running loop; ``wait()`` collects them. Results and errors are handed
    to *on_loaded* and *on_error*.
    """

    def __init__(
        self,
        views: ViewService,
        bus: EventBus,
        on_loaded: Callable[[Topic, dict[str, Any]], Any] | None = None,
        on_error: Callable[[Topic, Exception], Any] | None = None,
    ) -> None:
        self._views = views
        self._bus = bus
        self._on_loaded = on_loaded
        self._on_error = on_error
        self._subscriptions: list[Subscription] = []
        self._pending: dict[Topic, asyncio.Task] = {}

    def attach(self, *topics: Topic) -> None:
        """Subscribe to the given topics, or to all of them."""
        for topic in topics or tuple(Topic):
            self._subscriptions.append(
                self._bus.subscribe(topic, lambda *_, t=Topic(topic): self._schedule(t))
            )

    def detach(self) -> None:
        for sub in self._subscriptions:
            self._bus.unsubscribe(sub)
        self._subscriptions.clear()

    def _schedule(self, topic: Topic) -> None:
        # One reload per topic at a time; a repeat publish joins the pending one
        if topic in self._pending:
            return
        task = asyncio.get_running_loop().create_task(self._reload(topic))
        self._pending[topic] = task

    async def _reload(self, topic: Topic) -> None:
        try:
            data = await self._views.fetch(topic)
        except HealthTrackerError as e:
            logger.warning("Reloading %s failed: %s", topic.value, e)
            if self._on_error is not None:
                self._on_error(topic, e)
            return
        finally:
            self._pending.pop(topic, None)
        logger.debug("Reloaded %s", topic.value)
        if self._on_loaded is not None:
            self._on_loaded(topic, data)

    async def wait(self) -> None:
        """Wait for every scheduled reload to finish."""
        while self._pending:
            await asyncio.gather(*self._pending.values())
