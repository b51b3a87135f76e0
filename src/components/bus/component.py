"""
Telemetry bus - in-process publish/subscribe.

Lets UI collaborators (achievement counters, debug overlays) observe
impressions and actions without reaching into tracker internals or global
state. Subscriber failures are logged and isolated from publishers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import TelemetryEvent, Topic

logger = logging.getLogger(__name__)

Handler = Callable[[TelemetryEvent], None]


class TelemetryBus:
    """Synchronous observer registry keyed by topic (None = all topics)."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[Topic | None, Handler]] = []

    def subscribe(self, handler: Handler, topic: Topic | None = None) -> Callable[[], None]:
        """Register handler; returns a callable that removes it."""
        entry = (topic, handler)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: TelemetryEvent) -> None:
        for topic, handler in list(self._subscribers):
            if topic is not None and topic != event.topic:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Telemetry subscriber failed for %s", event.topic)

    def subscriber_count(self) -> int:
        return len(self._subscribers)
