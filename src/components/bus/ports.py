"""
Telemetry bus port definitions.
"""

from __future__ import annotations

from typing import Protocol

from .models import TelemetryEvent


class PublisherPort(Protocol):
    """What the trackers need from a bus."""

    def publish(self, event: TelemetryEvent) -> None:
        """Deliver event to subscribers. Must not raise."""
        ...
