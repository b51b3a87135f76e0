"""
Bus component - in-process telemetry observer interface.
"""

from .component import Handler, TelemetryBus
from .models import ACTION, IMPRESSION_END, IMPRESSION_START, TelemetryEvent, Topic
from .ports import PublisherPort

__all__ = [
    "TelemetryBus",
    "Handler",
    "TelemetryEvent",
    "Topic",
    "ACTION",
    "IMPRESSION_END",
    "IMPRESSION_START",
    "PublisherPort",
]
