"""
Telemetry bus event models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Topic = Literal["impression.start", "impression.end", "action"]

IMPRESSION_START: Topic = "impression.start"
IMPRESSION_END: Topic = "impression.end"
ACTION: Topic = "action"


@dataclass(frozen=True)
class TelemetryEvent:
    """
    Event published by the dwell tracker and action emitter.

    subject is the section id for impressions and the target for actions.
    """

    topic: Topic
    subject: str
    payload: dict[str, Any] = field(default_factory=dict)
