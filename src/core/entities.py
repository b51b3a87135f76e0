"""
Domain entities for visitor journey telemetry.

A Journey is the stored aggregate of one browsing session:
- SectionImpression: confirmed dwell on a page section, upserted by interaction_id
- ActionEvent: discrete user action, append-only
- DeviceInfo / LocationInfo: descriptive context captured at session start

All timestamps are timezone-aware UTC. Durations are milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

DeviceType = Literal["mobile", "tablet", "desktop"]

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DeviceInfo:
    """Device context parsed from the user agent."""

    type: DeviceType = "desktop"
    os: str = UNKNOWN
    browser: str = UNKNOWN
    device_name: str = "Unknown Device"


@dataclass(frozen=True)
class LocationInfo:
    """Best-effort location resolved from the client IP."""

    country: str | None = None
    region: str | None = None
    city: str | None = None
    ip: str | None = None


@dataclass
class SectionImpression:
    """
    Confirmed dwell impression on a section.

    Invariant: interaction_id is unique within a Journey; a revisit of the
    same section carries a new interaction_id.
    """

    interaction_id: str
    section_id: str
    viewed_at: datetime
    duration: int = 0  # ms
    scroll_depth: int = 0  # 0-100
    interactions: int = 0


@dataclass(frozen=True)
class ActionEvent:
    """Discrete user action (click, search, filter change...)."""

    type: str
    target: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None


@dataclass
class Journey:
    """Per-session aggregate record."""

    session_id: str
    visitor_id: str
    landing_page: str
    user_agent: str
    start_time: datetime
    updated_at: datetime
    referrer: str | None = None
    device: DeviceInfo = field(default_factory=DeviceInfo)
    location: LocationInfo = field(default_factory=LocationInfo)
    end_time: datetime | None = None
    total_duration: int | None = None  # ms
    events: list[SectionImpression] = field(default_factory=list)
    actions: list[ActionEvent] = field(default_factory=list)
    created_at: datetime | None = None

    @property
    def event_count(self) -> int:
        """Impressions plus actions."""
        return len(self.events) + len(self.actions)
