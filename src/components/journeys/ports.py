"""
Journey ingestion component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.core.entities import ActionEvent, Journey, LocationInfo, SectionImpression


class JourneyRepoPort(Protocol):
    """Write side of the journey store."""

    def create(self, journey: Journey) -> Journey: ...

    def get_by_session_id(self, session_id: str) -> Journey | None: ...

    def upsert_impression(
        self, session_id: str, impression: SectionImpression, now: datetime
    ) -> bool:
        """Insert or overwrite by interaction_id. False if the session is unknown."""
        ...

    def append_action(self, session_id: str, action: ActionEvent, now: datetime) -> bool:
        """Append an action. False if the session is unknown."""
        ...


class GeoLookupPort(Protocol):
    """Resolves a client IP to a location. Must not raise."""

    def lookup(self, ip: str) -> LocationInfo: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...
