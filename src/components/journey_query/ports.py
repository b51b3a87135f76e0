"""
Journey query component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from src.core.entities import Journey

from .models import FilterTerm


class JourneyReadRepoPort(Protocol):
    """Read side of the journey store."""

    def find(self, terms: list[FilterTerm]) -> list[Journey]:
        """Return journeys matching every term, newest start_time first."""
        ...

    def get_by_session_id(self, session_id: str) -> Journey | None: ...

    def list_by_visitor(self, visitor_id: str) -> list[Journey]:
        """All journeys for a visitor, newest start_time first."""
        ...

    def get_facet_values(self) -> dict[str, Any]:
        """
        Raw distinct values for filter facets.

        Returns dict with locations (list of (country, city) pairs),
        devices, os, browsers (lists of stored values, may contain None).
        """
        ...

    def get_totals(self) -> dict[str, int]:
        """Returns dict with total_visits, unique_visitors."""
        ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...
