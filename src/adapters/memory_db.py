"""
In-memory journey store for testing/dev.

Evaluates filter terms in-process with the same semantics the SQLite
adapter compiles to SQL.
"""

from __future__ import annotations

import copy
from datetime import datetime
from threading import Lock
from typing import Any

from src.components.journey_query._filters import matches_all
from src.components.journey_query.models import FilterTerm
from src.core.entities import ActionEvent, Journey, SectionImpression


class InMemoryJourneyRepo:
    """Dict-backed journey store. Returned journeys are copies."""

    def __init__(self) -> None:
        self._journeys: dict[str, Journey] = {}
        self._lock = Lock()

    def create(self, journey: Journey) -> Journey:
        with self._lock:
            self._journeys[journey.session_id] = copy.deepcopy(journey)
        return journey

    def get_by_session_id(self, session_id: str) -> Journey | None:
        with self._lock:
            journey = self._journeys.get(session_id)
            return copy.deepcopy(journey) if journey else None

    def list_by_visitor(self, visitor_id: str) -> list[Journey]:
        with self._lock:
            found = [j for j in self._journeys.values() if j.visitor_id == visitor_id]
            return copy.deepcopy(self._newest_first(found))

    def upsert_impression(
        self, session_id: str, impression: SectionImpression, now: datetime
    ) -> bool:
        with self._lock:
            journey = self._journeys.get(session_id)
            if journey is None:
                return False
            for existing in journey.events:
                if existing.interaction_id == impression.interaction_id:
                    existing.duration = impression.duration
                    existing.scroll_depth = impression.scroll_depth
                    existing.interactions = impression.interactions
                    break
            else:
                journey.events.append(copy.deepcopy(impression))
            self._touch(journey, now)
            return True

    def append_action(self, session_id: str, action: ActionEvent, now: datetime) -> bool:
        with self._lock:
            journey = self._journeys.get(session_id)
            if journey is None:
                return False
            journey.actions.append(action)
            self._touch(journey, now)
            return True

    def find(self, terms: list[FilterTerm]) -> list[Journey]:
        with self._lock:
            found = [j for j in self._journeys.values() if matches_all(j, terms)]
            return copy.deepcopy(self._newest_first(found))

    def get_facet_values(self) -> dict[str, Any]:
        with self._lock:
            journeys = list(self._journeys.values())
        return {
            "locations": list({(j.location.country, j.location.city) for j in journeys}),
            "devices": list({j.device.type for j in journeys}),
            "os": list({j.device.os for j in journeys}),
            "browsers": list({j.device.browser for j in journeys}),
        }

    def get_totals(self) -> dict[str, int]:
        with self._lock:
            return {
                "total_visits": len(self._journeys),
                "unique_visitors": len({j.visitor_id for j in self._journeys.values()}),
            }

    def _touch(self, journey: Journey, now: datetime) -> None:
        journey.end_time = now
        journey.updated_at = now
        journey.total_duration = max(0, int((now - journey.start_time).total_seconds() * 1000))

    def _newest_first(self, journeys: list[Journey]) -> list[Journey]:
        return sorted(journeys, key=lambda j: (-j.start_time.timestamp(), j.session_id))
