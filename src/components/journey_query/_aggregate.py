"""
Row building, sorting, pagination and stats over filtered journeys.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from typing import Any

from src.core.entities import Journey

from .models import (
    EventRow,
    JourneyRow,
    Pagination,
    QueryMode,
    QueryStats,
    SessionRow,
    VisitorRow,
)

logger = logging.getLogger(__name__)


# --- Row builders ---


def build_visitor_rows(journeys: Sequence[Journey]) -> list[VisitorRow]:
    """
    Group journeys by visitor.

    Descriptive fields come from the visitor's most recently updated session;
    durations and event counts are summed across all their sessions.
    """
    by_visitor: dict[str, list[Journey]] = {}
    for journey in journeys:
        by_visitor.setdefault(journey.visitor_id, []).append(journey)

    rows = []
    for visitor_id, sessions in by_visitor.items():
        latest = max(sessions, key=lambda j: j.updated_at)
        rows.append(
            VisitorRow(
                visitor_id=visitor_id,
                session_id=latest.session_id,
                start_time=latest.start_time,
                updated_at=latest.updated_at,
                end_time=latest.end_time,
                first_seen=min(j.start_time for j in sessions),
                total_sessions=len(sessions),
                landing_page=latest.landing_page,
                referrer=latest.referrer,
                device=latest.device,
                location=latest.location,
                total_duration=sum(j.total_duration or 0 for j in sessions),
                total_events=sum(j.event_count for j in sessions),
            )
        )
    return rows


def build_session_rows(journeys: Sequence[Journey]) -> list[SessionRow]:
    return [SessionRow(journey=j, total_events=j.event_count) for j in journeys]


def build_event_rows(journeys: Sequence[Journey]) -> list[EventRow]:
    """Flatten impressions and actions, oldest first."""
    rows: list[EventRow] = []
    for journey in journeys:
        for impression in journey.events:
            rows.append(
                EventRow(
                    visitor_id=journey.visitor_id,
                    session_id=journey.session_id,
                    type="View",
                    timestamp=impression.viewed_at,
                    detail=impression.section_id,
                    duration=impression.duration,
                    metadata={"scrollDepth": impression.scroll_depth},
                )
            )
        for action in journey.actions:
            rows.append(
                EventRow(
                    visitor_id=journey.visitor_id,
                    session_id=journey.session_id,
                    type="Action",
                    timestamp=action.timestamp,
                    detail=f"{action.type} {action.target}",
                    duration=0,
                    metadata=dict(action.metadata or {}),
                )
            )
    rows.sort(key=lambda r: r.timestamp)
    return rows


def build_rows(journeys: Sequence[Journey], mode: QueryMode) -> list[JourneyRow]:
    if mode == "visitors":
        return list(build_visitor_rows(journeys))
    if mode == "sessions":
        return list(build_session_rows(journeys))
    return list(build_event_rows(journeys))


# --- Sorting ---


def _session_field(name: str) -> Callable[[Any], Any]:
    return lambda row: getattr(row.journey, name)


_VISITOR_SORT_KEYS: dict[str, Callable[[Any], Any]] = {
    "updatedAt": lambda r: r.updated_at,
    "startTime": lambda r: r.start_time,
    "endTime": lambda r: r.end_time,
    "firstSeen": lambda r: r.first_seen,
    "lastActive": lambda r: r.updated_at,
    "visitorId": lambda r: r.visitor_id,
    "sessionId": lambda r: r.session_id,
    "landingPage": lambda r: r.landing_page,
    "referrer": lambda r: r.referrer,
    "totalDuration": lambda r: r.total_duration,
    "totalSessions": lambda r: r.total_sessions,
    "totalEvents": lambda r: r.total_events,
    "device.type": lambda r: r.device.type,
    "device.os": lambda r: r.device.os,
    "device.browser": lambda r: r.device.browser,
    "location.city": lambda r: r.location.city,
}

_SESSION_SORT_KEYS: dict[str, Callable[[Any], Any]] = {
    "updatedAt": _session_field("updated_at"),
    "startTime": _session_field("start_time"),
    "endTime": _session_field("end_time"),
    "lastActive": _session_field("updated_at"),
    "visitorId": _session_field("visitor_id"),
    "sessionId": _session_field("session_id"),
    "landingPage": _session_field("landing_page"),
    "referrer": _session_field("referrer"),
    "totalDuration": _session_field("total_duration"),
    "interactions": lambda r: r.total_events,
    "totalEvents": lambda r: r.total_events,
    "device.type": lambda r: r.journey.device.type,
    "device.os": lambda r: r.journey.device.os,
    "device.browser": lambda r: r.journey.device.browser,
    "location.city": lambda r: r.journey.location.city,
}

DEFAULT_SORT_FIELD = "updatedAt"
DEFAULT_SORT_ORDER = "desc"


def resolve_sort(
    mode: QueryMode,
    sort_field: str | None,
    sort_order: str | None,
    default_field: str = DEFAULT_SORT_FIELD,
    default_order: str = DEFAULT_SORT_ORDER,
) -> tuple[str, str]:
    """Return a (field, order) pair that is valid for mode, falling back to defaults."""
    keys = _VISITOR_SORT_KEYS if mode == "visitors" else _SESSION_SORT_KEYS
    if default_field not in keys:
        default_field = DEFAULT_SORT_FIELD
    if default_order not in ("asc", "desc"):
        default_order = DEFAULT_SORT_ORDER

    if sort_field and sort_field in keys:
        field = sort_field
        order = (sort_order or default_order).lower()
        if order not in ("asc", "desc"):
            logger.debug("Unknown sort order %r, using %s", sort_order, default_order)
            order = default_order
        return field, order

    if sort_field:
        logger.debug("Unknown sort field %r, using %s %s", sort_field, default_field, default_order)
    return default_field, default_order


def sort_rows(
    rows: list[JourneyRow], mode: QueryMode, field: str, order: str
) -> list[JourneyRow]:
    """Sort visitor/session rows; rows missing the field go last. Event rows are left as-is."""
    if mode == "events":
        return rows
    keys = _VISITOR_SORT_KEYS if mode == "visitors" else _SESSION_SORT_KEYS
    key = keys[field]
    present = [r for r in rows if key(r) is not None]
    missing = [r for r in rows if key(r) is None]
    present.sort(key=key, reverse=order == "desc")
    return present + missing


# --- Pagination ---


def parse_positive_int(value: str | int | None, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.debug("Invalid integer %r, using %d", value, default)
        return default
    return parsed if parsed >= 1 else default


def paginate(
    rows: list[JourneyRow], page: int, page_size: int
) -> tuple[list[JourneyRow], Pagination]:
    total = len(rows)
    start = (page - 1) * page_size
    return rows[start : start + page_size], Pagination(
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


# --- Stats ---


def compute_stats(rows: Sequence[JourneyRow], mode: QueryMode) -> QueryStats:
    """Totals over rows, counted in the row shape of mode."""
    if mode == "visitors":
        return QueryStats(
            total_sessions=sum(r.total_sessions for r in rows),  # type: ignore[union-attr]
            total_duration=sum(r.total_duration for r in rows),
            total_events=sum(r.total_events for r in rows),  # type: ignore[union-attr]
        )
    if mode == "sessions":
        return QueryStats(
            total_sessions=len(rows),
            total_duration=sum(r.total_duration for r in rows),
            total_events=sum(r.total_events for r in rows),  # type: ignore[union-attr]
        )
    return QueryStats(
        total_sessions=len({r.session_id for r in rows}),  # type: ignore[union-attr]
        total_duration=sum(r.total_duration for r in rows),
        total_events=len(rows),
    )
