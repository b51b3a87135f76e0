"""
Filter compilation and in-process evaluation.

build_filter_terms() turns operator criteria into a list of FilterTerm values
(ANDed). term_matches() evaluates one term against a Journey; storage adapters
that cannot push terms down (e.g. the in-memory repo) use it directly, the
SQLite adapter compiles the same terms to SQL.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from src.core.entities import Journey

from .models import (
    UNKNOWN_LOCATION,
    FieldInSetTerm,
    FilterTerm,
    JourneyFilter,
    RangeTerm,
    TextSearchTerm,
    TimeWindowTerm,
)

# Fields a free-text search scans.
SEARCH_FIELDS: tuple[str, ...] = ("session_id", "visitor_id", "landing_page")

# Fields an interaction search scans.
INTERACTION_FIELDS: tuple[str, ...] = (
    "events.section_id",
    "actions.target",
    "actions.type",
    "actions.metadata.label",
)

_WINDOW_ALIASES: dict[str, str] = {
    "today": "today",
    "week": "week",
    "last-7-days": "week",
    "7d": "week",
    "month": "month",
    "last-30-days": "month",
    "30d": "month",
    "all": "all",
}


def _metadata_labels(journey: Journey) -> list[Any]:
    return [a.metadata.get("label") for a in journey.actions if a.metadata]


FIELD_VALUES: dict[str, Callable[[Journey], list[Any]]] = {
    "session_id": lambda j: [j.session_id],
    "visitor_id": lambda j: [j.visitor_id],
    "landing_page": lambda j: [j.landing_page],
    "start_time": lambda j: [j.start_time],
    "total_duration": lambda j: [j.total_duration],
    "device.type": lambda j: [j.device.type if j.device else None],
    "device.os": lambda j: [j.device.os if j.device else None],
    "device.browser": lambda j: [j.device.browser if j.device else None],
    "location.city": lambda j: [j.location.city if j.location else None],
    "events.section_id": lambda j: [e.section_id for e in j.events],
    "actions.target": lambda j: [a.target for a in j.actions],
    "actions.type": lambda j: [a.type for a in j.actions],
    "actions.metadata.label": _metadata_labels,
}


# --- Lenient parsing ---


def normalize_time_window(value: str | None) -> str:
    """Map a window name (or alias) to today/week/month/all. Unknown -> all."""
    if not value:
        return "all"
    return _WINDOW_ALIASES.get(value.strip().lower(), "all")


def window_start(window: str | None, now: datetime) -> datetime | None:
    """Lower bound on start_time for a window, or None for no bound."""
    name = normalize_time_window(window)
    if name == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if name == "week":
        return now - timedelta(days=7)
    if name == "month":
        return now - timedelta(days=30)
    return None


def parse_seconds(value: str | float | int | None) -> float | None:
    """Parse a non-negative number of seconds; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return None
    return seconds


def _clean_values(values: Iterable[str]) -> list[str]:
    return [v.strip() for v in values if v is not None and v.strip()]


def _in_set(field: str, values: Iterable[str]) -> FieldInSetTerm | None:
    cleaned = _clean_values(values)
    if not cleaned:
        return None
    # "Unknown" matches both the literal value and missing values.
    include_missing = UNKNOWN_LOCATION in cleaned
    return FieldInSetTerm(
        field=field, values=frozenset(cleaned), include_missing=include_missing
    )


# --- Builder ---


def build_filter_terms(criteria: JourneyFilter, now: datetime) -> list[FilterTerm]:
    """
    Compile operator criteria into ANDed filter terms.

    Invalid or empty criteria are dropped silently. Duration bounds are given
    in seconds and compared against total_duration in milliseconds.
    """
    terms: list[FilterTerm] = []

    since = window_start(criteria.time_window, now)
    if since is not None:
        terms.append(TimeWindowTerm(since=since))

    if criteria.search and criteria.search.strip():
        terms.append(TextSearchTerm(needle=criteria.search.strip(), fields=SEARCH_FIELDS))

    if criteria.interaction and criteria.interaction.strip():
        terms.append(
            TextSearchTerm(needle=criteria.interaction.strip(), fields=INTERACTION_FIELDS)
        )

    for field_name, values in (
        ("device.type", criteria.device_types),
        ("device.os", criteria.os),
        ("device.browser", criteria.browsers),
        ("location.city", criteria.locations),
    ):
        term = _in_set(field_name, values)
        if term is not None:
            terms.append(term)

    min_s = parse_seconds(criteria.min_duration)
    max_s = parse_seconds(criteria.max_duration)
    if min_s is not None or max_s is not None:
        terms.append(
            RangeTerm(
                field="total_duration",
                minimum=min_s * 1000 if min_s is not None else None,
                maximum=max_s * 1000 if max_s is not None else None,
            )
        )

    return terms


# --- Evaluation ---


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def term_matches(journey: Journey, term: FilterTerm) -> bool:
    """Evaluate a single filter term against a journey."""
    if isinstance(term, TimeWindowTerm):
        (value,) = FIELD_VALUES[term.field](journey)
        return value is not None and value >= term.since

    if isinstance(term, TextSearchTerm):
        needle = term.needle.casefold()
        for field_name in term.fields:
            for value in FIELD_VALUES[field_name](journey):
                if value is not None and needle in str(value).casefold():
                    return True
        return False

    if isinstance(term, FieldInSetTerm):
        (value,) = FIELD_VALUES[term.field](journey)
        if term.include_missing and _is_missing(value):
            return True
        return value in term.values

    if isinstance(term, RangeTerm):
        (value,) = FIELD_VALUES[term.field](journey)
        if value is None:
            return False
        if term.minimum is not None and value < term.minimum:
            return False
        if term.maximum is not None and value > term.maximum:
            return False
        return True

    raise TypeError(f"Unsupported filter term: {term!r}")


def matches_all(journey: Journey, terms: Iterable[FilterTerm]) -> bool:
    return all(term_matches(journey, t) for t in terms)
