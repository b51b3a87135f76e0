"""
Journey query component input/output models.

Filter criteria arrive as loosely-typed operator input (JourneyFilter) and are
compiled into explicit FilterTerm values that any storage executor can apply.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from src.core.entities import DeviceInfo, Journey, LocationInfo

# --- Validation Error ---


@dataclass(frozen=True)
class QueryValidationError:
    """Journey query error."""

    code: str
    message: str
    field_name: str | None = None


# --- Enums ---


QueryMode = Literal["visitors", "sessions", "events"]
SortOrder = Literal["asc", "desc"]
TimeWindow = Literal["today", "week", "month", "all"]

QUERY_MODES: tuple[QueryMode, ...] = ("visitors", "sessions", "events")
UNKNOWN_LOCATION = "Unknown"


# --- Filter Terms ---


@dataclass(frozen=True)
class TimeWindowTerm:
    """field >= since."""

    since: datetime
    field: str = "start_time"


@dataclass(frozen=True)
class TextSearchTerm:
    """Case-insensitive substring match on any of fields (OR)."""

    needle: str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class FieldInSetTerm:
    """
    field value is one of values.

    include_missing also admits rows whose value is absent, null or empty.
    """

    field: str
    values: frozenset[str]
    include_missing: bool = False


@dataclass(frozen=True)
class RangeTerm:
    """minimum <= field <= maximum; either bound optional. Null never matches."""

    field: str
    minimum: float | None = None
    maximum: float | None = None


FilterTerm = TimeWindowTerm | TextSearchTerm | FieldInSetTerm | RangeTerm


# --- Input Models ---


@dataclass(frozen=True)
class JourneyFilter:
    """
    Operator filter criteria. Every criterion is optional.

    Durations are seconds; bad values are ignored rather than rejected.
    """

    time_window: str | None = None
    search: str | None = None
    interaction: str | None = None
    device_types: tuple[str, ...] = ()
    os: tuple[str, ...] = ()
    browsers: tuple[str, ...] = ()
    locations: tuple[str, ...] = ()
    min_duration: str | float | None = None
    max_duration: str | float | None = None


@dataclass(frozen=True)
class QueryJourneysInput:
    """Input for a paginated journey query."""

    filter: JourneyFilter = field(default_factory=JourneyFilter)
    mode: str = "visitors"
    sort_field: str | None = None
    sort_order: str | None = None
    page: str | int | None = None
    page_size: str | int | None = None


@dataclass(frozen=True)
class GetSessionInput:
    session_id: str


@dataclass(frozen=True)
class GetVisitorJourneysInput:
    visitor_id: str


# --- Row Models ---


@dataclass(frozen=True)
class VisitorRow:
    """One visitor, projected from their most recently updated session."""

    visitor_id: str
    session_id: str
    start_time: datetime
    updated_at: datetime
    end_time: datetime | None
    first_seen: datetime
    total_sessions: int
    landing_page: str
    referrer: str | None
    device: DeviceInfo
    location: LocationInfo
    total_duration: int
    total_events: int


@dataclass(frozen=True)
class SessionRow:
    """One journey, passed through."""

    journey: Journey
    total_events: int

    @property
    def total_duration(self) -> int:
        return self.journey.total_duration or 0


@dataclass(frozen=True)
class EventRow:
    """One impression ("View") or action ("Action") flattened out of a journey."""

    visitor_id: str
    session_id: str
    type: Literal["View", "Action"]
    timestamp: datetime
    detail: str
    duration: int
    metadata: dict[str, Any]

    @property
    def total_duration(self) -> int:
        return self.duration


JourneyRow = VisitorRow | SessionRow | EventRow


# --- Output Models ---


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    page_size: int
    pages: int


@dataclass(frozen=True)
class QueryStats:
    total_sessions: int
    total_duration: int
    total_events: int


@dataclass(frozen=True)
class QueryJourneysOutput:
    """
    Query result.

    stats covers the whole filtered set; page_stats only the returned rows.
    """

    mode: QueryMode
    rows: tuple[JourneyRow, ...]
    pagination: Pagination
    stats: QueryStats
    page_stats: QueryStats
    errors: list[QueryValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class FilterFacets:
    locations: dict[str, list[str]]
    devices: list[str]
    os: list[str]
    browsers: list[str]


@dataclass(frozen=True)
class FacetsOutput:
    facets: FilterFacets
    errors: list[QueryValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class JourneyOutput:
    journey: Journey | None
    errors: list[QueryValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class VisitorJourneysOutput:
    journeys: tuple[Journey, ...]
    errors: list[QueryValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class TotalsOutput:
    total_visits: int
    unique_visitors: int
    errors: list[QueryValidationError] = field(default_factory=list)
    success: bool = True
