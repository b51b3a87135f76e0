"""
Journey query component - filtering, grouping, sorting and pagination.

Filter criteria are compiled into FilterTerm values and executed by the
storage port; grouping, sorting, pagination and stats happen here so every
storage engine yields the same rows.

Invariants:
- Bad filter, sort or paging input falls back to defaults, never fails the query
- stats covers the whole filtered set, page_stats only the returned page
- Event rows are always chronological, whatever sort was requested
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from src.rules.models import QueryRules

from ._aggregate import (
    build_rows,
    compute_stats,
    paginate,
    parse_positive_int,
    resolve_sort,
    sort_rows,
)
from ._filters import build_filter_terms
from .models import (
    QUERY_MODES,
    UNKNOWN_LOCATION,
    FacetsOutput,
    FilterFacets,
    GetSessionInput,
    GetVisitorJourneysInput,
    JourneyFilter,
    JourneyOutput,
    JourneyRow,
    QueryJourneysInput,
    QueryJourneysOutput,
    QueryMode,
    QueryValidationError,
    TotalsOutput,
    VisitorJourneysOutput,
)
from .ports import JourneyReadRepoPort, TimePort

logger = logging.getLogger(__name__)


def _now(time_port: TimePort | None) -> datetime:
    if time_port is not None:
        return time_port.now_utc()
    return datetime.now(UTC)


def normalize_mode(mode: str | None) -> QueryMode:
    """Map a requested mode to visitors/sessions/events. Unknown -> visitors."""
    if mode and mode.lower() in QUERY_MODES:
        return mode.lower()  # type: ignore[return-value]
    if mode:
        logger.debug("Unknown query mode %r, using visitors", mode)
    return "visitors"


def collect_rows(
    criteria: JourneyFilter,
    mode: str | None,
    *,
    repo: JourneyReadRepoPort,
    time_port: TimePort | None = None,
    sort_field: str | None = None,
    sort_order: str | None = None,
    rules: QueryRules | None = None,
) -> tuple[QueryMode, list[JourneyRow]]:
    """
    Filter, shape and sort rows without pagination.

    Shared by the paginated query and the CSV export.
    """
    rules = rules or QueryRules()
    resolved_mode = normalize_mode(mode)
    terms = build_filter_terms(criteria, _now(time_port))
    journeys = repo.find(terms)

    rows = build_rows(journeys, resolved_mode)
    field, order = resolve_sort(
        resolved_mode,
        sort_field,
        sort_order,
        default_field=rules.default_sort_field,
        default_order=rules.default_sort_order,
    )
    return resolved_mode, sort_rows(rows, resolved_mode, field, order)


# --- Component Entry Points ---


def run_query_journeys(
    inp: QueryJourneysInput,
    *,
    repo: JourneyReadRepoPort,
    time_port: TimePort | None = None,
    rules: QueryRules | None = None,
) -> QueryJourneysOutput:
    """
    Query journeys in visitor, session or event view.

    Args:
        inp: Filter criteria, mode, sort and paging (all lenient).
        repo: Journey read port.
        time_port: Optional time port (time windows are relative to now).
        rules: Optional query rules (page size defaults and cap, default sort).

    Returns:
        QueryJourneysOutput with the page of rows, pagination and stats.
    """
    rules = rules or QueryRules()
    mode, rows = collect_rows(
        inp.filter,
        inp.mode,
        repo=repo,
        time_port=time_port,
        sort_field=inp.sort_field,
        sort_order=inp.sort_order,
        rules=rules,
    )

    page = parse_positive_int(inp.page, 1)
    page_size = min(parse_positive_int(inp.page_size, rules.default_page_size), rules.max_page_size)
    page_rows, pagination = paginate(rows, page, page_size)

    return QueryJourneysOutput(
        mode=mode,
        rows=tuple(page_rows),
        pagination=pagination,
        stats=compute_stats(rows, mode),
        page_stats=compute_stats(page_rows, mode),
    )


def run_get_facets(*, repo: JourneyReadRepoPort) -> FacetsOutput:
    """
    Distinct values for the filter UI.

    Missing or empty countries and cities are reported as "Unknown".
    """
    raw = repo.get_facet_values()

    locations: dict[str, set[str]] = {}
    for country, city in raw.get("locations", []):
        locations.setdefault(country or UNKNOWN_LOCATION, set()).add(city or UNKNOWN_LOCATION)

    def _distinct(values: list[str | None]) -> list[str]:
        return sorted({v for v in values if v})

    return FacetsOutput(
        facets=FilterFacets(
            locations={country: sorted(cities) for country, cities in sorted(locations.items())},
            devices=_distinct(raw.get("devices", [])),
            os=_distinct(raw.get("os", [])),
            browsers=_distinct(raw.get("browsers", [])),
        )
    )


def run_get_session(inp: GetSessionInput, *, repo: JourneyReadRepoPort) -> JourneyOutput:
    """Look up one journey by session id."""
    if not inp.session_id or not inp.session_id.strip():
        return JourneyOutput(
            journey=None,
            errors=[
                QueryValidationError(
                    code="session_id_required",
                    message="session_id is required",
                    field_name="session_id",
                )
            ],
            success=False,
        )

    journey = repo.get_by_session_id(inp.session_id)
    if journey is None:
        return JourneyOutput(
            journey=None,
            errors=[
                QueryValidationError(
                    code="session_not_found",
                    message=f"Session not found: {inp.session_id}",
                    field_name="session_id",
                )
            ],
            success=False,
        )
    return JourneyOutput(journey=journey)


def run_get_visitor_journeys(
    inp: GetVisitorJourneysInput, *, repo: JourneyReadRepoPort
) -> VisitorJourneysOutput:
    """All journeys of one visitor, newest first."""
    journeys = repo.list_by_visitor(inp.visitor_id)
    if not journeys:
        return VisitorJourneysOutput(
            journeys=(),
            errors=[
                QueryValidationError(
                    code="visitor_not_found",
                    message=f"No journeys for visitor: {inp.visitor_id}",
                    field_name="visitor_id",
                )
            ],
            success=False,
        )
    return VisitorJourneysOutput(journeys=tuple(journeys))


def run_get_totals(*, repo: JourneyReadRepoPort) -> TotalsOutput:
    totals = repo.get_totals()
    return TotalsOutput(
        total_visits=totals.get("total_visits", 0),
        unique_visitors=totals.get("unique_visitors", 0),
    )
