"""
Journey query component - filter, aggregate and paginate journeys.
"""

from ._aggregate import build_event_rows, build_session_rows, build_visitor_rows
from ._filters import build_filter_terms, matches_all, term_matches
from .component import (
    collect_rows,
    normalize_mode,
    run_get_facets,
    run_get_session,
    run_get_totals,
    run_get_visitor_journeys,
    run_query_journeys,
)
from .models import (
    EventRow,
    FacetsOutput,
    FieldInSetTerm,
    FilterFacets,
    FilterTerm,
    GetSessionInput,
    GetVisitorJourneysInput,
    JourneyFilter,
    JourneyOutput,
    JourneyRow,
    Pagination,
    QueryJourneysInput,
    QueryJourneysOutput,
    QueryMode,
    QueryStats,
    QueryValidationError,
    RangeTerm,
    SessionRow,
    TextSearchTerm,
    TimeWindowTerm,
    TotalsOutput,
    VisitorJourneysOutput,
    VisitorRow,
)
from .ports import JourneyReadRepoPort, TimePort

__all__ = [
    # Entry points
    "collect_rows",
    "run_get_facets",
    "run_get_session",
    "run_get_totals",
    "run_get_visitor_journeys",
    "run_query_journeys",
    # Input models
    "GetSessionInput",
    "GetVisitorJourneysInput",
    "JourneyFilter",
    "QueryJourneysInput",
    # Filter terms
    "FieldInSetTerm",
    "FilterTerm",
    "RangeTerm",
    "TextSearchTerm",
    "TimeWindowTerm",
    "build_filter_terms",
    "matches_all",
    "term_matches",
    # Output models
    "EventRow",
    "FacetsOutput",
    "FilterFacets",
    "JourneyOutput",
    "JourneyRow",
    "Pagination",
    "QueryJourneysOutput",
    "QueryMode",
    "QueryStats",
    "QueryValidationError",
    "SessionRow",
    "TotalsOutput",
    "VisitorJourneysOutput",
    "VisitorRow",
    # Row builders
    "build_event_rows",
    "build_session_rows",
    "build_visitor_rows",
    "normalize_mode",
    # Ports
    "JourneyReadRepoPort",
    "TimePort",
]
