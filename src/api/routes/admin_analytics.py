"""
Admin Analytics API.

Operator queries over visitor journeys: paginated visitor/session/event
views, CSV export, filter facets and per-visitor detail. Authentication is
enforced in front of this router.

Filter parameters are parsed leniently; bad values fall back to defaults
instead of failing the request.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from src.adapters.clock import SystemClock
from src.adapters.sqlite_db import SQLiteJourneyRepo
from src.api.deps import get_journey_repo, get_rules, get_time_port
from src.api.schemas import (
    EventRowModel,
    FiltersResponse,
    JourneyModel,
    JourneysResponse,
    PaginationModel,
    SessionRowModel,
    StatsModel,
    VisitorJourneysResponse,
    VisitorRowModel,
)
from src.components.journey_export import ExportInput, run_export
from src.components.journey_query import (
    EventRow,
    GetVisitorJourneysInput,
    JourneyFilter,
    JourneyRow,
    QueryJourneysInput,
    SessionRow,
    VisitorRow,
    run_get_facets,
    run_get_visitor_journeys,
    run_query_journeys,
)
from src.core.ports.db import PersistenceError
from src.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependencies ---


def get_journey_filter(
    time_window: str | None = Query(None, alias="filter", description="today, week, month, all"),
    search: str | None = Query(None, description="Session id, visitor id or landing page"),
    interaction: str | None = Query(None, description="Section, action target/type or label"),
    device_type: list[str] = Query([], alias="deviceType"),
    os: list[str] = Query([]),
    browser: list[str] = Query([]),
    location: list[str] = Query([], description="Cities; 'Unknown' matches missing"),
    min_duration: str | None = Query(None, alias="minDuration", description="Seconds"),
    max_duration: str | None = Query(None, alias="maxDuration", description="Seconds"),
) -> JourneyFilter:
    """Collect filter query parameters."""
    return JourneyFilter(
        time_window=time_window,
        search=search,
        interaction=interaction,
        device_types=tuple(device_type),
        os=tuple(os),
        browsers=tuple(browser),
        locations=tuple(location),
        min_duration=min_duration,
        max_duration=max_duration,
    )


def _row_model(row: JourneyRow) -> VisitorRowModel | SessionRowModel | EventRowModel:
    if isinstance(row, VisitorRow):
        return VisitorRowModel.from_row(row)
    if isinstance(row, SessionRow):
        return SessionRowModel.from_row(row)
    if isinstance(row, EventRow):
        return EventRowModel.from_row(row)
    raise TypeError(f"Unexpected row type: {type(row).__name__}")


# --- Routes ---


@router.get("/journeys", response_model=JourneysResponse)
def list_journeys(
    criteria: JourneyFilter = Depends(get_journey_filter),
    mode: str | None = Query(None, description="visitors, sessions or events"),
    sort_field: str | None = Query(None, alias="sortField"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    page: str | None = Query(None),
    limit: str | None = Query(None),
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
    time_port: SystemClock = Depends(get_time_port),
    rules: Rules = Depends(get_rules),
) -> JourneysResponse:
    """
    Query journeys.

    Returns the requested page plus pagination, stats over the full filtered
    set and pageStats over the returned rows.
    """
    try:
        result = run_query_journeys(
            QueryJourneysInput(
                filter=criteria,
                mode=mode or "visitors",
                sort_field=sort_field,
                sort_order=sort_order,
                page=page,
                page_size=limit,
            ),
            repo=repo,
            time_port=time_port,
            rules=rules.query,
        )
    except PersistenceError:
        logger.exception("Journey query failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch journeys"}) from None

    return JourneysResponse(
        mode=result.mode,
        journeys=[_row_model(r) for r in result.rows],
        pagination=PaginationModel.from_pagination(result.pagination),
        stats=StatsModel.from_stats(result.stats),
        page_stats=StatsModel.from_stats(result.page_stats),
    )


@router.get("/export")
def export_journeys(
    criteria: JourneyFilter = Depends(get_journey_filter),
    mode: str | None = Query(None, description="visitors, sessions or events"),
    type_: str | None = Query(None, alias="type", description="Alias of mode"),
    sort_field: str | None = Query(None, alias="sortField"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
    time_port: SystemClock = Depends(get_time_port),
    rules: Rules = Depends(get_rules),
) -> Response:
    """Export every matching row as CSV (no pagination)."""
    try:
        result = run_export(
            ExportInput(
                filter=criteria,
                mode=mode or type_ or "visitors",
                sort_field=sort_field,
                sort_order=sort_order,
            ),
            repo=repo,
            time_port=time_port,
            query_rules=rules.query,
            rules=rules.export,
        )
    except PersistenceError:
        logger.exception("Journey export failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to export journeys"}) from None

    return Response(
        content=result.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.get("/filters", response_model=FiltersResponse)
def get_filters(repo: SQLiteJourneyRepo = Depends(get_journey_repo)) -> FiltersResponse:
    """Distinct locations, devices, OS and browsers for the filter UI."""
    try:
        result = run_get_facets(repo=repo)
    except PersistenceError:
        logger.exception("Filter facets query failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch filters"}) from None

    return FiltersResponse.from_facets(result.facets)


@router.get("/journey/{visitor_id}", response_model=VisitorJourneysResponse)
def get_visitor_journeys(
    visitor_id: str,
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
) -> VisitorJourneysResponse:
    """Every journey of one visitor, newest first."""
    try:
        result = run_get_visitor_journeys(GetVisitorJourneysInput(visitor_id=visitor_id), repo=repo)
    except PersistenceError:
        logger.exception("Visitor journey query failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch journey"}) from None

    if not result.success:
        raise HTTPException(status_code=404, detail={"error": "Visitor not found"})

    return VisitorJourneysResponse(
        visitor_id=visitor_id,
        journeys=[JourneyModel.from_entity(j) for j in result.journeys],
    )
