"""
Public analytics API.

Session creation, impression and action ingestion, session lookup and
totals. Telemetry callers never retry, so responses only signal outcome.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.adapters.clock import SystemClock
from src.adapters.geo_ipapi import IpApiGeoLookup
from src.adapters.sqlite_db import SQLiteJourneyRepo
from src.api.deps import get_geo_lookup, get_journey_repo, get_rules, get_time_port
from src.api.schemas import (
    AckResponse,
    ActionRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    JourneyModel,
    SessionResponse,
    TotalResponse,
    TrackRequest,
)
from src.components.journey_query import GetSessionInput, run_get_session, run_get_totals
from src.components.journeys import (
    CreateSessionInput,
    IngestOutput,
    RecordActionInput,
    RecordImpressionInput,
    run_create_session,
    run_record_action,
    run_record_impression,
)
from src.core.ports.db import PersistenceError
from src.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()


def get_client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop, else X-Real-IP, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def _error_detail(errors: list[Any]) -> dict[str, Any]:
    return {
        "success": False,
        "errors": [{"code": e.code, "message": e.message, "field": e.field_name} for e in errors],
    }


def _raise_for_ingest(result: IngestOutput) -> None:
    if result.success:
        return
    if result.not_found:
        raise HTTPException(status_code=404, detail=_error_detail(result.errors))
    raise HTTPException(status_code=400, detail=_error_detail(result.errors))


# --- Routes ---


@router.post("/session", response_model=CreateSessionResponse)
def create_session(
    request: Request,
    body: CreateSessionRequest,
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
    geo: IpApiGeoLookup = Depends(get_geo_lookup),
    time_port: SystemClock = Depends(get_time_port),
    rules: Rules = Depends(get_rules),
) -> CreateSessionResponse:
    """Start a session journey for a visitor."""
    try:
        result = run_create_session(
            CreateSessionInput(
                visitor_id=body.visitor_id or "",
                landing_page=body.landing_page or "",
                user_agent=body.user_agent or "",
                referrer=body.referrer,
                client_ip=get_client_ip(request),
            ),
            repo=repo,
            geo=geo,
            time_port=time_port,
            rules=rules.ingestion,
        )
    except PersistenceError:
        logger.exception("Session initialization failed")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to initialize session"}
        ) from None

    if not result.success or result.journey is None:
        raise HTTPException(status_code=400, detail=_error_detail(result.errors))

    return CreateSessionResponse(
        session_id=result.journey.session_id, visitor_id=result.journey.visitor_id
    )


@router.get("/session", response_model=SessionResponse)
def get_session(
    session_id: str | None = Query(None, alias="sessionId"),
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
) -> SessionResponse:
    """Fetch one journey by session id."""
    try:
        result = run_get_session(GetSessionInput(session_id=session_id or ""), repo=repo)
    except PersistenceError:
        logger.exception("Get session failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch session"}) from None

    if result.journey is None:
        status_code = 404 if any(e.code == "session_not_found" for e in result.errors) else 400
        raise HTTPException(status_code=status_code, detail=_error_detail(result.errors))

    return SessionResponse(journey=JourneyModel.from_entity(result.journey))


@router.post("/track", response_model=AckResponse)
def track_impression(
    body: TrackRequest,
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
    time_port: SystemClock = Depends(get_time_port),
    rules: Rules = Depends(get_rules),
) -> AckResponse:
    """Record a section impression (upsert by interactionId)."""
    try:
        result = run_record_impression(
            RecordImpressionInput(
                session_id=body.session_id or "",
                interaction_id=body.interaction_id or "",
                section_id=body.section_id or "",
                duration=body.duration,
                scroll_depth=body.scroll_depth,
                interactions=body.interactions,
            ),
            repo=repo,
            time_port=time_port,
            rules=rules.ingestion,
        )
    except PersistenceError:
        logger.exception("Impression tracking failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to track section"}) from None

    _raise_for_ingest(result)
    return AckResponse()


@router.post("/action", response_model=AckResponse)
def track_action(
    body: ActionRequest,
    repo: SQLiteJourneyRepo = Depends(get_journey_repo),
    time_port: SystemClock = Depends(get_time_port),
) -> AckResponse:
    """Append an action to a journey."""
    try:
        result = run_record_action(
            RecordActionInput(
                session_id=body.session_id or "",
                type=body.type or "",
                target=body.target or "",
                metadata=body.metadata,
            ),
            repo=repo,
            time_port=time_port,
        )
    except PersistenceError:
        logger.exception("Action tracking failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to track action"}) from None

    _raise_for_ingest(result)
    return AckResponse()


@router.get("/total", response_model=TotalResponse)
def get_total(repo: SQLiteJourneyRepo = Depends(get_journey_repo)) -> TotalResponse:
    """Total sessions and distinct visitors."""
    try:
        result = run_get_totals(repo=repo)
    except PersistenceError:
        logger.exception("Totals query failed")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch totals"}) from None

    return TotalResponse(total_visits=result.total_visits, unique_visitors=result.unique_visitors)

