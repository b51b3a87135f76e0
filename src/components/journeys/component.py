"""
Journeys component - session creation and telemetry ingestion.

Impressions are upserted by interaction_id so a tracker's start report and
its later end report land on the same row; actions are always appended.
Every accepted report advances the journey's end_time, updated_at and
total_duration.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from src.core.entities import ActionEvent, Journey, LocationInfo, SectionImpression
from src.core.ids import generate_id
from src.rules.models import IngestionRules

from ._device import parse_user_agent
from .models import (
    CreateSessionInput,
    CreateSessionOutput,
    IngestOutput,
    JourneyValidationError,
    RecordActionInput,
    RecordImpressionInput,
)
from .ports import GeoLookupPort, JourneyRepoPort, TimePort

logger = logging.getLogger(__name__)


def _now(time_port: TimePort | None) -> datetime:
    if time_port is not None:
        return time_port.now_utc()
    return datetime.now(UTC)


def _required(value: str | None, name: str) -> list[JourneyValidationError]:
    if value is None or not str(value).strip():
        return [
            JourneyValidationError(
                code=f"{name}_required", message=f"{name} is required", field_name=name
            )
        ]
    return []


def _not_found(session_id: str) -> IngestOutput:
    return IngestOutput(
        session_id=session_id,
        errors=[
            JourneyValidationError(
                code="session_not_found",
                message=f"Session not found: {session_id}",
                field_name="session_id",
            )
        ],
        success=False,
    )


def _resolve_location(ip: str | None, geo: GeoLookupPort | None) -> LocationInfo:
    if not ip:
        return LocationInfo()
    if geo is None:
        return LocationInfo(ip=ip)
    try:
        return geo.lookup(ip)
    except Exception:
        logger.warning("Geolocation lookup failed for %s", ip, exc_info=True)
        return LocationInfo(ip=ip)


# --- Component Entry Points ---


def run_create_session(
    inp: CreateSessionInput,
    *,
    repo: JourneyRepoPort,
    geo: GeoLookupPort | None = None,
    time_port: TimePort | None = None,
    rules: IngestionRules | None = None,
) -> CreateSessionOutput:
    """
    Start a journey for a new session.

    Parses the user agent, resolves the client location (best-effort) and
    stores an empty journey under a freshly generated session id.

    Args:
        inp: Visitor id, landing page, user agent, referrer and client IP.
        repo: Journey store.
        geo: Optional IP geolocation port.
        time_port: Optional time port.
        rules: Optional ingestion rules (default referrer).

    Returns:
        CreateSessionOutput with the stored journey or validation errors.
    """
    errors = (
        _required(inp.visitor_id, "visitor_id")
        + _required(inp.landing_page, "landing_page")
        + _required(inp.user_agent, "user_agent")
    )
    if errors:
        return CreateSessionOutput(journey=None, errors=errors, success=False)

    rules = rules or IngestionRules()
    now = _now(time_port)

    journey = Journey(
        session_id=generate_id(int(now.timestamp() * 1000)),
        visitor_id=inp.visitor_id,
        landing_page=inp.landing_page,
        referrer=inp.referrer or rules.default_referrer,
        user_agent=inp.user_agent,
        device=parse_user_agent(inp.user_agent),
        location=_resolve_location(inp.client_ip, geo),
        start_time=now,
        updated_at=now,
        created_at=now,
    )
    repo.create(journey)
    logger.info("Session %s started for visitor %s", journey.session_id, journey.visitor_id)
    return CreateSessionOutput(journey=journey)


def _validate_impression(
    inp: RecordImpressionInput, rules: IngestionRules
) -> list[JourneyValidationError]:
    errors = (
        _required(inp.session_id, "session_id")
        + _required(inp.interaction_id, "interaction_id")
        + _required(inp.section_id, "section_id")
    )

    allowed = rules.allowed_section_ids
    if allowed and inp.section_id and inp.section_id not in allowed:
        errors.append(
            JourneyValidationError(
                code="invalid_section",
                message=f"Unknown section: {inp.section_id}",
                field_name="section_id",
            )
        )

    if inp.duration is not None and not 0 <= inp.duration <= rules.max_duration_ms:
        errors.append(
            JourneyValidationError(
                code="invalid_duration",
                message=f"duration must be between 0 and {rules.max_duration_ms} ms",
                field_name="duration",
            )
        )

    if inp.scroll_depth is not None and not 0 <= inp.scroll_depth <= 100:
        errors.append(
            JourneyValidationError(
                code="invalid_scroll_depth",
                message="scroll_depth must be between 0 and 100",
                field_name="scroll_depth",
            )
        )

    if inp.interactions is not None and inp.interactions < 0:
        errors.append(
            JourneyValidationError(
                code="invalid_interactions",
                message="interactions must not be negative",
                field_name="interactions",
            )
        )

    return errors


def run_record_impression(
    inp: RecordImpressionInput,
    *,
    repo: JourneyRepoPort,
    time_port: TimePort | None = None,
    rules: IngestionRules | None = None,
) -> IngestOutput:
    """
    Merge an impression report into its journey.

    A known interaction_id overwrites duration, scroll_depth and interactions
    of the stored impression; an unknown one appends a new impression.
    """
    rules = rules or IngestionRules()
    errors = _validate_impression(inp, rules)
    if errors:
        return IngestOutput(session_id=inp.session_id, errors=errors, success=False)

    now = _now(time_port)
    impression = SectionImpression(
        interaction_id=inp.interaction_id,
        section_id=inp.section_id,
        viewed_at=now,
        duration=inp.duration or 0,
        scroll_depth=inp.scroll_depth or 0,
        interactions=inp.interactions or 0,
    )
    if not repo.upsert_impression(inp.session_id, impression, now):
        logger.info("Impression dropped, unknown session %s", inp.session_id)
        return _not_found(inp.session_id)

    return IngestOutput(session_id=inp.session_id)


def run_record_action(
    inp: RecordActionInput,
    *,
    repo: JourneyRepoPort,
    time_port: TimePort | None = None,
) -> IngestOutput:
    """Append an action to its journey."""
    errors = (
        _required(inp.session_id, "session_id")
        + _required(inp.type, "type")
        + _required(inp.target, "target")
    )
    if errors:
        return IngestOutput(session_id=inp.session_id, errors=errors, success=False)

    now = _now(time_port)
    action = ActionEvent(type=inp.type, target=inp.target, timestamp=now, metadata=inp.metadata)
    if not repo.append_action(inp.session_id, action, now):
        logger.info("Action dropped, unknown session %s", inp.session_id)
        return _not_found(inp.session_id)

    return IngestOutput(session_id=inp.session_id)
