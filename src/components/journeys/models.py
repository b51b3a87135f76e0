"""
Journey ingestion component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.core.entities import Journey

# --- Validation Error ---


@dataclass(frozen=True)
class JourneyValidationError:
    """Journey ingestion error."""

    code: str
    message: str
    field_name: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class CreateSessionInput:
    """Input for starting a new session journey."""

    visitor_id: str
    landing_page: str
    user_agent: str
    referrer: str | None = None
    client_ip: str | None = None


@dataclass(frozen=True)
class RecordImpressionInput:
    """
    Impression report.

    The same interaction_id is sent for the start report and the later
    end/flush report; the second overwrites the first.
    """

    session_id: str
    interaction_id: str
    section_id: str
    duration: int | None = None
    scroll_depth: int | None = None
    interactions: int | None = None


@dataclass(frozen=True)
class RecordActionInput:
    session_id: str
    type: str
    target: str
    metadata: dict[str, Any] | None = None


# --- Output Models ---


@dataclass(frozen=True)
class CreateSessionOutput:
    journey: Journey | None
    errors: list[JourneyValidationError] = field(default_factory=list)
    success: bool = True

    @property
    def session_id(self) -> str | None:
        return self.journey.session_id if self.journey else None


@dataclass(frozen=True)
class IngestOutput:
    """Ack for an impression or action report."""

    session_id: str
    errors: list[JourneyValidationError] = field(default_factory=list)
    success: bool = True

    @property
    def not_found(self) -> bool:
        return any(e.code == "session_not_found" for e in self.errors)
