"""
Journeys component - session creation and telemetry ingestion.
"""

from ._device import parse_user_agent
from .component import run_create_session, run_record_action, run_record_impression
from .models import (
    CreateSessionInput,
    CreateSessionOutput,
    IngestOutput,
    JourneyValidationError,
    RecordActionInput,
    RecordImpressionInput,
)
from .ports import GeoLookupPort, JourneyRepoPort, TimePort

__all__ = [
    # Entry points
    "run_create_session",
    "run_record_action",
    "run_record_impression",
    # Input models
    "CreateSessionInput",
    "RecordActionInput",
    "RecordImpressionInput",
    # Output models
    "CreateSessionOutput",
    "IngestOutput",
    "JourneyValidationError",
    # Ports
    "GeoLookupPort",
    "JourneyRepoPort",
    "TimePort",
    # Helpers
    "parse_user_agent",
]
