"""
Journey export component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.components.journey_query.models import JourneyFilter, QueryMode

EVENT_HEADER: tuple[str, ...] = (
    "Visitor ID",
    "Session ID",
    "Timestamp",
    "Type",
    "Detail",
    "Duration (s)",
    "Metadata",
)


def summary_header(mode: QueryMode) -> tuple[str, ...]:
    """Header for visitor and session exports; they differ in one column."""
    return (
        "Visitor ID",
        "Session ID",
        "Start Time",
        "Last Active",
        "Duration (s)",
        "Total Sessions" if mode == "visitors" else "Interactions",
        "Landing Page",
        "Device Type",
        "OS",
        "Browser",
    )


@dataclass(frozen=True)
class ExportValidationError:
    code: str
    message: str
    field_name: str | None = None


@dataclass(frozen=True)
class ExportInput:
    """Same criteria as a query, without paging."""

    filter: JourneyFilter = field(default_factory=JourneyFilter)
    mode: str = "visitors"
    sort_field: str | None = None
    sort_order: str | None = None


@dataclass(frozen=True)
class ExportOutput:
    mode: QueryMode
    filename: str
    content: str
    row_count: int
    errors: list[ExportValidationError] = field(default_factory=list)
    success: bool = True
