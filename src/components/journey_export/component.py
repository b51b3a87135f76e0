"""
Journey export component - CSV rendering of unpaginated query results.

Column order per mode is fixed. Durations are seconds with two decimals,
timestamps ISO-8601 UTC with millisecond precision, and event metadata a
JSON string. Event rows quote every field so the metadata column is always
quoted, even for `{}`. Zero rows still produce the header line.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from src.components.journey_query import collect_rows
from src.components.journey_query.models import (
    EventRow,
    JourneyRow,
    QueryMode,
    SessionRow,
    VisitorRow,
)
from src.components.journey_query.ports import JourneyReadRepoPort, TimePort
from src.rules.models import ExportRules, QueryRules

from .models import EVENT_HEADER, ExportInput, ExportOutput, summary_header

logger = logging.getLogger(__name__)


def format_seconds(ms: int | None) -> str:
    return f"{(ms or 0) / 1000:.2f}"


def format_timestamp(dt: datetime | None) -> str:
    if dt is None:
        return ""
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _event_record(row: EventRow) -> list[str]:
    return [
        row.visitor_id,
        row.session_id,
        format_timestamp(row.timestamp),
        row.type,
        row.detail or "",
        format_seconds(row.duration),
        json.dumps(row.metadata or {}, separators=(",", ":")),
    ]


def _summary_record(row: VisitorRow | SessionRow) -> list[str]:
    if isinstance(row, VisitorRow):
        visitor_id, session_id = row.visitor_id, row.session_id
        start, last_active = row.start_time, row.updated_at
        duration, count = row.total_duration, row.total_sessions
        landing_page, device = row.landing_page, row.device
    else:
        journey = row.journey
        visitor_id, session_id = journey.visitor_id, journey.session_id
        start, last_active = journey.start_time, journey.updated_at
        duration, count = journey.total_duration, row.total_events
        landing_page, device = journey.landing_page, journey.device

    return [
        visitor_id,
        session_id,
        format_timestamp(start),
        format_timestamp(last_active),
        format_seconds(duration),
        str(count),
        landing_page or "",
        (device.type if device else None) or "unknown",
        (device.os if device else None) or "unknown",
        (device.browser if device else None) or "unknown",
    ]


def render_csv(mode: QueryMode, rows: Sequence[JourneyRow]) -> str:
    """Render rows of one mode as CSV text."""
    output = io.StringIO()
    quoting = csv.QUOTE_ALL if mode == "events" else csv.QUOTE_MINIMAL
    writer = csv.writer(output, quoting=quoting, lineterminator="\n")

    if mode == "events":
        writer.writerow(EVENT_HEADER)
        for row in rows:
            writer.writerow(_event_record(row))  # type: ignore[arg-type]
    else:
        writer.writerow(summary_header(mode))
        for row in rows:
            writer.writerow(_summary_record(row))  # type: ignore[arg-type]

    return output.getvalue()


def export_filename(prefix: str, mode: QueryMode, now: datetime) -> str:
    return f"{prefix}-{mode}-{now.astimezone(UTC).date().isoformat()}.csv"


# --- Component Entry Points ---


def run_export(
    inp: ExportInput,
    *,
    repo: JourneyReadRepoPort,
    time_port: TimePort | None = None,
    query_rules: QueryRules | None = None,
    rules: ExportRules | None = None,
) -> ExportOutput:
    """
    Export every journey row matching the filter as CSV.

    Storage errors propagate; no partial CSV is produced.
    """
    rules = rules or ExportRules()
    now = time_port.now_utc() if time_port is not None else datetime.now(UTC)

    mode, rows = collect_rows(
        inp.filter,
        inp.mode,
        repo=repo,
        time_port=time_port,
        sort_field=inp.sort_field,
        sort_order=inp.sort_order,
        rules=query_rules,
    )
    content = render_csv(mode, rows)
    logger.info("Exported %d %s rows", len(rows), mode)

    return ExportOutput(
        mode=mode,
        filename=export_filename(rules.filename_prefix, mode, now),
        content=content,
        row_count=len(rows),
    )
