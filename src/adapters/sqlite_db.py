"""
SQLite journey store.

Journeys live in user_journeys; impressions and actions in child tables so
that concurrent writes to one session never race on a shared document:
- section_impressions is upserted on (session_id, interaction_id)
- journey_actions is append-only

Filter terms are compiled to SQL; nested fields (events/actions) become
EXISTS subqueries against the child tables.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from src.components.journey_query.models import (
    FieldInSetTerm,
    FilterTerm,
    RangeTerm,
    TextSearchTerm,
    TimeWindowTerm,
)
from src.core.entities import (
    ActionEvent,
    DeviceInfo,
    Journey,
    LocationInfo,
    SectionImpression,
)
from src.core.ports.db import PersistenceError

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def format_dt(dt: datetime | None) -> str | None:
    """Serialize a datetime as UTC ISO-8601 (lexicographically sortable)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s) if s else None


def _casefold(value: Any) -> str | None:
    return None if value is None else str(value).casefold()


def _elapsed_ms(start: datetime, now: datetime) -> int:
    return max(0, int((now - start).total_seconds() * 1000))


# -----------------------------------------------------------------------------
# Filter compilation
# -----------------------------------------------------------------------------

_COLUMNS: dict[str, str] = {
    "session_id": "j.session_id",
    "visitor_id": "j.visitor_id",
    "landing_page": "j.landing_page",
    "start_time": "j.start_time",
    "total_duration": "j.total_duration",
    "device.type": "j.device_type",
    "device.os": "j.device_os",
    "device.browser": "j.device_browser",
    "location.city": "j.location_city",
}

_NESTED: dict[str, tuple[str, str]] = {
    "events.section_id": ("section_impressions", "c.section_id"),
    "actions.target": ("journey_actions", "c.target"),
    "actions.type": ("journey_actions", "c.type"),
    "actions.metadata.label": ("journey_actions", "json_extract(c.metadata, '$.label')"),
}


def _text_clause(field: str, needle: str) -> tuple[str, list[Any]]:
    if field in _COLUMNS:
        return f"instr(casefold({_COLUMNS[field]}), ?) > 0", [needle]
    table, expr = _NESTED[field]
    return (
        f"EXISTS (SELECT 1 FROM {table} c WHERE c.session_id = j.session_id "
        f"AND instr(casefold({expr}), ?) > 0)",
        [needle],
    )


def compile_terms(terms: Iterable[FilterTerm]) -> tuple[str, list[Any]]:
    """Compile filter terms into a WHERE fragment over user_journeys j."""
    query = "1=1"
    params: list[Any] = []

    for term in terms:
        if isinstance(term, TimeWindowTerm):
            query += f" AND {_COLUMNS[term.field]} >= ?"
            params.append(format_dt(term.since))

        elif isinstance(term, TextSearchTerm):
            needle = term.needle.casefold()
            clauses = []
            for field in term.fields:
                clause, clause_params = _text_clause(field, needle)
                clauses.append(clause)
                params.extend(clause_params)
            query += f" AND ({' OR '.join(clauses) or '0'})"

        elif isinstance(term, FieldInSetTerm):
            col = _COLUMNS[term.field]
            clauses = []
            if term.values:
                values = sorted(term.values)
                clauses.append(f"{col} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            if term.include_missing:
                clauses.append(f"{col} IS NULL OR {col} = ''")
            query += f" AND ({' OR '.join(clauses) or '0'})"

        elif isinstance(term, RangeTerm):
            col = _COLUMNS[term.field]
            if term.minimum is not None:
                query += f" AND {col} >= ?"
                params.append(term.minimum)
            if term.maximum is not None:
                query += f" AND {col} <= ?"
                params.append(term.maximum)

        else:
            raise TypeError(f"Unsupported filter term: {term!r}")

    return query, params


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection
        if connection is not None:
            self._configure(connection)

    def _configure(self, conn: sqlite3.Connection) -> None:
        conn.row_factory = dict_factory
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON;")

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        self._configure(conn)
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# Journey Repository
# -----------------------------------------------------------------------------


class SQLiteJourneyRepo(SQLiteRepoBase):
    """SQLite implementation of the journey store."""

    def create(self, journey: Journey) -> Journey:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO user_journeys (
                    session_id, visitor_id, landing_page, referrer, user_agent,
                    device_type, device_os, device_browser, device_name,
                    location_country, location_region, location_city, location_ip,
                    start_time, end_time, total_duration, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    journey.session_id,
                    journey.visitor_id,
                    journey.landing_page,
                    journey.referrer,
                    journey.user_agent,
                    journey.device.type,
                    journey.device.os,
                    journey.device.browser,
                    journey.device.device_name,
                    journey.location.country,
                    journey.location.region,
                    journey.location.city,
                    journey.location.ip,
                    format_dt(journey.start_time),
                    format_dt(journey.end_time),
                    journey.total_duration,
                    format_dt(journey.created_at or journey.start_time),
                    format_dt(journey.updated_at),
                ),
            )
            for impression in journey.events:
                self._insert_impression(conn, journey.session_id, impression)
            for action in journey.actions:
                self._insert_action(conn, journey.session_id, action)
            if self._should_close():
                conn.commit()
            return journey
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create journey {journey.session_id}: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def get_by_session_id(self, session_id: str) -> Journey | None:
        found = self.find([FieldInSetTerm(field="session_id", values=frozenset({session_id}))])
        return found[0] if found else None

    def list_by_visitor(self, visitor_id: str) -> list[Journey]:
        return self.find([FieldInSetTerm(field="visitor_id", values=frozenset({visitor_id}))])

    def upsert_impression(
        self, session_id: str, impression: SectionImpression, now: datetime
    ) -> bool:
        """
        Insert or overwrite an impression keyed by interaction_id.

        Returns False when the session does not exist.
        """
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT start_time FROM user_journeys WHERE session_id = ?", (session_id,)
            ).fetchone()
            if row is None:
                return False

            self._insert_impression(conn, session_id, impression)
            self._touch(conn, session_id, parse_dt(row["start_time"]), now)
            if self._should_close():
                conn.commit()
            return True
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record impression for {session_id}: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def append_action(self, session_id: str, action: ActionEvent, now: datetime) -> bool:
        """Append an action. Returns False when the session does not exist."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT start_time FROM user_journeys WHERE session_id = ?", (session_id,)
            ).fetchone()
            if row is None:
                return False

            self._insert_action(conn, session_id, action)
            self._touch(conn, session_id, parse_dt(row["start_time"]), now)
            if self._should_close():
                conn.commit()
            return True
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record action for {session_id}: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def find(self, terms: list[FilterTerm]) -> list[Journey]:
        where, params = compile_terms(terms)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT j.* FROM user_journeys j WHERE {where} "
                "ORDER BY j.start_time DESC, j.session_id",
                params,
            ).fetchall()
            if not rows:
                return []

            journeys = {r["session_id"]: self._map_journey(r) for r in rows}
            subquery = f"SELECT j.session_id FROM user_journeys j WHERE {where}"

            for r in conn.execute(
                f"SELECT si.* FROM section_impressions si WHERE si.session_id IN ({subquery}) "
                "ORDER BY si.id",
                params,
            ).fetchall():
                journeys[r["session_id"]].events.append(self._map_impression(r))

            for r in conn.execute(
                f"SELECT ja.* FROM journey_actions ja WHERE ja.session_id IN ({subquery}) "
                "ORDER BY ja.id",
                params,
            ).fetchall():
                journeys[r["session_id"]].actions.append(self._map_action(r))

            return list(journeys.values())
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to query journeys: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def get_facet_values(self) -> dict[str, Any]:
        conn = self._get_conn()
        try:
            locations = [
                (r["country"], r["city"])
                for r in conn.execute(
                    "SELECT DISTINCT location_country AS country, location_city AS city "
                    "FROM user_journeys"
                ).fetchall()
            ]
            facets: dict[str, Any] = {"locations": locations}
            for key, column in (
                ("devices", "device_type"),
                ("os", "device_os"),
                ("browsers", "device_browser"),
            ):
                facets[key] = [
                    r["value"]
                    for r in conn.execute(
                        f"SELECT DISTINCT {column} AS value FROM user_journeys"
                    ).fetchall()
                ]
            return facets
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read filter facets: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def get_totals(self) -> dict[str, int]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS total_visits, COUNT(DISTINCT visitor_id) AS unique_visitors "
                "FROM user_journeys"
            ).fetchone()
            return {
                "total_visits": row["total_visits"] or 0,
                "unique_visitors": row["unique_visitors"] or 0,
            }
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read totals: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def _insert_impression(
        self, conn: sqlite3.Connection, session_id: str, impression: SectionImpression
    ) -> None:
        conn.execute(
            """
            INSERT INTO section_impressions (
                session_id, interaction_id, section_id, viewed_at,
                duration, scroll_depth, interactions
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (session_id, interaction_id) DO UPDATE SET
                duration = excluded.duration,
                scroll_depth = excluded.scroll_depth,
                interactions = excluded.interactions
            """,
            (
                session_id,
                impression.interaction_id,
                impression.section_id,
                format_dt(impression.viewed_at),
                impression.duration,
                impression.scroll_depth,
                impression.interactions,
            ),
        )

    def _insert_action(self, conn: sqlite3.Connection, session_id: str, action: ActionEvent) -> None:
        conn.execute(
            """
            INSERT INTO journey_actions (session_id, type, target, timestamp, metadata)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                session_id,
                action.type,
                action.target,
                format_dt(action.timestamp),
                json.dumps(action.metadata) if action.metadata is not None else None,
            ),
        )

    def _touch(
        self, conn: sqlite3.Connection, session_id: str, start: datetime | None, now: datetime
    ) -> None:
        total = _elapsed_ms(start, now) if start is not None else None
        conn.execute(
            """
            UPDATE user_journeys
            SET end_time = ?, updated_at = ?, total_duration = ?
            WHERE session_id = ?
            """,
            (format_dt(now), format_dt(now), total, session_id),
        )

    def _map_journey(self, row: dict[str, Any]) -> Journey:
        return Journey(
            session_id=row["session_id"],
            visitor_id=row["visitor_id"],
            landing_page=row["landing_page"],
            referrer=row["referrer"],
            user_agent=row["user_agent"] or "",
            device=DeviceInfo(
                type=row["device_type"] or "desktop",
                os=row["device_os"],
                browser=row["device_browser"],
                device_name=row["device_name"],
            ),
            location=LocationInfo(
                country=row["location_country"],
                region=row["location_region"],
                city=row["location_city"],
                ip=row["location_ip"],
            ),
            start_time=parse_dt(row["start_time"]),  # type: ignore[arg-type]
            end_time=parse_dt(row["end_time"]),
            total_duration=row["total_duration"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),  # type: ignore[arg-type]
        )

    def _map_impression(self, row: dict[str, Any]) -> SectionImpression:
        return SectionImpression(
            interaction_id=row["interaction_id"],
            section_id=row["section_id"],
            viewed_at=parse_dt(row["viewed_at"]),  # type: ignore[arg-type]
            duration=row["duration"] or 0,
            scroll_depth=row["scroll_depth"] or 0,
            interactions=row["interactions"] or 0,
        )

    def _map_action(self, row: dict[str, Any]) -> ActionEvent:
        return ActionEvent(
            type=row["type"],
            target=row["target"],
            timestamp=parse_dt(row["timestamp"]),  # type: ignore[arg-type]
            metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        )
