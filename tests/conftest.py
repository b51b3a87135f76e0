from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from src.adapters.memory_db import InMemoryJourneyRepo
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite_db import SQLiteJourneyRepo
from src.core.entities import (
    ActionEvent,
    DeviceInfo,
    Journey,
    LocationInfo,
    SectionImpression,
)
from src.core.ports.telemetry import TelemetryTransportError
from src.rules.loader import load_rules
from src.rules.models import Rules

PROJECT_ROOT = Path(__file__).resolve().parents[1]
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


# --- Time ---


class _FakeTimerHandle:
    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """
    Hand-driven clock and timer.

    Serves TimePort, ClockPort and TimerPort. advance() fires due timers in
    order, with the clock set to each timer's due time as it fires.
    """

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self._ms = int((start - EPOCH).total_seconds() * 1000)
        self.timers: list[_FakeTimerHandle] = []

    def now_ms(self) -> int:
        return self._ms

    def now_utc(self) -> datetime:
        return EPOCH + timedelta(milliseconds=self._ms)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _FakeTimerHandle:
        handle = _FakeTimerHandle(self._ms + delay_ms, callback)
        self.timers.append(handle)
        return handle

    def pending_timers(self) -> list[_FakeTimerHandle]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, ms: int) -> None:
        target = self._ms + ms
        while True:
            due = [t for t in self.pending_timers() if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due_ms)
            self._ms = timer.due_ms
            timer.fired = True
            timer.callback()
        self._ms = target

    def set(self, when: datetime) -> None:
        self._ms = int((when - EPOCH).total_seconds() * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# --- Rules ---


@pytest.fixture
def rules() -> Rules:
    """Real rules from the project root."""
    return load_rules(PROJECT_ROOT / "rules.yaml")


# --- Storage ---


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Migrated SQLite database in a temp dir."""
    path = str(tmp_path / "telemetry.db")
    SQLiteMigrator(path, str(PROJECT_ROOT / "migrations")).run_migrations()
    return path


@pytest.fixture
def sqlite_repo(db_path: str) -> SQLiteJourneyRepo:
    return SQLiteJourneyRepo(db_path)


@pytest.fixture
def memory_repo() -> InMemoryJourneyRepo:
    return InMemoryJourneyRepo()


# --- Journeys ---


def make_journey(
    session_id: str,
    visitor_id: str = "visitor-1",
    start: datetime = FIXED_NOW,
    duration_ms: int | None = None,
    landing_page: str = "/",
    device: DeviceInfo | None = None,
    location: LocationInfo | None = None,
    events: list[SectionImpression] | None = None,
    actions: list[ActionEvent] | None = None,
    updated_at: datetime | None = None,
    **extra: Any,
) -> Journey:
    """Journey with sensible defaults; updated_at defaults to start + duration."""
    if updated_at is None:
        updated_at = start + timedelta(milliseconds=duration_ms or 0)
    return Journey(
        session_id=session_id,
        visitor_id=visitor_id,
        landing_page=landing_page,
        user_agent=extra.pop("user_agent", "Mozilla/5.0 (Windows NT 10.0) Chrome/120.0"),
        referrer=extra.pop("referrer", "direct"),
        start_time=start,
        updated_at=updated_at,
        end_time=updated_at if duration_ms is not None else None,
        total_duration=duration_ms,
        device=device or DeviceInfo(type="desktop", os="Windows", browser="Chrome"),
        location=location or LocationInfo(country="Germany", city="Berlin"),
        events=events or [],
        actions=actions or [],
        created_at=start,
        **extra,
    )


@pytest.fixture
def journey_factory() -> Callable[..., Journey]:
    return make_journey


# --- Client transport ---


class FakeTransport:
    """
    Records telemetry calls in memory.

    create_session can be made to fail (fail_sessions) or to wait on an
    event (gate) so concurrent callers overlap.
    """

    def __init__(self) -> None:
        self.sessions: list[dict[str, Any]] = []
        self.impressions: list[dict[str, Any]] = []
        self.actions: list[dict[str, Any]] = []
        self.fail_sessions = 0
        self.fail_sends = False
        self.gate: Any = None

    async def create_session(
        self, visitor_id: str, landing_page: str, referrer: str, user_agent: str
    ) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_sessions:
            self.fail_sessions -= 1
            raise TelemetryTransportError("session endpoint unavailable")
        self.sessions.append(
            {
                "visitor_id": visitor_id,
                "landing_page": landing_page,
                "referrer": referrer,
                "user_agent": user_agent,
            }
        )
        return f"session-{len(self.sessions)}"

    async def record_impression(self, session_id: str, **fields: Any) -> None:
        if self.fail_sends:
            raise TelemetryTransportError("track endpoint unavailable")
        self.impressions.append({"session_id": session_id, **fields})

    async def record_action(self, session_id: str, **fields: Any) -> None:
        if self.fail_sends:
            raise TelemetryTransportError("action endpoint unavailable")
        self.actions.append({"session_id": session_id, **fields})


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
