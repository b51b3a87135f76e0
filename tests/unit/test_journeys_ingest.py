"""
Tests for session creation and telemetry ingestion.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.adapters.memory_db import InMemoryJourneyRepo
from src.components.journeys import (
    CreateSessionInput,
    RecordActionInput,
    RecordImpressionInput,
    run_create_session,
    run_record_action,
    run_record_impression,
)
from src.core.entities import LocationInfo
from src.rules.models import IngestionRules

from tests.conftest import FIXED_NOW, FakeClock

CHROME_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0.0.0 Safari/537.36"


class StubGeo:
    def __init__(self, location: LocationInfo | None = None, fail: bool = False) -> None:
        self.location = location or LocationInfo(country="Japan", region="Tokyo", city="Tokyo")
        self.fail = fail
        self.calls: list[str] = []

    def lookup(self, ip: str) -> LocationInfo:
        self.calls.append(ip)
        if self.fail:
            raise RuntimeError("geo down")
        return self.location


@pytest.fixture
def rules() -> IngestionRules:
    return IngestionRules(allowed_section_ids=["hero", "about", "contact"])


@pytest.fixture
def session_id(memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> str:
    result = run_create_session(
        CreateSessionInput(visitor_id="v-1", landing_page="/", user_agent=CHROME_UA),
        repo=memory_repo,
        time_port=clock,
    )
    assert result.session_id is not None
    return result.session_id


def impression(session_id: str, interaction_id: str = "i-1", **kwargs) -> RecordImpressionInput:
    kwargs.setdefault("section_id", "about")
    return RecordImpressionInput(session_id=session_id, interaction_id=interaction_id, **kwargs)


# --- CreateSession ---


class TestCreateSession:
    def test_creates_journey(self, memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> None:
        geo = StubGeo()
        result = run_create_session(
            CreateSessionInput(
                visitor_id="v-1",
                landing_page="/blog",
                user_agent=CHROME_UA,
                referrer="https://news.ycombinator.com",
                client_ip="203.0.113.7",
            ),
            repo=memory_repo,
            geo=geo,
            time_port=clock,
        )

        assert result.success
        stored = memory_repo.get_by_session_id(result.session_id)
        assert stored is not None
        assert stored.visitor_id == "v-1"
        assert stored.landing_page == "/blog"
        assert stored.referrer == "https://news.ycombinator.com"
        assert stored.start_time == FIXED_NOW
        assert stored.end_time is None
        assert stored.total_duration is None
        assert stored.events == [] and stored.actions == []
        assert stored.device.os == "Windows"
        assert stored.device.browser == "Chrome"
        assert stored.location.city == "Tokyo"
        assert geo.calls == ["203.0.113.7"]

    def test_session_id_format(self, session_id: str, clock: FakeClock) -> None:
        prefix, suffix = session_id.split("-")
        assert prefix == str(clock.now_ms())
        assert len(suffix) == 9

    def test_distinct_session_ids(self, memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> None:
        inp = CreateSessionInput(visitor_id="v-1", landing_page="/", user_agent=CHROME_UA)
        ids = {run_create_session(inp, repo=memory_repo, time_port=clock).session_id for _ in range(20)}
        assert len(ids) == 20

    def test_referrer_defaults_to_direct(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock
    ) -> None:
        result = run_create_session(
            CreateSessionInput(visitor_id="v-1", landing_page="/", user_agent=CHROME_UA, referrer=""),
            repo=memory_repo,
            time_port=clock,
        )
        assert result.journey.referrer == "direct"

    def test_geo_failure_keeps_ip(self, memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> None:
        result = run_create_session(
            CreateSessionInput(
                visitor_id="v-1", landing_page="/", user_agent=CHROME_UA, client_ip="198.51.100.1"
            ),
            repo=memory_repo,
            geo=StubGeo(fail=True),
            time_port=clock,
        )

        assert result.success
        assert result.journey.location == LocationInfo(ip="198.51.100.1")

    @pytest.mark.parametrize(
        "field,code",
        [
            ("visitor_id", "visitor_id_required"),
            ("landing_page", "landing_page_required"),
            ("user_agent", "user_agent_required"),
        ],
    )
    def test_required_fields(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock, field: str, code: str
    ) -> None:
        values = {"visitor_id": "v-1", "landing_page": "/", "user_agent": CHROME_UA}
        values[field] = "  "

        result = run_create_session(CreateSessionInput(**values), repo=memory_repo, time_port=clock)

        assert not result.success
        assert [e.code for e in result.errors] == [code]
        assert memory_repo.get_totals()["total_visits"] == 0


# --- RecordImpression ---


class TestRecordImpression:
    def test_start_then_end_merge(
        self,
        memory_repo: InMemoryJourneyRepo,
        clock: FakeClock,
        rules: IngestionRules,
        session_id: str,
    ) -> None:
        clock.advance(1000)
        run_record_impression(impression(session_id), repo=memory_repo, time_port=clock, rules=rules)
        clock.advance(6000)
        result = run_record_impression(
            impression(session_id, duration=6000, scroll_depth=40, interactions=2),
            repo=memory_repo,
            time_port=clock,
            rules=rules,
        )

        assert result.success
        journey = memory_repo.get_by_session_id(session_id)
        (event,) = journey.events
        assert event.duration == 6000
        assert event.scroll_depth == 40
        assert event.interactions == 2
        assert event.viewed_at == FIXED_NOW + timedelta(milliseconds=1000)

    def test_new_interaction_id_appends(
        self,
        memory_repo: InMemoryJourneyRepo,
        clock: FakeClock,
        rules: IngestionRules,
        session_id: str,
    ) -> None:
        for interaction_id in ("i-1", "i-2"):
            run_record_impression(
                impression(session_id, interaction_id),
                repo=memory_repo,
                time_port=clock,
                rules=rules,
            )

        journey = memory_repo.get_by_session_id(session_id)
        assert [e.interaction_id for e in journey.events] == ["i-1", "i-2"]

    def test_updates_journey_timing(
        self,
        memory_repo: InMemoryJourneyRepo,
        clock: FakeClock,
        rules: IngestionRules,
        session_id: str,
    ) -> None:
        clock.advance(45_000)
        run_record_impression(impression(session_id), repo=memory_repo, time_port=clock, rules=rules)

        journey = memory_repo.get_by_session_id(session_id)
        assert journey.total_duration == 45_000
        assert journey.end_time == clock.now_utc()
        assert journey.updated_at == clock.now_utc()

    def test_unknown_session(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock, rules: IngestionRules
    ) -> None:
        result = run_record_impression(
            impression("missing"), repo=memory_repo, time_port=clock, rules=rules
        )

        assert not result.success
        assert result.not_found

    @pytest.mark.parametrize(
        "kwargs,code",
        [
            ({"section_id": "pricing"}, "invalid_section"),
            ({"duration": -1}, "invalid_duration"),
            ({"duration": 86_400_001}, "invalid_duration"),
            ({"scroll_depth": 101}, "invalid_scroll_depth"),
            ({"scroll_depth": -5}, "invalid_scroll_depth"),
            ({"interactions": -1}, "invalid_interactions"),
            ({"section_id": ""}, "section_id_required"),
        ],
    )
    def test_validation(
        self,
        memory_repo: InMemoryJourneyRepo,
        clock: FakeClock,
        rules: IngestionRules,
        session_id: str,
        kwargs: dict,
        code: str,
    ) -> None:
        result = run_record_impression(
            impression(session_id, **kwargs), repo=memory_repo, time_port=clock, rules=rules
        )

        assert not result.success
        assert not result.not_found
        assert code in [e.code for e in result.errors]
        assert memory_repo.get_by_session_id(session_id).events == []

    def test_any_section_without_allow_list(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock, session_id: str
    ) -> None:
        result = run_record_impression(
            impression(session_id, section_id="pricing"), repo=memory_repo, time_port=clock
        )
        assert result.success


# --- RecordAction ---


class TestRecordAction:
    def test_actions_append(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock, session_id: str
    ) -> None:
        for target in ("cta", "cta"):
            clock.advance(500)
            run_record_action(
                RecordActionInput(session_id=session_id, type="click", target=target),
                repo=memory_repo,
                time_port=clock,
            )

        journey = memory_repo.get_by_session_id(session_id)
        assert len(journey.actions) == 2
        assert journey.total_duration == 1000

    def test_metadata_stored(
        self, memory_repo: InMemoryJourneyRepo, clock: FakeClock, session_id: str
    ) -> None:
        run_record_action(
            RecordActionInput(
                session_id=session_id, type="filter", target="projects", metadata={"label": "AI"}
            ),
            repo=memory_repo,
            time_port=clock,
        )
        (action,) = memory_repo.get_by_session_id(session_id).actions
        assert action.metadata == {"label": "AI"}
        assert action.timestamp == clock.now_utc()

    def test_unknown_session(self, memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> None:
        result = run_record_action(
            RecordActionInput(session_id="missing", type="click", target="cta"),
            repo=memory_repo,
            time_port=clock,
        )
        assert result.not_found

    def test_required_fields(self, memory_repo: InMemoryJourneyRepo, clock: FakeClock) -> None:
        result = run_record_action(
            RecordActionInput(session_id="", type="", target="cta"),
            repo=memory_repo,
            time_port=clock,
        )
        assert {e.code for e in result.errors} == {"session_id_required", "type_required"}
