"""
Tests for filter compilation and in-process evaluation.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.components.journey_query import (
    FieldInSetTerm,
    JourneyFilter,
    RangeTerm,
    TextSearchTerm,
    TimeWindowTerm,
    build_filter_terms,
    matches_all,
    term_matches,
)
from src.components.journey_query._filters import (
    normalize_time_window,
    parse_seconds,
    window_start,
)
from src.core.entities import ActionEvent, LocationInfo, SectionImpression

from tests.conftest import FIXED_NOW, make_journey


class TestTimeWindows:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("today", "today"),
            ("week", "week"),
            ("last-7-days", "week"),
            ("7d", "week"),
            ("MONTH", "month"),
            ("last-30-days", "month"),
            ("all", "all"),
            ("fortnight", "all"),
            ("", "all"),
            (None, "all"),
        ],
    )
    def test_normalize(self, raw: str | None, expected: str) -> None:
        assert normalize_time_window(raw) == expected

    def test_today_starts_at_utc_midnight(self) -> None:
        assert window_start("today", FIXED_NOW) == FIXED_NOW.replace(hour=0)

    def test_week_and_month(self) -> None:
        assert window_start("week", FIXED_NOW) == FIXED_NOW - timedelta(days=7)
        assert window_start("month", FIXED_NOW) == FIXED_NOW - timedelta(days=30)

    def test_all_has_no_bound(self) -> None:
        assert window_start("all", FIXED_NOW) is None


class TestParseSeconds:
    @pytest.mark.parametrize("raw,expected", [("10", 10.0), ("2.5", 2.5), (0, 0.0), (60, 60.0)])
    def test_valid(self, raw: str | int, expected: float) -> None:
        assert parse_seconds(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "-5", "nan", "inf", "", None, True])
    def test_invalid_is_ignored(self, raw: object) -> None:
        assert parse_seconds(raw) is None  # type: ignore[arg-type]


class TestBuildFilterTerms:
    def test_empty_filter_has_no_terms(self) -> None:
        assert build_filter_terms(JourneyFilter(), FIXED_NOW) == []

    def test_duration_bounds_in_milliseconds(self) -> None:
        terms = build_filter_terms(JourneyFilter(min_duration="10", max_duration="60"), FIXED_NOW)
        assert terms == [RangeTerm(field="total_duration", minimum=10000, maximum=60000)]

    def test_single_duration_bound(self) -> None:
        (term,) = build_filter_terms(JourneyFilter(max_duration="5"), FIXED_NOW)
        assert term == RangeTerm(field="total_duration", minimum=None, maximum=5000)

    def test_bad_duration_is_dropped(self) -> None:
        assert build_filter_terms(JourneyFilter(min_duration="abc"), FIXED_NOW) == []

    def test_unknown_location_sets_include_missing(self) -> None:
        (term,) = build_filter_terms(JourneyFilter(locations=("Unknown", "Berlin")), FIXED_NOW)

        assert isinstance(term, FieldInSetTerm)
        assert term.field == "location.city"
        assert term.include_missing is True
        assert term.values == frozenset({"Unknown", "Berlin"})

    def test_blank_values_are_dropped(self) -> None:
        assert build_filter_terms(JourneyFilter(os=(" ", "")), FIXED_NOW) == []

    def test_all_terms_combined(self) -> None:
        terms = build_filter_terms(
            JourneyFilter(
                time_window="week",
                search="blog",
                interaction="contact",
                device_types=("mobile",),
                os=("iOS",),
                browsers=("Safari",),
                locations=("Paris",),
                min_duration=1,
            ),
            FIXED_NOW,
        )

        kinds = [type(t) for t in terms]
        assert kinds.count(TimeWindowTerm) == 1
        assert kinds.count(TextSearchTerm) == 2
        assert kinds.count(FieldInSetTerm) == 4
        assert kinds.count(RangeTerm) == 1


class TestTermMatches:
    def test_search_is_case_insensitive_substring(self) -> None:
        journey = make_journey("s-1", landing_page="/Blog/Rust-Tips")
        term = TextSearchTerm(needle="rust", fields=("landing_page",))
        assert term_matches(journey, term)

    def test_search_does_not_scan_nested_fields(self) -> None:
        journey = make_journey(
            "s-1",
            events=[SectionImpression("i-1", "contact", FIXED_NOW)],
        )
        (term,) = build_filter_terms(JourneyFilter(search="contact"), FIXED_NOW)
        assert not term_matches(journey, term)

    def test_interaction_scans_sections_actions_and_labels(self) -> None:
        journey = make_journey(
            "s-1",
            events=[SectionImpression("i-1", "skills", FIXED_NOW)],
            actions=[
                ActionEvent("filter_change", "projects", FIXED_NOW, {"label": "Python"}),
            ],
        )

        for needle in ("skill", "projects", "FILTER", "python"):
            (term,) = build_filter_terms(JourneyFilter(interaction=needle), FIXED_NOW)
            assert term_matches(journey, term), needle

        (term,) = build_filter_terms(JourneyFilter(interaction="hero"), FIXED_NOW)
        assert not term_matches(journey, term)

    def test_unknown_matches_missing_city(self) -> None:
        term = FieldInSetTerm("location.city", frozenset({"Unknown"}), include_missing=True)

        assert term_matches(make_journey("a", location=LocationInfo()), term)
        assert term_matches(make_journey("b", location=LocationInfo(city="")), term)
        assert term_matches(make_journey("c", location=LocationInfo(city="Unknown")), term)
        assert not term_matches(make_journey("d", location=LocationInfo(city="Paris")), term)

    def test_range_excludes_missing_duration(self) -> None:
        term = RangeTerm("total_duration", minimum=0)
        assert not term_matches(make_journey("s-1"), term)
        assert term_matches(make_journey("s-2", duration_ms=0), term)

    @pytest.mark.parametrize(
        "duration_ms,matches",
        [(9_999, False), (10_000, True), (30_000, True), (60_000, True), (60_001, False)],
    )
    def test_range_bounds_are_inclusive(self, duration_ms: int, matches: bool) -> None:
        term = RangeTerm("total_duration", minimum=10_000, maximum=60_000)
        assert term_matches(make_journey("s", duration_ms=duration_ms), term) is matches

    def test_time_window(self) -> None:
        term = TimeWindowTerm(since=FIXED_NOW - timedelta(days=7))
        assert term_matches(make_journey("new", start=FIXED_NOW - timedelta(days=1)), term)
        assert not term_matches(make_journey("old", start=FIXED_NOW - timedelta(days=8)), term)

    def test_matches_all_ands_terms(self) -> None:
        journey = make_journey("s-1", landing_page="/blog", location=LocationInfo(city="Paris"))
        search = TextSearchTerm(needle="blog", fields=("landing_page",))
        paris = FieldInSetTerm("location.city", frozenset({"Paris"}))
        berlin = FieldInSetTerm("location.city", frozenset({"Berlin"}))

        assert matches_all(journey, [search, paris])
        assert not matches_all(journey, [search, berlin])
        assert matches_all(journey, [])
