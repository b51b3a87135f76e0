"""
Dwell tracker - per-section visibility state machine.

States:
- IDLE: section not (sufficiently) visible
- PENDING: highly visible, confirmation timer running
- ACTIVE: impression confirmed, duration accruing

Transitions:
- IDLE -> PENDING when highly visible; starts the confirmation timer
- PENDING -> IDLE when visibility drops below highly visible (timer cancelled,
  nothing reported)
- PENDING -> ACTIVE when the timer fires; new interaction id, start report
- ACTIVE -> IDLE only when nothing is visible; end report with duration and
  the maximum scroll depth seen. Partial visibility keeps the impression open.
- flush() while ACTIVE ends the impression immediately (teardown).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from src.components.bus import IMPRESSION_END, IMPRESSION_START, PublisherPort, TelemetryEvent
from src.core.ids import generate_id
from src.rules.models import DwellRules

from .models import DwellState, ImpressionReport, Visibility
from .ports import ClockPort, ImpressionSinkPort, TimerHandle, TimerPort

logger = logging.getLogger(__name__)


def _clamp_depth(value: float) -> int:
    return int(round(min(100.0, max(0.0, value))))


def classify_visibility(ratio: float, visible_fraction: float, threshold: float = 0.7) -> Visibility:
    """
    Classify one observation.

    ratio is the visible share of the section; visible_fraction the share of
    the viewport the section covers. Tall sections never reach a high ratio,
    so either measure can make them highly visible.
    """
    if ratio <= 0 and visible_fraction <= 0:
        return Visibility.NONE
    if ratio >= threshold or visible_fraction >= threshold:
        return Visibility.HIGH
    return Visibility.PARTIAL


def compute_scroll_depth(section_top: float, section_height: float, viewport_height: float) -> int:
    """
    Visible share of a section's height, 0-100.

    section_top is relative to the viewport top (negative once scrolled past).
    """
    if section_height <= 0 or viewport_height <= 0:
        return 0
    visible_top = max(section_top, 0.0)
    visible_bottom = min(section_top + section_height, viewport_height)
    visible_height = max(0.0, visible_bottom - visible_top)
    return _clamp_depth(visible_height / section_height * 100)


class DwellTracker:
    """Tracks confirmed dwell on one section."""

    def __init__(
        self,
        section_id: str,
        *,
        sink: ImpressionSinkPort,
        clock: ClockPort,
        timer: TimerPort,
        publisher: PublisherPort | None = None,
        rules: DwellRules | None = None,
        id_factory: Callable[[int], str] = generate_id,
    ) -> None:
        self.section_id = section_id
        self._sink = sink
        self._clock = clock
        self._timer = timer
        self._publisher = publisher
        self._rules = rules or DwellRules()
        self._id_factory = id_factory

        self._state = DwellState.IDLE
        self._pending: TimerHandle | None = None
        self._interaction_id: str | None = None
        self._started_ms = 0
        self._max_depth = 0
        self._interactions = 0

    @property
    def state(self) -> DwellState:
        return self._state

    @property
    def interaction_id(self) -> str | None:
        """Id of the ACTIVE impression, if any."""
        return self._interaction_id

    def on_observation(
        self, ratio: float, visible_fraction: float, scroll_depth: float | None = None
    ) -> None:
        """Feed one visibility observation. scroll_depth defaults to ratio * 100."""
        visibility = classify_visibility(
            ratio, visible_fraction, self._rules.high_visibility_threshold
        )

        if self._state is DwellState.IDLE:
            if visibility is Visibility.HIGH:
                self._state = DwellState.PENDING
                self._pending = self._timer.call_later(self._rules.confirm_delay_ms, self._confirm)

        elif self._state is DwellState.PENDING:
            if visibility is not Visibility.HIGH:
                self._cancel_pending()
                self._state = DwellState.IDLE

        elif self._state is DwellState.ACTIVE:
            if visibility is Visibility.NONE:
                self._end()
            else:
                depth = _clamp_depth(ratio * 100 if scroll_depth is None else scroll_depth)
                self._max_depth = max(self._max_depth, depth)

    def record_interaction(self) -> None:
        """Count a click or similar inside the section while ACTIVE."""
        if self._state is DwellState.ACTIVE:
            self._interactions += 1

    def flush(self) -> None:
        """Teardown: close an ACTIVE impression now, drop a PENDING one."""
        if self._state is DwellState.ACTIVE:
            self._end()
        elif self._state is DwellState.PENDING:
            self._cancel_pending()
            self._state = DwellState.IDLE

    def _confirm(self) -> None:
        if self._state is not DwellState.PENDING:
            return
        self._pending = None
        now = self._clock.now_ms()
        self._state = DwellState.ACTIVE
        self._interaction_id = self._id_factory(now)
        self._started_ms = now
        self._max_depth = 0
        self._interactions = 0
        self._emit(
            ImpressionReport(
                phase="start", section_id=self.section_id, interaction_id=self._interaction_id
            )
        )

    def _end(self) -> None:
        assert self._interaction_id is not None
        report = ImpressionReport(
            phase="end",
            section_id=self.section_id,
            interaction_id=self._interaction_id,
            duration=max(0, self._clock.now_ms() - self._started_ms),
            scroll_depth=self._max_depth,
            interactions=self._interactions,
        )
        self._state = DwellState.IDLE
        self._interaction_id = None
        self._emit(report)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _emit(self, report: ImpressionReport) -> None:
        try:
            self._sink.report(report)
        except Exception:
            logger.exception("Impression sink failed for %s", report.section_id)

        if self._publisher is not None:
            self._publisher.publish(
                TelemetryEvent(
                    topic=IMPRESSION_START if report.phase == "start" else IMPRESSION_END,
                    subject=report.section_id,
                    payload={
                        "interactionId": report.interaction_id,
                        "duration": report.duration,
                        "scrollDepth": report.scroll_depth,
                        "interactions": report.interactions,
                    },
                )
            )
