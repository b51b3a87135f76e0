"""
Telemetry client - wires identity, dwell trackers and the action emitter.

One client per browsing context. Every send goes through one PendingSends
set, so close() can flush ACTIVE trackers and wait for all of them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from src.adapters.clock import AsyncioTimer, SystemClock
from src.components.actions import ActionEmitter, PendingSends
from src.components.bus import TelemetryBus
from src.components.dwell import DwellTracker, ImpressionReport
from src.components.identity import ClientStoragePort, IdentityStore
from src.core.ports.telemetry import TelemetryTransportPort
from src.core.ports.time import ClockPort, TimerPort
from src.rules.models import DwellRules, TrackingRules

logger = logging.getLogger(__name__)


class ImpressionSender:
    """
    Impression sink that forwards reports for the active session.

    A start report resolves the session, re-creating it if it expired. The end
    report for the same interaction is sent only after the start send has
    finished and goes to the session captured at start, so a long dwell that
    outlives the inactivity window is still recorded.
    """

    def __init__(
        self,
        identity: IdentityStore,
        transport: TelemetryTransportPort,
        pending: PendingSends,
    ) -> None:
        self._identity = identity
        self._transport = transport
        self._pending = pending
        self._starts: dict[str, asyncio.Task[None]] = {}
        self._sessions: dict[str, str] = {}

    def report(self, report: ImpressionReport) -> None:
        description = f"Impression {report.phase} {report.section_id}"
        if report.phase == "start":
            session_id = self._identity.current_session_id()
            if session_id is None and not self._identity.can_resume_session():
                logger.debug("No active session, dropping %s report", report.section_id)
                return
            if session_id is not None:
                self._identity.touch()
            self._starts[report.interaction_id] = self._pending.spawn(
                self._send_start(report, session_id), description=description
            )
            return

        start = self._starts.pop(report.interaction_id, None)
        if start is None:
            logger.debug("No start sent for %s, dropping end report", report.interaction_id)
            return
        self._pending.spawn(self._send_end(report, start), description=description)

    async def _send_start(self, report: ImpressionReport, session_id: str | None) -> None:
        if session_id is None:
            session_id = await self._identity.resume_session()
            if session_id is None:
                logger.debug("Session not re-created, dropping %s report", report.section_id)
                return
        self._sessions[report.interaction_id] = session_id
        await self._send(session_id, report)

    async def _send_end(self, report: ImpressionReport, start: asyncio.Task[None]) -> None:
        # Start sends are guarded and never raise.
        await start
        session_id = self._sessions.pop(report.interaction_id, None)
        if session_id is None:
            return
        self._identity.touch(session_id)
        await self._send(session_id, report)

    async def _send(self, session_id: str, report: ImpressionReport) -> None:
        await self._transport.record_impression(
            session_id=session_id,
            interaction_id=report.interaction_id,
            section_id=report.section_id,
            duration=report.duration,
            scroll_depth=report.scroll_depth,
            interactions=report.interactions,
        )


class TelemetryClient:
    def __init__(
        self,
        *,
        transport: TelemetryTransportPort,
        storage: ClientStoragePort,
        clock: ClockPort | None = None,
        timer: TimerPort | None = None,
        bus: TelemetryBus | None = None,
        tracking: TrackingRules | None = None,
        dwell: DwellRules | None = None,
        signals: Sequence[str | None] = (),
    ) -> None:
        self._clock = clock or SystemClock()
        self._timer = timer or AsyncioTimer()
        self._dwell_rules = dwell or DwellRules()
        self.bus = bus or TelemetryBus()
        self.identity = IdentityStore(
            storage=storage,
            transport=transport,
            clock=self._clock,
            rules=tracking,
            signals=signals,
        )
        self._pending = PendingSends()
        self._sink = ImpressionSender(self.identity, transport, self._pending)
        self.actions = ActionEmitter(
            sessions=self.identity, sender=transport, publisher=self.bus, pending=self._pending
        )
        self._trackers: dict[str, DwellTracker] = {}

    async def start(
        self, landing_page: str, referrer: str = "", user_agent: str = ""
    ) -> str | None:
        """Initialize identity for a page view; returns the session id or None."""
        return await self.identity.ensure_session(landing_page, referrer, user_agent)

    def track_section(self, section_id: str) -> DwellTracker:
        """Tracker for section_id, created on first use."""
        tracker = self._trackers.get(section_id)
        if tracker is None:
            tracker = DwellTracker(
                section_id,
                sink=self._sink,
                clock=self._clock,
                timer=self._timer,
                publisher=self.bus,
                rules=self._dwell_rules,
            )
            self._trackers[section_id] = tracker
        return tracker

    async def untrack_section(self, section_id: str) -> None:
        """Stop tracking section_id, closing an ACTIVE impression."""
        tracker = self._trackers.pop(section_id, None)
        if tracker is not None:
            tracker.flush()

    def emit(self, type: str, target: str, metadata: dict[str, Any] | None = None) -> None:
        self.actions.emit(type, target, metadata)

    async def close(self) -> None:
        """Flush every tracker and wait for all in-flight sends."""
        for tracker in self._trackers.values():
            tracker.flush()
        self._trackers.clear()
        await self._pending.drain()
