"""
Tests for the fire-and-forget action emitter.
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from src.components.actions import ActionEmitter, PendingSends
from src.components.bus import ACTION, TelemetryBus, TelemetryEvent

from tests.conftest import FakeTransport


class StaticSessions:
    def __init__(self, session_id: str | None, resumed: str | None = None) -> None:
        self.session_id = session_id
        self.resumed = resumed
        self.touches = 0

    def current_session_id(self) -> str | None:
        return self.session_id

    def touch(self, session_id: str | None = None) -> None:
        self.touches += 1

    def can_resume_session(self) -> bool:
        return self.resumed is not None

    async def resume_session(self) -> str | None:
        self.session_id = self.resumed
        return self.resumed


class TestEmit:
    def test_no_session_is_noop(self, transport: FakeTransport) -> None:
        emitter = ActionEmitter(sessions=StaticSessions(None), sender=transport)

        async def scenario() -> None:
            assert emitter.emit("click", "cta") is None
            await emitter.drain()

        asyncio.run(scenario())
        assert transport.actions == []

    def test_sends_action(self, transport: FakeTransport) -> None:
        emitter = ActionEmitter(sessions=StaticSessions("s-1"), sender=transport)

        async def scenario() -> None:
            task = emitter.emit("filter_change", "projects", {"label": "python"})
            assert task is not None
            await emitter.drain()

        asyncio.run(scenario())
        assert transport.actions == [
            {
                "session_id": "s-1",
                "type": "filter_change",
                "target": "projects",
                "metadata": {"label": "python"},
            }
        ]

    def test_emit_counts_as_activity(self, transport: FakeTransport) -> None:
        sessions = StaticSessions("s-1")
        emitter = ActionEmitter(sessions=sessions, sender=transport)

        async def scenario() -> None:
            emitter.emit("click", "a")
            emitter.emit("click", "b")
            await emitter.drain()

        asyncio.run(scenario())
        assert sessions.touches == 2

    def test_expired_session_is_resumed(self, transport: FakeTransport) -> None:
        emitter = ActionEmitter(sessions=StaticSessions(None, resumed="s-2"), sender=transport)

        async def scenario() -> None:
            assert emitter.emit("click", "cta") is not None
            await emitter.drain()

        asyncio.run(scenario())
        assert [a["session_id"] for a in transport.actions] == ["s-2"]

    def test_emit_returns_before_send_completes(self, transport: FakeTransport) -> None:
        emitter = ActionEmitter(sessions=StaticSessions("s-1"), sender=transport)

        async def scenario() -> tuple[int, int]:
            emitter.emit("click", "a")
            emitter.emit("click", "b")
            in_flight = emitter.in_flight
            await emitter.drain()
            return in_flight, emitter.in_flight

        before, after = asyncio.run(scenario())
        assert before == 2
        assert after == 0
        assert [a["target"] for a in transport.actions] == ["a", "b"]

    def test_failure_is_logged_not_raised(
        self, transport: FakeTransport, caplog: pytest.LogCaptureFixture
    ) -> None:
        transport.fail_sends = True
        emitter = ActionEmitter(sessions=StaticSessions("s-1"), sender=transport)

        async def scenario() -> None:
            emitter.emit("click", "cta")
            await emitter.drain()

        with caplog.at_level(logging.WARNING):
            asyncio.run(scenario())

        assert "Action click cta failed" in caplog.text

    def test_publishes_to_bus(self, transport: FakeTransport) -> None:
        bus = TelemetryBus()
        seen: list[TelemetryEvent] = []
        bus.subscribe(seen.append, topic=ACTION)
        emitter = ActionEmitter(sessions=StaticSessions("s-1"), sender=transport, publisher=bus)

        async def scenario() -> None:
            emitter.emit("search", "blog", {"query": "rust"})
            await emitter.drain()

        asyncio.run(scenario())
        assert seen == [
            TelemetryEvent(
                topic=ACTION, subject="blog", payload={"type": "search", "metadata": {"query": "rust"}}
            )
        ]


class TestPendingSends:
    def test_unexpected_errors_are_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        pending = PendingSends()

        async def explode() -> None:
            raise RuntimeError("boom")

        async def scenario() -> None:
            pending.spawn(explode(), "Exploding send")
            await pending.drain()

        with caplog.at_level(logging.ERROR):
            asyncio.run(scenario())

        assert "Exploding send failed" in caplog.text
        assert len(pending) == 0

    def test_drain_waits_for_late_spawns(self) -> None:
        pending = PendingSends()
        done: list[str] = []

        async def second() -> None:
            done.append("second")

        async def first() -> None:
            await asyncio.sleep(0)
            pending.spawn(second(), "second")
            done.append("first")

        async def scenario() -> None:
            pending.spawn(first(), "first")
            await pending.drain()

        asyncio.run(scenario())
        assert done == ["first", "second"]
