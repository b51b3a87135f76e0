"""
Action emitter - best-effort reporting of discrete user actions.

emit() returns immediately; the send runs as a background task that is
tracked until done so drain() can let it finish during shutdown. Every emit
counts as session activity. An expired session is re-created before sending;
without a started page view every emit is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.components.bus import ACTION, PublisherPort, TelemetryEvent

from ._dispatch import PendingSends
from .ports import ActionSenderPort, SessionSourcePort

logger = logging.getLogger(__name__)


class ActionEmitter:
    def __init__(
        self,
        *,
        sessions: SessionSourcePort,
        sender: ActionSenderPort,
        publisher: PublisherPort | None = None,
        pending: PendingSends | None = None,
    ) -> None:
        self._sessions = sessions
        self._sender = sender
        self._publisher = publisher
        self._pending = pending if pending is not None else PendingSends()

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def emit(
        self, type: str, target: str, metadata: dict[str, Any] | None = None
    ) -> asyncio.Task[None] | None:
        """Report an action. Returns the send task, or None when nothing was sent."""
        session_id = self._sessions.current_session_id()
        if session_id is None and not self._sessions.can_resume_session():
            logger.debug("No active session, dropping action %s %s", type, target)
            return None
        if session_id is not None:
            self._sessions.touch()

        if self._publisher is not None:
            self._publisher.publish(
                TelemetryEvent(
                    topic=ACTION,
                    subject=target,
                    payload={"type": type, "metadata": metadata or {}},
                )
            )

        return self._pending.spawn(
            self._send(session_id, type, target, metadata),
            description=f"Action {type} {target}",
        )

    async def _send(
        self, session_id: str | None, type: str, target: str, metadata: dict[str, Any] | None
    ) -> None:
        if session_id is None:
            session_id = await self._sessions.resume_session()
            if session_id is None:
                logger.debug("Session not re-created, dropping action %s %s", type, target)
                return
        await self._sender.record_action(
            session_id=session_id, type=type, target=target, metadata=metadata
        )

    async def drain(self) -> None:
        """Wait for every in-flight send."""
        await self._pending.drain()
