"""
Identity component - visitor and session lifecycle on the client.

The visitor id is durable and written once. The session id is ephemeral,
expires after a period of inactivity, and is created through the transport
at most once at a time: concurrent ensure_session() callers share the same
in-flight creation. After expiry, resume_session() creates a new session for
the page view that was started last.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Sequence
from urllib.parse import urlsplit

from src.core.ports.telemetry import TelemetryTransportError
from src.rules.models import TrackingRules

from ._fingerprint import compute_fingerprint
from .models import StoredSession
from .ports import ClientStorageError, ClientStoragePort, ClockPort, SessionCreatorPort

logger = logging.getLogger(__name__)


class _WallClock:
    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class IdentityStore:
    """Owns the visitor id and the active session id for one browsing context."""

    def __init__(
        self,
        *,
        storage: ClientStoragePort,
        transport: SessionCreatorPort,
        clock: ClockPort | None = None,
        rules: TrackingRules | None = None,
        signals: Sequence[str | None] = (),
    ) -> None:
        self._storage = storage
        self._transport = transport
        self._clock = clock or _WallClock()
        self._rules = rules or TrackingRules()
        self._signals = tuple(signals)
        self._fallback_visitor_id: str | None = None
        self._pending: asyncio.Task[str | None] | None = None
        self._page_view: tuple[str, str, str] | None = None

    @property
    def inactivity_ms(self) -> int:
        return self._rules.session_inactivity_minutes * 60_000

    def ensure_visitor_id(self) -> str:
        """Return the durable visitor id, creating it on first use."""
        try:
            return self._storage.get_or_create(
                self._rules.visitor_storage_key, lambda: compute_fingerprint(self._signals)
            )
        except ClientStorageError:
            logger.warning("Visitor storage unavailable, using a transient visitor id")
            if self._fallback_visitor_id is None:
                self._fallback_visitor_id = uuid.uuid4().hex
            return self._fallback_visitor_id

    def is_excluded(self, page: str) -> bool:
        path = urlsplit(page).path or page
        return any(path.startswith(prefix) for prefix in self._rules.excluded_path_prefixes)

    def current_session_id(self) -> str | None:
        """Active session id without any network call; None when expired or absent."""
        stored = self._read_session()
        return stored.session_id if stored else None

    def touch(self, session_id: str | None = None) -> None:
        """
        Record activity on the current session.

        When the stored session has already expired, session_id (the session a
        still-open impression belongs to) is written back as the active one.
        """
        stored = self._read_session()
        if stored is not None:
            self._write_session(stored.session_id)
        elif session_id is not None:
            self._write_session(session_id)

    def can_resume_session(self) -> bool:
        """True once ensure_session() has run for a tracked page."""
        return self._page_view is not None

    async def resume_session(self) -> str | None:
        """Re-establish the session for the current page view after it expired."""
        if self._page_view is None:
            return None
        return await self.ensure_session(*self._page_view)

    async def ensure_session(
        self, landing_page: str, referrer: str = "", user_agent: str = ""
    ) -> str | None:
        """
        Return the active session id, creating one if needed.

        Returns None on excluded pages and when creation fails; tracking then
        stays disabled until a later call succeeds.
        """
        if self.is_excluded(landing_page):
            logger.debug("Tracking disabled on %s", landing_page)
            return None

        self._page_view = (landing_page, referrer, user_agent)
        stored = self._read_session()
        if stored is not None:
            self._write_session(stored.session_id)
            return stored.session_id

        task = self._pending
        if task is None:
            task = asyncio.create_task(self._create_session(landing_page, referrer, user_agent))
            task.add_done_callback(self._clear_pending)
            self._pending = task
        return await task

    def reset_session(self) -> None:
        """Forget the current session (end of browsing context)."""
        try:
            self._storage.clear_ephemeral(self._rules.session_storage_key)
        except ClientStorageError:
            logger.warning("Session storage unavailable, nothing to clear")

    async def _create_session(
        self, landing_page: str, referrer: str, user_agent: str
    ) -> str | None:
        visitor_id = self.ensure_visitor_id()
        try:
            session_id = await self._transport.create_session(
                visitor_id=visitor_id,
                landing_page=landing_page,
                referrer=referrer,
                user_agent=user_agent,
            )
        except TelemetryTransportError as e:
            logger.warning("Session initialization failed: %s", e)
            return None

        self._write_session(session_id)
        logger.info("Session %s initialized", session_id)
        return session_id

    def _clear_pending(self, task: asyncio.Task[str | None]) -> None:
        if self._pending is task:
            self._pending = None

    def _read_session(self) -> StoredSession | None:
        key = self._rules.session_storage_key
        try:
            raw = self._storage.get_ephemeral(key)
        except ClientStorageError:
            logger.warning("Session storage unavailable")
            return None
        if raw is None:
            return None

        stored = StoredSession.decode(raw)
        if stored is None or self._clock.now_ms() - stored.last_activity_ms > self.inactivity_ms:
            self.reset_session()
            return None
        return stored

    def _write_session(self, session_id: str) -> None:
        record = StoredSession(session_id=session_id, last_activity_ms=self._clock.now_ms())
        try:
            self._storage.set_ephemeral(self._rules.session_storage_key, record.encode())
        except ClientStorageError:
            logger.warning("Session storage unavailable, session %s not persisted", session_id)
