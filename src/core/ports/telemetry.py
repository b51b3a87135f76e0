"""
Client-to-server telemetry transport port.

Mirrors the public HTTP surface (CreateSession, RecordImpression,
RecordAction). Implementations raise TelemetryTransportError on any network
or non-2xx failure; callers on the telemetry path log and swallow it.
"""

from __future__ import annotations

from typing import Any, Protocol


class TelemetryTransportError(Exception):
    """Telemetry request failed (network error or rejected by the server)."""


class TelemetryTransportPort(Protocol):
    """Async transport used by the client-side trackers."""

    async def create_session(
        self,
        visitor_id: str,
        landing_page: str,
        referrer: str,
        user_agent: str,
    ) -> str:
        """Create a session and return its id."""
        ...

    async def record_impression(
        self,
        session_id: str,
        interaction_id: str,
        section_id: str,
        duration: int = 0,
        scroll_depth: int = 0,
        interactions: int = 0,
    ) -> None:
        """Upsert a section impression."""
        ...

    async def record_action(
        self,
        session_id: str,
        type: str,
        target: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append an action."""
        ...
