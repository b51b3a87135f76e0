"""
Action emitter port definitions.
"""

from __future__ import annotations

from typing import Any, Protocol


class SessionSourcePort(Protocol):
    """Provides the active session id and re-creates it after expiry."""

    def current_session_id(self) -> str | None: ...

    def touch(self, session_id: str | None = None) -> None: ...

    def can_resume_session(self) -> bool: ...

    async def resume_session(self) -> str | None: ...


class ActionSenderPort(Protocol):
    async def record_action(
        self,
        session_id: str,
        type: str,
        target: str,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...
