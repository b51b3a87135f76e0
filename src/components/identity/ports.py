"""
Identity component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol


class ClientStorageError(Exception):
    """Client-side storage is unavailable or unreadable."""


class ClientStoragePort(Protocol):
    """
    Key-value storage with two lifetimes.

    Durable values survive restarts and are never overwritten once created;
    ephemeral values live for one browsing context.
    """

    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        """Return the durable value for key, creating it with factory if absent."""
        ...

    def get_ephemeral(self, key: str) -> str | None: ...

    def set_ephemeral(self, key: str, value: str) -> None: ...

    def clear_ephemeral(self, key: str) -> None: ...


class SessionCreatorPort(Protocol):
    async def create_session(
        self,
        visitor_id: str,
        landing_page: str,
        referrer: str,
        user_agent: str,
    ) -> str: ...


class ClockPort(Protocol):
    def now_ms(self) -> int: ...
