"""
Time ports.

TimePort serves wall-clock UTC datetimes to server-side components.
ClockPort / TimerPort drive the client-side dwell state machine, which works in
epoch milliseconds and needs cancellable one-shot timers.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Wall-clock provider."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


class ClockPort(Protocol):
    """Monotonic-enough millisecond clock."""

    def now_ms(self) -> int:
        """Current time in epoch milliseconds."""
        ...


class TimerHandle(Protocol):
    """Handle returned by TimerPort.call_later."""

    def cancel(self) -> None:
        ...


class TimerPort(Protocol):
    """One-shot timer scheduler."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay_ms unless cancelled first."""
        ...
