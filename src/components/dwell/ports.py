"""
Dwell tracker port definitions.
"""

from __future__ import annotations

from typing import Protocol

from src.core.ports.time import ClockPort, TimerHandle, TimerPort

from .models import ImpressionReport


class ImpressionSinkPort(Protocol):
    """Receives impression reports. Must not block and must not raise."""

    def report(self, report: ImpressionReport) -> None: ...


__all__ = ["ClockPort", "ImpressionSinkPort", "TimerHandle", "TimerPort"]
