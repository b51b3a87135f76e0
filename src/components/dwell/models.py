"""
Dwell tracker models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal


class DwellState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    ACTIVE = "active"


class Visibility(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    HIGH = "high"


ReportPhase = Literal["start", "end"]


@dataclass(frozen=True)
class ImpressionReport:
    """
    One impression report.

    A start report (duration 0, scroll_depth 0) is sent on confirmation and an
    end report with the same interaction_id when the impression closes.
    """

    phase: ReportPhase
    section_id: str
    interaction_id: str
    duration: int = 0
    scroll_depth: int = 0
    interactions: int = 0
