"""
Dwell component - debounced section visibility tracking.
"""

from .component import DwellTracker, classify_visibility, compute_scroll_depth
from .models import DwellState, ImpressionReport, ReportPhase, Visibility
from .ports import ImpressionSinkPort

__all__ = [
    "DwellTracker",
    "classify_visibility",
    "compute_scroll_depth",
    # Models
    "DwellState",
    "ImpressionReport",
    "ReportPhase",
    "Visibility",
    # Ports
    "ImpressionSinkPort",
]
