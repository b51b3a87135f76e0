"""
Telemetry client component - client-side façade.
"""

from .component import ImpressionSender, TelemetryClient

__all__ = ["ImpressionSender", "TelemetryClient"]
