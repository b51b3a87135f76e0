# Ports (Protocol interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import PersistenceError
from src.core.ports.telemetry import TelemetryTransportError, TelemetryTransportPort
from src.core.ports.time import ClockPort, TimerHandle, TimerPort, TimePort

__all__ = [
    "ClockPort",
    "PersistenceError",
    "TelemetryTransportError",
    "TelemetryTransportPort",
    "TimePort",
    "TimerHandle",
    "TimerPort",
]
