"""
Actions component - fire-and-forget action emitter.
"""

from ._dispatch import PendingSends
from .component import ActionEmitter
from .ports import ActionSenderPort, SessionSourcePort

__all__ = [
    "ActionEmitter",
    "PendingSends",
    "ActionSenderPort",
    "SessionSourcePort",
]
