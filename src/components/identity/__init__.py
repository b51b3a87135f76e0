"""
Identity component - durable visitor id and ephemeral session id.
"""

from ._fingerprint import compute_fingerprint
from .component import IdentityStore
from .models import StoredSession
from .ports import ClientStorageError, ClientStoragePort, ClockPort, SessionCreatorPort

__all__ = [
    "IdentityStore",
    "StoredSession",
    "compute_fingerprint",
    # Ports
    "ClientStorageError",
    "ClientStoragePort",
    "ClockPort",
    "SessionCreatorPort",
]
