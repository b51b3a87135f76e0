"""
Visitor fingerprinting.
"""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Sequence

SIGNAL_SEPARATOR = "|||"


def compute_fingerprint(signals: Sequence[str | None]) -> str:
    """SHA-256 hex of the available signals; a random id when there are none."""
    available = [s for s in signals if s]
    if not available:
        return uuid.uuid4().hex
    return hashlib.sha256(SIGNAL_SEPARATOR.join(available).encode("utf-8")).hexdigest()
