"""
Time-prefixed identifiers for sessions and impressions.

Format: "<epoch-ms>-<9 base36 chars>", e.g. "1718000000000-k3j9x0a1b".
"""

from __future__ import annotations

import secrets
import time

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
SUFFIX_LENGTH = 9


def generate_id(now_ms: int | None = None) -> str:
    """Generate a new session/interaction id."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(SUFFIX_LENGTH))
    return f"{now_ms}-{suffix}"
