"""
Identity component models.
"""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredSession:
    """Ephemeral session record with its last-activity stamp (epoch ms)."""

    session_id: str
    last_activity_ms: int

    def encode(self) -> str:
        return json.dumps({"sessionId": self.session_id, "lastActivity": self.last_activity_ms})

    @classmethod
    def decode(cls, raw: str) -> StoredSession | None:
        """Parse a stored record; None when it is malformed."""
        try:
            data = json.loads(raw)
            return cls(session_id=str(data["sessionId"]), last_activity_ms=int(data["lastActivity"]))
        except (ValueError, TypeError, KeyError):
            return None
