"""
Shared storage error types.

Adapters wrap driver-level failures in PersistenceError so components and
routes never depend on a specific database driver.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Durable store unavailable or a write/read failed."""
