"""
Fire-and-forget dispatch of telemetry sends.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from src.core.ports.telemetry import TelemetryTransportError

logger = logging.getLogger(__name__)


class PendingSends:
    """
    Tracks in-flight send tasks.

    Tasks are held until done so they are not garbage collected mid-flight;
    drain() awaits everything still in flight (page unload / shutdown).
    Failures are logged and never re-raised.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None], description: str) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._guard(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _guard(self, coro: Coroutine[Any, Any, None], description: str) -> None:
        try:
            await coro
        except TelemetryTransportError as e:
            logger.warning("%s failed: %s", description, e)
        except Exception:
            logger.exception("%s failed", description)
