"""
HTTP telemetry transport (client side).

Posts to the public analytics API with httpx.AsyncClient and raises
TelemetryTransportError for network failures and non-2xx responses.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.core.ports.telemetry import TelemetryTransportError

logger = logging.getLogger(__name__)


class HttpTelemetryTransport:
    """TelemetryTransportPort over HTTP."""

    def __init__(self, client: httpx.AsyncClient, base_path: str = "/api/analytics"):
        self._client = client
        self._base_path = base_path.rstrip("/")

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(f"{self._base_path}/{endpoint}", json=body)
        except httpx.HTTPError as e:
            raise TelemetryTransportError(f"POST {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            raise TelemetryTransportError(
                f"POST {endpoint} rejected with {response.status_code}: {response.text}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise TelemetryTransportError(f"POST {endpoint} returned invalid JSON") from e

    async def create_session(
        self,
        visitor_id: str,
        landing_page: str,
        referrer: str,
        user_agent: str,
    ) -> str:
        data = await self._post(
            "session",
            {
                "visitorId": visitor_id,
                "landingPage": landing_page,
                "referrer": referrer,
                "userAgent": user_agent,
            },
        )
        session_id = data.get("sessionId")
        if not session_id:
            raise TelemetryTransportError("Session response carried no sessionId")
        return session_id

    async def record_impression(
        self,
        session_id: str,
        interaction_id: str,
        section_id: str,
        duration: int = 0,
        scroll_depth: int = 0,
        interactions: int = 0,
    ) -> None:
        await self._post(
            "track",
            {
                "sessionId": session_id,
                "interactionId": interaction_id,
                "sectionId": section_id,
                "duration": duration,
                "scrollDepth": scroll_depth,
                "interactions": interactions,
            },
        )

    async def record_action(
        self,
        session_id: str,
        type: str,
        target: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._post(
            "action",
            {"sessionId": session_id, "type": type, "target": target, "metadata": metadata},
        )
