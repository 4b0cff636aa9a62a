from __future__ import annotations

import logging

import httpx

from riskscan.app.events.models import ProgressEvent
from riskscan.app.supabase_client import SupabaseEndpoint

logger = logging.getLogger(__name__)


def scan_topic(scan_id: str) -> str:
    return f"scan-{scan_id}"


class SupabaseRealtimeBroadcaster:
    """
    Publishes progress on the scan's realtime channel.

    Uses the Realtime HTTP broadcast endpoint, so no socket is held open.
    Subscribers listen on topic ``scan-{scan_id}`` for ``progress``.
    """

    EVENT_NAME = "progress"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        endpoint: SupabaseEndpoint,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._timeout = timeout_seconds

    async def broadcast(self, event: ProgressEvent) -> None:
        response = await self._client.post(
            self._endpoint.realtime_broadcast_url(),
            json={
                "messages": [
                    {
                        "topic": scan_topic(event.scan_id),
                        "event": self.EVENT_NAME,
                        "payload": event.broadcast_payload(),
                    }
                ]
            },
            headers=self._endpoint.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        logger.debug(
            "Broadcast %s%% for scan %s", event.percent, event.scan_id
        )
