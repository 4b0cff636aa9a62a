from __future__ import annotations

import asyncio
from typing import AsyncIterator

from riskscan.app.events.models import ProgressEvent


class MemoryQueueProgressBroadcaster:
    """
    In-memory progress broadcaster suitable for SSE streaming.

    Properties:
    - single-consumer
    - ordered
    - terminates on the first terminal event
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def broadcast(self, event: ProgressEvent) -> None:
        if self._closed:
            return

        await self._queue.put(event)

        if event.event_type.is_terminal:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """
        Async generator yielding broadcast events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
