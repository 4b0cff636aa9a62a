"""
Fire-and-forget side-effect dispatch.

Progress broadcasts and usage metering must never slow down or fail a
scan. Callers submit coroutine factories to a bounded in-process queue
that a single worker task drains in submission order. A full queue drops
the job; a failing job is logged and forgotten.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

SideEffect = Callable[[], Awaitable[None]]


class SideEffectDispatcher:
    def __init__(self, max_pending: int = 256) -> None:
        self._max_pending = max_pending
        self._queue: Optional[asyncio.Queue[Tuple[str, SideEffect]]] = None
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> asyncio.Queue:
        # Queue and worker are bound to the running loop on first use
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._max_pending)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return self._queue

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            label, job = await self._queue.get()
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("Side effect %r failed", label, exc_info=True)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, label: str, job: SideEffect) -> bool:
        """
        Enqueue ``job`` without waiting.

        Returns False when the queue is full and the job was dropped.
        """
        queue = self._ensure_worker()
        try:
            queue.put_nowait((label, job))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Side-effect queue full; dropped %r", label)
            return False
        return True

    async def drain(self) -> None:
        """Wait until every submitted job has run."""
        if self._queue is not None and self._worker is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
