from __future__ import annotations

from typing import Protocol

from riskscan.app.events.models import ProgressEvent


class ProgressBroadcaster(Protocol):
    """
    Interface for publishing scan progress.

    Implementations may raise; callers go through the side-effect
    dispatcher, which isolates failures from the scan.
    """

    async def broadcast(self, event: ProgressEvent) -> None:
        ...


class NullProgressBroadcaster:
    """
    A safe no-op broadcaster.

    Used when realtime progress is disabled and in tests that do not
    care about events.
    """

    async def broadcast(self, event: ProgressEvent) -> None:
        return
