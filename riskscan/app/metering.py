"""
Usage metering hook.

Invoked once per completed scan through the side-effect dispatcher.
Billing integrations plug in here; the default records nothing.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class UsageMeter(Protocol):
    async def record_scan(
        self,
        *,
        scan_id: str,
        tenant_id: Optional[str],
        is_video: bool,
        frames_analyzed: Optional[int],
    ) -> None:
        ...


class NullUsageMeter:
    async def record_scan(
        self,
        *,
        scan_id: str,
        tenant_id: Optional[str],
        is_video: bool,
        frames_analyzed: Optional[int],
    ) -> None:
        logger.debug("Usage metering disabled; scan %s not recorded", scan_id)
