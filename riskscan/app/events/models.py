from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class ProgressEventType(str, Enum):
    """
    Kinds of progress notification emitted while a scan runs.

    SCAN_COMPLETED and SCAN_FAILED are terminal: no further event follows
    for the same scan.
    """

    SCAN_PROGRESS = "scan_progress"
    SCAN_COMPLETED = "scan_completed"
    SCAN_FAILED = "scan_failed"

    @property
    def is_terminal(self) -> bool:
        return self in {
            ProgressEventType.SCAN_COMPLETED,
            ProgressEventType.SCAN_FAILED,
        }


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class ProgressEvent(BaseModel):
    """
    An immutable progress observation for one scan.

    Events are observational only: losing one never changes the outcome
    of the scan.
    """

    event_id: UUID = Field(default_factory=uuid4)
    scan_id: str = Field(..., description="The scan identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: ProgressEventType = ProgressEventType.SCAN_PROGRESS
    percent: int = Field(..., ge=0, le=100)
    message: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def broadcast_payload(self) -> dict:
        """Payload shape consumed by realtime subscribers."""
        return {
            "scanId": self.scan_id,
            "progress": self.percent,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_sse_payload(self) -> str:
        data = json.dumps(self.model_dump(mode="json"), ensure_ascii=False)
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
