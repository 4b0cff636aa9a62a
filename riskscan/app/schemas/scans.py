"""
Scan lifecycle schemas.

A Scan moves monotonically through ``pending -> processing`` and ends in
exactly one terminal state (``complete`` or ``failed``). Only the scan
orchestrator writes scan rows.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from riskscan.app.risk.tiers import RiskLevel, map_legacy_level
from riskscan.app.schemas.provenance import C2PAStatus


class ScanStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {ScanStatus.COMPLETE, ScanStatus.FAILED}


# ---------------------------------------------------------------------------
# Stored scan
# ---------------------------------------------------------------------------


class Scan(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    asset_id: str
    guideline_id: Optional[str] = None
    status: ScanStatus = ScanStatus.PENDING

    composite_score: Optional[int] = None
    risk_level: Optional[RiskLevel] = None
    ip_risk_score: Optional[int] = None
    safety_risk_score: Optional[int] = None
    provenance_risk_score: Optional[int] = None
    provenance_status: Optional[C2PAStatus] = None

    is_video: bool = False
    frames_analyzed: Optional[int] = None
    error_message: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    analysis_duration_ms: Optional[int] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_risk_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return map_legacy_level(v)
        return v


# ---------------------------------------------------------------------------
# Persisted output of a completed scan
# ---------------------------------------------------------------------------


class ScanOutcome(BaseModel):
    """
    Exact shape written to the scan row on completion.
    """

    status: ScanStatus = ScanStatus.COMPLETE
    risk_level: RiskLevel
    composite_score: int = Field(..., ge=0, le=100)
    ip_risk_score: int = Field(..., ge=0, le=100)
    safety_risk_score: int = Field(..., ge=0, le=100)
    provenance_risk_score: int = Field(..., ge=0, le=100)
    provenance_status: C2PAStatus
    is_video: bool
    frames_analyzed: Optional[int] = Field(None, ge=0)
    completed_at: datetime
    analysis_duration_ms: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class VideoFrameRecord(BaseModel):
    scan_id: str
    tenant_id: Optional[str] = None
    frame_number: int = Field(..., ge=0)
    timestamp_ms: int = Field(..., ge=0)
    ip_risk_score: int = Field(..., ge=0, le=100)
    safety_risk_score: int = Field(..., ge=0, le=100)
    composite_score: int = Field(..., ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Orchestrator results
# ---------------------------------------------------------------------------


class ProcessScanResult(BaseModel):
    success: bool
    scan_id: str
    skipped: bool = False
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class PendingBatchResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[ProcessScanResult] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")
