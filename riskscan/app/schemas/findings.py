"""
Scan finding schema.

Findings are append-only records attached to a completed scan. They
explain, in human terms, which signal drove the verdict.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FindingType(str, Enum):
    IP_VIOLATION = "ip_violation"
    SAFETY_VIOLATION = "safety_violation"
    PROVENANCE_ISSUE = "provenance_issue"


class FindingSeverity(str, Enum):
    """
    Severity of a finding.

    Ordering is intentional and MUST remain stable.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Finding
# ---------------------------------------------------------------------------


class ScanFinding(BaseModel):
    scan_id: str
    tenant_id: Optional[str] = None

    finding_type: FindingType
    severity: FindingSeverity

    title: str = Field(..., min_length=1)
    description: str
    recommendation: Optional[str] = None

    # Raw detections or provenance metadata backing the finding
    evidence: Dict[str, Any] = Field(default_factory=dict)

    confidence_score: Optional[int] = Field(None, ge=0, le=100)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
