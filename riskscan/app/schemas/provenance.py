"""
Content provenance (C2PA) report schema.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class C2PAStatus(str, Enum):
    """
    Outcome of a content credential check.

    - VALID: manifest present, signature and bindings verified, trusted
    - CAUTION: manifest validates but the signer is not on a trust list
    - INVALID: manifest present but failed validation
    - ERROR: the check itself could not run
    - MISSING: no manifest embedded
    """

    VALID = "valid"
    CAUTION = "caution"
    INVALID = "invalid"
    ERROR = "error"
    MISSING = "missing"

    @property
    def has_manifest(self) -> bool:
        return self in {C2PAStatus.VALID, C2PAStatus.CAUTION, C2PAStatus.INVALID}


class ProvenanceHistoryEntry(BaseModel):
    action: str
    tool: Optional[str] = None
    date: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ProvenanceReport(BaseModel):
    """
    Result of verifying an asset's embedded content credentials.

    Metadata fields are best-effort and only populated when a manifest
    was found.
    """

    status: C2PAStatus
    creator: Optional[str] = None
    tool: Optional[str] = None
    tool_version: Optional[str] = None
    timestamp: Optional[str] = None
    issuer: Optional[str] = None
    serial: Optional[str] = None
    history: List[ProvenanceHistoryEntry] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)
    raw_manifest: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")
