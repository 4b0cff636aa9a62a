"""
Finding construction for completed scans.

One finding per vision signal whose sub-score exceeds the disclosure
threshold, and always one provenance finding. Findings are built in
memory and handed to the repository at finalization.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from riskscan.app.risk.tiers import RiskLevel
from riskscan.app.schemas.findings import FindingSeverity, FindingType, ScanFinding
from riskscan.app.schemas.provenance import C2PAStatus, ProvenanceReport
from riskscan.app.schemas.scans import Scan
from riskscan.app.vision.contracts import Detection, evidence_items


class SignalSummary(BaseModel):
    """
    Aggregated view of one vision signal for a scan.

    For videos ``score`` is the maximum over frames and ``detections``
    come from the frame that produced it.
    """

    score: int
    level: RiskLevel
    summary: str = ""
    detections: List[Any] = Field(default_factory=list)
    frame_number: Optional[int] = None
    timestamp_ms: Optional[int] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


_LEVEL_SEVERITY = {
    RiskLevel.SAFE: FindingSeverity.LOW,
    RiskLevel.CAUTION: FindingSeverity.LOW,
    RiskLevel.REVIEW: FindingSeverity.MEDIUM,
    RiskLevel.HIGH: FindingSeverity.HIGH,
    RiskLevel.CRITICAL: FindingSeverity.CRITICAL,
}

_PROVENANCE_FINDINGS = {
    C2PAStatus.VALID: (
        FindingSeverity.LOW,
        "Verified Content Credentials",
        "A valid, trusted C2PA manifest is attached to this asset.",
        None,
    ),
    C2PAStatus.CAUTION: (
        FindingSeverity.LOW,
        "Untrusted Content Credentials",
        "A C2PA manifest validates, but its signer is not on a trust list.",
        "Confirm the signing organization before relying on this provenance.",
    ),
    C2PAStatus.MISSING: (
        FindingSeverity.MEDIUM,
        "Missing Content Credentials",
        "No C2PA manifest found in this asset. Provenance cannot be verified.",
        "Use tools that attach Content Credentials to ensure trust.",
    ),
    C2PAStatus.ERROR: (
        FindingSeverity.MEDIUM,
        "Content Credentials Could Not Be Checked",
        "Provenance verification did not complete for this asset.",
        "Re-run the scan; if the problem persists, inspect the file manually.",
    ),
    C2PAStatus.INVALID: (
        FindingSeverity.HIGH,
        "Invalid Content Credentials",
        "A C2PA manifest is present but failed validation. The asset may "
        "have been altered after signing.",
        "Obtain the original signed file from the creator.",
    ),
}


def severity_for_signal(signal: SignalSummary) -> FindingSeverity:
    return _LEVEL_SEVERITY[signal.level]


def _max_confidence(detections: Sequence[Detection]) -> Optional[int]:
    if not detections:
        return None
    return max(d.confidence for d in detections)


def _evidence(signal: SignalSummary, key: str) -> Dict[str, Any]:
    evidence: Dict[str, Any] = {
        "sub_score": signal.score,
        key: evidence_items(signal.detections),
    }
    if signal.frame_number is not None:
        evidence["frame_number"] = signal.frame_number
        evidence["timestamp_ms"] = signal.timestamp_ms
    return evidence


def build_findings(
    scan: Scan,
    *,
    ip: SignalSummary,
    safety: SignalSummary,
    provenance: ProvenanceReport,
    threshold: int = 50,
) -> List[ScanFinding]:
    findings: List[ScanFinding] = []

    if ip.score > threshold:
        names = ", ".join(
            getattr(d, "name", "") for d in ip.detections if getattr(d, "name", "")
        )
        findings.append(
            ScanFinding(
                scan_id=scan.id,
                tenant_id=scan.tenant_id,
                finding_type=FindingType.IP_VIOLATION,
                severity=severity_for_signal(ip),
                title="Intellectual property exposure",
                description=(
                    f"{ip.summary} Detected: {names}." if names else ip.summary
                ) or "Protected intellectual property detected.",
                recommendation="Review for potential intellectual property concerns.",
                evidence=_evidence(ip, "detections"),
                confidence_score=_max_confidence(ip.detections),
            )
        )

    if safety.score > threshold:
        findings.append(
            ScanFinding(
                scan_id=scan.id,
                tenant_id=scan.tenant_id,
                finding_type=FindingType.SAFETY_VIOLATION,
                severity=severity_for_signal(safety),
                title="Brand safety violation",
                description=safety.summary or "Content breaches brand safety policies.",
                recommendation="Review for brand safety compliance.",
                evidence=_evidence(safety, "violations"),
                confidence_score=_max_confidence(safety.detections),
            )
        )

    severity, title, description, recommendation = _PROVENANCE_FINDINGS[provenance.status]
    provenance_evidence: Dict[str, Any] = {"status": provenance.status.value}
    for attr in ("creator", "tool", "issuer", "timestamp"):
        value = getattr(provenance, attr)
        if value:
            provenance_evidence[attr] = value
    if provenance.validation_errors:
        provenance_evidence["validation_errors"] = list(provenance.validation_errors)
    if provenance.error:
        provenance_evidence["error"] = provenance.error

    findings.append(
        ScanFinding(
            scan_id=scan.id,
            tenant_id=scan.tenant_id,
            finding_type=FindingType.PROVENANCE_ISSUE,
            severity=severity,
            title=title,
            description=description,
            recommendation=recommendation,
            evidence=provenance_evidence,
            confidence_score=100,
        )
    )

    return findings

