"""
Datastore interface used by the scan orchestrator.

All state transitions are conditional on the current status so that two
workers racing on the same scan cannot both process it, and a terminal
scan can never be reopened.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from riskscan.app.schemas.assets import Asset, BrandGuideline
from riskscan.app.schemas.findings import ScanFinding
from riskscan.app.schemas.provenance import ProvenanceReport
from riskscan.app.schemas.scans import Scan, ScanOutcome, VideoFrameRecord


class ScanRepository(Protocol):
    async def get_scan(self, scan_id: str) -> Scan:
        """Raise NotFound when the scan does not exist."""
        ...

    async def get_asset(self, asset_id: str) -> Asset:
        ...

    async def get_brand_guideline(self, guideline_id: str) -> BrandGuideline:
        ...

    async def claim_scan(self, scan_id: str) -> bool:
        """
        Move a scan from ``pending`` to ``processing``.

        Returns False when the scan was not pending (already claimed or
        terminal); nothing is written in that case.
        """
        ...

    async def complete_scan(
        self,
        scan: Scan,
        outcome: ScanOutcome,
        *,
        findings: Sequence[ScanFinding],
        frames: Sequence[VideoFrameRecord],
        provenance: ProvenanceReport,
    ) -> None:
        """
        Write every artifact of a finished scan and mark it complete.
        """
        ...

    async def fail_scan(self, scan_id: str, error_message: str) -> None:
        """Mark a non-terminal scan as failed."""
        ...

    async def list_pending_scan_ids(self, limit: int) -> List[str]:
        """Oldest pending scans first."""
        ...


def provenance_details_row(
    scan: Scan,
    report: ProvenanceReport,
) -> Optional[Dict[str, Any]]:
    """
    Build the provenance_details row for a scan.

    Only reports that found a manifest produce a row.
    """
    if not report.status.has_manifest:
        return None

    return {
        "scan_id": scan.id,
        "tenant_id": scan.tenant_id,
        "creator_name": report.creator,
        "creation_tool": report.tool,
        "creation_tool_version": report.tool_version,
        "creation_timestamp": report.timestamp,
        "signature_status": report.status.value,
        "certificate_issuer": report.issuer,
        "certificate_serial": report.serial,
        "hashing_algorithm": "sha256",
        "edit_history": [entry.model_dump(mode="json") for entry in report.history],
        "raw_manifest": report.raw_manifest,
    }
