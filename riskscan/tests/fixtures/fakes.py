"""
In-memory collaborators for orchestrator tests.

None of these touch the network, the filesystem beyond temp files, or
external binaries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from riskscan.app.config import RiskScanConfig
from riskscan.app.errors import NotFound, PersistenceFailure, StorageFailure
from riskscan.app.events import ProgressEvent, SideEffectDispatcher
from riskscan.app.orchestrator.scan_orchestrator import ScanOrchestrator
from riskscan.app.persistence.repository import provenance_details_row
from riskscan.app.provenance.verifier import ProvenanceVerifier
from riskscan.app.schemas.assets import Asset, BrandGuideline
from riskscan.app.schemas.findings import ScanFinding
from riskscan.app.schemas.provenance import ProvenanceReport
from riskscan.app.schemas.scans import Scan, ScanOutcome, ScanStatus, VideoFrameRecord
from riskscan.app.video.frame_sampler import SampledFrame
from riskscan.app.vision.brand_safety import SafetyAnalyzer
from riskscan.app.vision.ip_detection import IPDetector
from riskscan.tests.vision.mock_vision_executor import MockVisionExecutor


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InMemoryScanRepository:
    def __init__(self) -> None:
        self.scans: Dict[str, Scan] = {}
        self.assets: Dict[str, Asset] = {}
        self.guidelines: Dict[str, BrandGuideline] = {}

        self.findings: List[ScanFinding] = []
        self.frames: List[VideoFrameRecord] = []
        self.provenance_rows: List[Dict[str, Any]] = []
        self.writes: List[str] = []

        self.fail_on_complete = False

    # -- seeding ---------------------------------------------------------

    def add_scan(self, **fields: Any) -> Scan:
        fields.setdefault("created_at", datetime.now(timezone.utc))
        scan = Scan(**fields)
        self.scans[scan.id] = scan
        return scan

    def add_asset(self, **fields: Any) -> Asset:
        asset = Asset(**fields)
        self.assets[asset.id] = asset
        return asset

    def add_guideline(self, **fields: Any) -> BrandGuideline:
        guideline = BrandGuideline(**fields)
        self.guidelines[guideline.id] = guideline
        return guideline

    def _update(self, scan_id: str, **changes: Any) -> None:
        self.scans[scan_id] = self.scans[scan_id].model_copy(update=changes)

    # -- ScanRepository ----------------------------------------------------

    async def get_scan(self, scan_id: str) -> Scan:
        if scan_id not in self.scans:
            raise NotFound(f"Scan not found: {scan_id}")
        return self.scans[scan_id]

    async def get_asset(self, asset_id: str) -> Asset:
        if asset_id not in self.assets:
            raise NotFound(f"Asset not found: {asset_id}")
        return self.assets[asset_id]

    async def get_brand_guideline(self, guideline_id: str) -> BrandGuideline:
        if guideline_id not in self.guidelines:
            raise NotFound(f"Brand guideline not found: {guideline_id}")
        return self.guidelines[guideline_id]

    async def claim_scan(self, scan_id: str) -> bool:
        scan = self.scans.get(scan_id)
        if scan is None or scan.status != ScanStatus.PENDING:
            return False
        self.writes.append(f"claim:{scan_id}")
        self._update(scan_id, status=ScanStatus.PROCESSING)
        return True

    async def complete_scan(
        self,
        scan: Scan,
        outcome: ScanOutcome,
        *,
        findings: Sequence[ScanFinding],
        frames: Sequence[VideoFrameRecord],
        provenance: ProvenanceReport,
    ) -> None:
        if self.fail_on_complete:
            raise PersistenceFailure("datastore unavailable")

        self.writes.append(f"complete:{scan.id}")
        self.findings.extend(findings)
        self.frames.extend(frames)
        row = provenance_details_row(scan, provenance)
        if row is not None:
            self.provenance_rows.append(row)
        self._update(scan.id, **outcome.model_dump())

    async def fail_scan(self, scan_id: str, error_message: str) -> None:
        scan = self.scans.get(scan_id)
        if scan is None or scan.status.is_terminal:
            return
        self.writes.append(f"fail:{scan_id}")
        self._update(scan_id, status=ScanStatus.FAILED, error_message=error_message)

    async def list_pending_scan_ids(self, limit: int) -> List[str]:
        pending = sorted(
            (s for s in self.scans.values() if s.status == ScanStatus.PENDING),
            key=lambda s: s.created_at,
        )
        return [s.id for s in pending[:limit]]


# ---------------------------------------------------------------------------
# Storage / media / provenance
# ---------------------------------------------------------------------------


class FakeObjectStorage:
    def __init__(self, payloads: Optional[Dict[str, bytes]] = None) -> None:
        self.payloads = payloads or {}
        self.fetched: List[str] = []

    async def fetch_asset(self, asset: Asset) -> bytes:
        self.fetched.append(asset.id)
        if asset.id not in self.payloads:
            raise StorageFailure(f"Asset download for {asset.id} returned HTTP 404")
        return self.payloads[asset.id]


class StaticFrameSampler:
    def __init__(self, count: Optional[int] = None) -> None:
        self._count = count
        self.requested: List[int] = []

    async def sample(
        self,
        video_bytes: bytes,
        mime_type: str,
        count: int,
    ) -> List[SampledFrame]:
        self.requested.append(count)
        n = count if self._count is None else self._count
        return [
            SampledFrame(
                frame_number=i,
                timestamp_ms=i * 1000,
                image_bytes=f"frame-{i}".encode(),
            )
            for i in range(n)
        ]


class FakeCredentialReader:
    def __init__(
        self,
        store: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._store = store
        self._error = error
        self.paths: List[str] = []

    def read(self, path: str) -> Optional[Dict[str, Any]]:
        self.paths.append(path)
        if self._error is not None:
            raise self._error
        return self._store


def manifest_store(
    *,
    validation_status: Optional[List[Dict[str, str]]] = None,
    validation_state: Optional[str] = None,
) -> Dict[str, Any]:
    store: Dict[str, Any] = {
        "active_manifest": "urn:uuid:1234",
        "manifests": {
            "urn:uuid:1234": {
                "claim_generator": "Adobe_Firefly/2.0 c2pa-rs/0.28.4",
                "claim_generator_info": [{"name": "Adobe Firefly", "version": "2.0"}],
                "assertions": [
                    {
                        "label": "stds.schema-org.CreativeWork",
                        "data": {"author": [{"@type": "Person", "name": "Jane Doe"}]},
                    },
                    {
                        "label": "c2pa.actions.v2",
                        "data": {
                            "actions": [
                                {
                                    "action": "c2pa.created",
                                    "softwareAgent": {"name": "Adobe Firefly"},
                                    "when": "2024-05-01T10:00:00Z",
                                },
                                {
                                    "action": "c2pa.edited",
                                    "softwareAgent": "Photoshop 25.0",
                                },
                            ]
                        },
                    },
                ],
                "signature_info": {
                    "issuer": "Adobe Inc.",
                    "cert_serial_number": "123456789",
                    "time": "2024-05-01T10:00:05Z",
                },
            }
        },
    }
    if validation_status is not None:
        store["validation_status"] = validation_status
    if validation_state is not None:
        store["validation_state"] = validation_state
    return store


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    async def broadcast(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def percents(self) -> List[int]:
        return [e.percent for e in self.events]


class FailingBroadcaster:
    def __init__(self) -> None:
        self.attempts = 0

    async def broadcast(self, event: ProgressEvent) -> None:
        self.attempts += 1
        raise ConnectionError("realtime unavailable")


class RecordingUsageMeter:
    def __init__(self, fail: bool = False) -> None:
        self.records: List[Dict[str, Any]] = []
        self._fail = fail

    async def record_scan(self, **kwargs: Any) -> None:
        if self._fail:
            raise RuntimeError("billing unavailable")
        self.records.append(kwargs)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_orchestrator(
    *,
    repository: InMemoryScanRepository,
    storage: FakeObjectStorage,
    executor: Optional[MockVisionExecutor] = None,
    reader: Optional[FakeCredentialReader] = None,
    sampler: Optional[StaticFrameSampler] = None,
    broadcaster: Any = None,
    usage_meter: Any = None,
    config: Optional[RiskScanConfig] = None,
) -> ScanOrchestrator:
    executor = executor or MockVisionExecutor()
    return ScanOrchestrator(
        config=config or RiskScanConfig(),
        repository=repository,
        storage=storage,
        provenance_verifier=ProvenanceVerifier(reader or FakeCredentialReader()),
        ip_detector=IPDetector(executor),
        safety_analyzer=SafetyAnalyzer(executor),
        frame_sampler=sampler or StaticFrameSampler(),
        broadcaster=broadcaster,
        usage_meter=usage_meter,
        dispatcher=SideEffectDispatcher(max_pending=64),
    )
