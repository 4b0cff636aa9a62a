"""
End-to-end processing of a single image scan.

Verifies that:
- the three signals combine into the stored composite score and tier
- findings are disclosed above the threshold only
- provenance metadata is persisted when a manifest exists
- progress is reported at fixed milestones and ends with a terminal event
"""

from __future__ import annotations

import pytest

from riskscan.app.events import ProgressEventType
from riskscan.app.risk.tiers import RiskLevel
from riskscan.app.schemas.findings import FindingSeverity, FindingType
from riskscan.app.schemas.provenance import C2PAStatus
from riskscan.app.schemas.scans import ScanStatus
from riskscan.tests.fixtures.fakes import (
    FakeCredentialReader,
    FakeObjectStorage,
    InMemoryScanRepository,
    RecordingBroadcaster,
    RecordingUsageMeter,
    build_orchestrator,
    manifest_store,
)
from riskscan.tests.vision.mock_vision_executor import (
    MockVisionExecutor,
    detection,
    ip_payload,
    safety_payload,
    violation,
)

pytestmark = pytest.mark.anyio


def seed(repository: InMemoryScanRepository, **scan_fields) -> FakeObjectStorage:
    repository.add_asset(
        id="a-1",
        tenant_id="t-1",
        filename="photo.jpg",
        mime_type="image/jpeg",
        storage_path="t-1/photo.jpg",
    )
    repository.add_scan(id="scan-1", tenant_id="t-1", asset_id="a-1", **scan_fields)
    return FakeObjectStorage({"a-1": b"\xff\xd8image"})


async def test_missing_credentials_scenario():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    broadcaster = RecordingBroadcaster()
    meter = RecordingUsageMeter()
    executor = MockVisionExecutor(
        ip=ip_payload(detection("medium", 80)),  # 40
        safety=safety_payload(violation("medium", 60)),  # 30
    )

    orchestrator = build_orchestrator(
        repository=repository,
        storage=storage,
        executor=executor,
        broadcaster=broadcaster,
        usage_meter=meter,
    )

    result = await orchestrator.process_scan("scan-1")
    await orchestrator.dispatcher.drain()

    assert result.success is True
    assert result.skipped is False

    scan = repository.scans["scan-1"]
    assert scan.status == ScanStatus.COMPLETE
    assert scan.composite_score == 44
    assert scan.risk_level == RiskLevel.CAUTION
    assert scan.ip_risk_score == 40
    assert scan.safety_risk_score == 30
    assert scan.provenance_risk_score == 80
    assert scan.provenance_status == C2PAStatus.MISSING
    assert scan.is_video is False
    assert scan.frames_analyzed is None
    assert scan.completed_at is not None
    assert scan.analysis_duration_ms >= 0

    # Neither vision signal crossed the disclosure threshold
    assert [f.finding_type for f in repository.findings] == [FindingType.PROVENANCE_ISSUE]
    provenance_finding = repository.findings[0]
    assert provenance_finding.title == "Missing Content Credentials"
    assert provenance_finding.severity == FindingSeverity.MEDIUM
    assert provenance_finding.confidence_score == 100

    assert repository.provenance_rows == []
    assert repository.frames == []

    assert broadcaster.percents == [5, 15, 30, 90, 100]
    assert broadcaster.events[-1].event_type == ProgressEventType.SCAN_COMPLETED

    assert meter.records == [
        {"scan_id": "scan-1", "tenant_id": "t-1", "is_video": False, "frames_analyzed": None}
    ]


async def test_trusted_credentials_override_ip_signal():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    executor = MockVisionExecutor(
        ip=ip_payload(detection("critical", 95, name="Famous Mouse")),  # 95
        safety=safety_payload(violation("medium", 40)),  # 20
    )

    orchestrator = build_orchestrator(
        repository=repository,
        storage=storage,
        executor=executor,
        reader=FakeCredentialReader(store=manifest_store()),
    )

    result = await orchestrator.process_scan("scan-1")

    assert result.success is True
    scan = repository.scans["scan-1"]
    assert scan.composite_score == 12
    assert scan.risk_level == RiskLevel.SAFE
    assert scan.provenance_status == C2PAStatus.VALID
    assert scan.provenance_risk_score == 0
    # The stored IP sub-score is the analyzer's, not the clamped one
    assert scan.ip_risk_score == 95

    by_type = {f.finding_type: f for f in repository.findings}
    ip_finding = by_type[FindingType.IP_VIOLATION]
    assert ip_finding.severity == FindingSeverity.CRITICAL
    assert "Famous Mouse" in ip_finding.description
    assert ip_finding.confidence_score == 95
    assert ip_finding.evidence["sub_score"] == 95
    assert by_type[FindingType.PROVENANCE_ISSUE].title == "Verified Content Credentials"

    (row,) = repository.provenance_rows
    assert row["scan_id"] == "scan-1"
    assert row["creator_name"] == "Jane Doe"
    assert row["creation_tool"] == "Adobe Firefly"
    assert row["signature_status"] == "valid"
    assert row["certificate_issuer"] == "Adobe Inc."
    assert len(row["edit_history"]) == 2


async def test_high_ip_with_missing_credentials_is_boosted():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    executor = MockVisionExecutor(
        ip=ip_payload(detection("critical", 85)),  # 85
        safety=safety_payload(violation("medium", 60)),  # 30
    )

    orchestrator = build_orchestrator(repository=repository, storage=storage, executor=executor)

    await orchestrator.process_scan("scan-1")

    scan = repository.scans["scan-1"]
    assert scan.composite_score == 79
    assert scan.risk_level == RiskLevel.HIGH


async def test_very_high_ip_hits_critical_floor():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    executor = MockVisionExecutor(
        ip=ip_payload(detection("critical", 92)),  # 92
        safety=safety_payload(violation("medium", 20)),  # 10
    )

    orchestrator = build_orchestrator(repository=repository, storage=storage, executor=executor)

    await orchestrator.process_scan("scan-1")

    scan = repository.scans["scan-1"]
    assert scan.composite_score == 95
    assert scan.risk_level == RiskLevel.CRITICAL


async def test_safety_finding_above_threshold():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    executor = MockVisionExecutor(
        safety=safety_payload(
            violation("high", 100, category="hate_symbols"),
            summary="Hate symbol visible",
        ),
    )

    orchestrator = build_orchestrator(repository=repository, storage=storage, executor=executor)

    await orchestrator.process_scan("scan-1")

    (safety_finding,) = [
        f for f in repository.findings if f.finding_type == FindingType.SAFETY_VIOLATION
    ]
    assert safety_finding.description == "Hate symbol visible"
    assert safety_finding.severity == FindingSeverity.MEDIUM
    assert safety_finding.evidence["violations"][0]["category"] == "hate_symbols"
    assert "frame_number" not in safety_finding.evidence


async def test_untrusted_credentials_yield_caution_provenance():
    repository = InMemoryScanRepository()
    storage = seed(repository)
    store = manifest_store(validation_status=[{"code": "signingCredential.untrusted"}])

    orchestrator = build_orchestrator(
        repository=repository,
        storage=storage,
        reader=FakeCredentialReader(store=store),
    )

    await orchestrator.process_scan("scan-1")

    scan = repository.scans["scan-1"]
    assert scan.provenance_status == C2PAStatus.CAUTION
    assert scan.provenance_risk_score == 20
    assert scan.composite_score == 4
    assert repository.provenance_rows[0]["signature_status"] == "caution"


async def test_guideline_reaches_both_prompts():
    repository = InMemoryScanRepository()
    storage = seed(repository, guideline_id="g-1")
    repository.add_guideline(
        id="g-1",
        tenant_id="t-1",
        name="Acme",
        prohibitions=["Competitor mascots"],
        target_platforms=["tiktok"],
    )
    executor = MockVisionExecutor()

    orchestrator = build_orchestrator(repository=repository, storage=storage, executor=executor)

    result = await orchestrator.process_scan("scan-1")

    assert result.success is True
    ip_prompt = executor.calls_for("ip_detection")[0]["prompt"]
    safety_prompt = executor.calls_for("brand_safety")[0]["prompt"]
    assert "Competitor mascots" in ip_prompt.task_text
    assert "tiktok" in safety_prompt.task_text
    assert "tiktok" not in ip_prompt.task_text


async def test_missing_guideline_falls_back_to_default_prompts():
    repository = InMemoryScanRepository()
    storage = seed(repository, guideline_id="g-missing")
    executor = MockVisionExecutor()

    orchestrator = build_orchestrator(repository=repository, storage=storage, executor=executor)

    result = await orchestrator.process_scan("scan-1")

    assert result.success is True
    assert "BRAND GUIDELINE" not in executor.calls_for("ip_detection")[0]["prompt"].task_text


async def test_asset_bytes_and_mime_type_reach_the_analyzers():
    repository = InMemoryScanRepository()
    repository.add_asset(id="a-1", storage_path="p.png", mime_type="image/png")
    repository.add_scan(id="scan-1", asset_id="a-1")
    executor = MockVisionExecutor()

    orchestrator = build_orchestrator(
        repository=repository,
        storage=FakeObjectStorage({"a-1": b"png-bytes"}),
        executor=executor,
    )

    await orchestrator.process_scan("scan-1")

    for call in executor.calls:
        assert call["image_bytes"] == b"png-bytes"
        assert call["mime_type"] == "image/png"
    assert len(executor.calls) == 2
