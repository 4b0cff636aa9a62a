"""
Re-processing guarantees.

A terminal scan is never reopened and a scan claimed by another worker
is left alone. Neither case writes anything.
"""

from __future__ import annotations

import asyncio

import pytest

from riskscan.app.schemas.scans import ScanStatus
from riskscan.tests.fixtures.fakes import (
    FakeObjectStorage,
    InMemoryScanRepository,
    RecordingBroadcaster,
    build_orchestrator,
)
from riskscan.tests.vision.mock_vision_executor import MockVisionExecutor

pytestmark = pytest.mark.anyio


def setup(status: ScanStatus, **scan_fields):
    repository = InMemoryScanRepository()
    repository.add_asset(id="a-1", storage_path="p.jpg", mime_type="image/jpeg")
    repository.add_scan(id="scan-1", asset_id="a-1", status=status, **scan_fields)
    storage = FakeObjectStorage({"a-1": b"bytes"})
    executor = MockVisionExecutor()
    broadcaster = RecordingBroadcaster()
    orchestrator = build_orchestrator(
        repository=repository,
        storage=storage,
        executor=executor,
        broadcaster=broadcaster,
    )
    return orchestrator, repository, storage, executor, broadcaster


@pytest.mark.parametrize("status", [ScanStatus.COMPLETE, ScanStatus.FAILED])
async def test_terminal_scan_is_not_reprocessed(status):
    orchestrator, repository, storage, executor, broadcaster = setup(
        status, composite_score=44, error_message="earlier failure"
    )
    before = repository.scans["scan-1"]

    result = await orchestrator.process_scan("scan-1")
    await orchestrator.dispatcher.drain()

    assert result.success is True
    assert result.skipped is True
    assert repository.scans["scan-1"] == before
    assert repository.writes == []
    assert storage.fetched == []
    assert executor.calls == []
    assert broadcaster.events == []


async def test_scan_claimed_elsewhere_is_skipped():
    orchestrator, repository, storage, executor, _ = setup(ScanStatus.PROCESSING)

    result = await orchestrator.process_scan("scan-1")

    assert result.success is True
    assert result.skipped is True
    assert repository.scans["scan-1"].status == ScanStatus.PROCESSING
    assert repository.writes == []
    assert executor.calls == []


async def test_second_run_after_completion_is_a_no_op():
    orchestrator, repository, _, executor, _ = setup(ScanStatus.PENDING)

    first = await orchestrator.process_scan("scan-1")
    completed = repository.scans["scan-1"]
    findings = list(repository.findings)

    second = await orchestrator.process_scan("scan-1")

    assert first.skipped is False
    assert second.skipped is True
    assert repository.scans["scan-1"] == completed
    assert repository.findings == findings
    assert repository.writes == ["claim:scan-1", "complete:scan-1"]
    assert len(executor.calls) == 2


async def test_concurrent_requests_process_once():
    orchestrator, repository, _, executor, _ = setup(ScanStatus.PENDING)

    results = await asyncio.gather(
        orchestrator.process_scan("scan-1"),
        orchestrator.process_scan("scan-1"),
    )

    assert sorted(r.skipped for r in results) == [False, True]
    assert all(r.success for r in results)
    assert repository.writes.count("complete:scan-1") == 1
    assert len(executor.calls) == 2
