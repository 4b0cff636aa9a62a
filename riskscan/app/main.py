"""
FastAPI entrypoint for the RiskScan service.

Exposes scan processing over HTTP. Scans are created by the upload flow;
this service only moves them to a terminal state and records results.
All collaborators are wired once at startup and kept on ``app.state``.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse

from riskscan.app.config import RiskScanConfig
from riskscan.app.events import MemoryQueueProgressBroadcaster
from riskscan.app.orchestrator.scan_orchestrator import ScanOrchestrator
from riskscan.app.schemas.scans import PendingBatchResult, ProcessScanResult

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RiskScan Service",
    description="Forensic risk scoring for uploaded image and video assets",
    version="0.3.0",
)


# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup_event() -> None:
    """
    Application startup hook.

    Configuration is loaded once and treated as immutable for the lifetime
    of the process. External clients are constructed here and nowhere
    else.
    """
    config = RiskScanConfig.from_env()
    http_client = httpx.AsyncClient(timeout=30.0)

    orchestrator = ScanOrchestrator.from_config(
        config,
        http_client=http_client,
    )

    app.state.config = config
    app.state.http_client = http_client
    app.state.orchestrator = orchestrator

    logger.info(
        "RiskScan started (vision=%s, realtime=%s, frames=%d)",
        config.VISION_MODEL_PROVIDER,
        config.ENABLE_REALTIME_PROGRESS,
        config.VIDEO_FRAME_SAMPLE_COUNT,
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Flush pending side effects and release the HTTP client."""
    orchestrator: ScanOrchestrator = app.state.orchestrator
    await orchestrator.dispatcher.aclose()
    await app.state.http_client.aclose()


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.post(
    "/scans/{scan_id}/process",
    response_model=ProcessScanResult,
    summary="Process a single scan",
)
async def process_scan(scan_id: str):
    """
    Run one scan to a terminal state.

    Re-processing a finished scan is a no-op that still reports success.
    """
    orchestrator: ScanOrchestrator = app.state.orchestrator
    result = await orchestrator.process_scan(scan_id)

    if not result.success:
        return JSONResponse(status_code=500, content=result.model_dump())
    return result


@app.post(
    "/scans/process-pending",
    response_model=PendingBatchResult,
    response_model_exclude={"results"},
    summary="Process the oldest pending scans",
)
async def process_pending_scans() -> PendingBatchResult:
    orchestrator: ScanOrchestrator = app.state.orchestrator
    return await orchestrator.process_pending()


# ---------------------------------------------------------------------------
# Streaming Scan (SSE)
# ---------------------------------------------------------------------------

@app.post(
    "/scans/{scan_id}/process/stream",
    summary="Process a single scan (streaming progress)",
)
async def process_scan_stream(scan_id: str):
    """
    Process a scan while streaming its progress events.

    Client disconnects do NOT cancel the scan.
    """
    orchestrator: ScanOrchestrator = app.state.orchestrator
    broadcaster = MemoryQueueProgressBroadcaster()

    # --------------------------------------------------------------
    # Background scan execution
    # --------------------------------------------------------------
    async def run_scan_task() -> None:
        try:
            await orchestrator.process_scan(scan_id, broadcaster=broadcaster)
            await orchestrator.dispatcher.drain()
        finally:
            # Skipped scans emit no terminal event
            await broadcaster.close()

    asyncio.create_task(run_scan_task())

    # --------------------------------------------------------------
    # SSE event stream
    # --------------------------------------------------------------
    async def event_stream():
        try:
            async for event in broadcaster.stream():
                yield event.to_sse_payload()
        except asyncio.CancelledError:
            # Client disconnected; scan continues
            pass

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "service": "riskscan",
        }
    )
