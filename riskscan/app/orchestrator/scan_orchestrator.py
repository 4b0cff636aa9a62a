"""
Scan orchestrator.

Drives one scan through ``pending -> processing -> complete | failed``.

The orchestrator owns the scan row. It MUST NOT:
- re-open a terminal scan
- let a side-effect failure (progress, metering) fail a scan
- leave partial findings or frames behind on failure
- re-raise past process_scan

Execution order:
    1. Terminal-state guard and conditional claim
    2. Asset and optional brand guideline resolution
    3. Asset download
    4. Provenance verification (recovered locally on failure)
    5. Vision analysis: whole image, or N sampled frames one at a time
    6. Composite scoring and tiering
    7. Findings, then a single finalization write
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import httpx

from riskscan.app.config import RiskScanConfig
from riskscan.app.errors import MediaProcessingFailure, NotFound
from riskscan.app.events import (
    NullProgressBroadcaster,
    ProgressBroadcaster,
    ProgressEvent,
    ProgressEventType,
    SideEffectDispatcher,
)
from riskscan.app.metering import NullUsageMeter, UsageMeter
from riskscan.app.orchestrator.findings_builder import SignalSummary, build_findings
from riskscan.app.persistence.repository import ScanRepository
from riskscan.app.provenance.verifier import ProvenanceVerifier
from riskscan.app.risk.scoring import (
    CompositeScoreInput,
    compute_composite_score,
    score_composite,
)
from riskscan.app.schemas.assets import BrandGuideline, MediaKind
from riskscan.app.schemas.scans import (
    PendingBatchResult,
    ProcessScanResult,
    Scan,
    ScanOutcome,
    VideoFrameRecord,
)
from riskscan.app.schemas.provenance import C2PAStatus
from riskscan.app.storage.object_storage import ObjectStorage
from riskscan.app.video.frame_sampler import FrameSampler
from riskscan.app.vision.brand_safety import SafetyAnalyzer
from riskscan.app.vision.contracts import (
    IPAnalysisResult,
    SafetyAnalysisResult,
    compute_sub_level,
)
from riskscan.app.vision.ip_detection import IPDetector

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Progress milestones (percent)
# ----------------------------------------------------------------------

PROGRESS_STARTED = 5
PROGRESS_PROVENANCE = 15
PROGRESS_ANALYSIS = 30
PROGRESS_ANALYSIS_SPAN = 60
PROGRESS_FINALIZING = 90
PROGRESS_DONE = 100


class ScanOrchestrator:
    def __init__(
        self,
        *,
        config: RiskScanConfig,
        repository: ScanRepository,
        storage: ObjectStorage,
        provenance_verifier: ProvenanceVerifier,
        ip_detector: IPDetector,
        safety_analyzer: SafetyAnalyzer,
        frame_sampler: FrameSampler,
        broadcaster: Optional[ProgressBroadcaster] = None,
        usage_meter: Optional[UsageMeter] = None,
        dispatcher: Optional[SideEffectDispatcher] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring; every collaborator is
        injected.
        """
        self._config = config
        self._repository = repository
        self._storage = storage
        self._provenance_verifier = provenance_verifier
        self._ip_detector = ip_detector
        self._safety_analyzer = safety_analyzer
        self._frame_sampler = frame_sampler
        self._broadcaster = broadcaster or NullProgressBroadcaster()
        self._usage_meter = usage_meter or NullUsageMeter()
        self._dispatcher = dispatcher or SideEffectDispatcher(
            max_pending=config.PROGRESS_QUEUE_SIZE
        )

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: RiskScanConfig,
        *,
        http_client: httpx.AsyncClient,
        usage_meter: Optional[UsageMeter] = None,
    ) -> "ScanOrchestrator":
        """
        Construct a fully wired orchestrator from runtime configuration.

        The HTTP client is owned by the caller and shared by all Supabase
        adapters.
        """
        from riskscan.app.events.realtime_broadcaster import SupabaseRealtimeBroadcaster
        from riskscan.app.persistence.supabase_repository import SupabaseScanRepository
        from riskscan.app.storage.object_storage import SupabaseObjectStorage
        from riskscan.app.supabase_client import SupabaseEndpoint
        from riskscan.app.video.frame_sampler import FfmpegFrameSampler
        from riskscan.app.vision.executor import (
            AzureVisionExecutor,
            DisabledVisionExecutor,
        )

        endpoint = SupabaseEndpoint.from_config(config)

        if config.VISION_MODEL_PROVIDER == "azure_openai":
            executor = AzureVisionExecutor(
                endpoint=config.AZURE_OPENAI_ENDPOINT,
                deployment=config.AZURE_OPENAI_DEPLOYMENT,
                api_version=config.AZURE_OPENAI_API_VERSION,
                timeout_seconds=config.VISION_TIMEOUT_SECONDS,
            )
        else:
            logger.warning("Vision analysis disabled; scans will fail at analysis")
            executor = DisabledVisionExecutor()

        broadcaster: ProgressBroadcaster
        if config.ENABLE_REALTIME_PROGRESS:
            broadcaster = SupabaseRealtimeBroadcaster(
                client=http_client,
                endpoint=endpoint,
            )
        else:
            broadcaster = NullProgressBroadcaster()

        return cls(
            config=config,
            repository=SupabaseScanRepository(client=http_client, endpoint=endpoint),
            storage=SupabaseObjectStorage(
                client=http_client,
                endpoint=endpoint,
                default_bucket=config.STORAGE_BUCKET,
                signed_url_ttl_seconds=config.SIGNED_URL_TTL_SECONDS,
                max_size_bytes=config.max_asset_size_bytes,
            ),
            provenance_verifier=ProvenanceVerifier(),
            ip_detector=IPDetector(executor),
            safety_analyzer=SafetyAnalyzer(executor),
            frame_sampler=FfmpegFrameSampler(
                ffmpeg_binary=config.FFMPEG_BINARY,
                ffprobe_binary=config.FFPROBE_BINARY,
                frame_width=config.FRAME_WIDTH_PX,
                timeout_seconds=config.FRAME_EXTRACTION_TIMEOUT_SECONDS,
            ),
            broadcaster=broadcaster,
            usage_meter=usage_meter,
        )

    @property
    def dispatcher(self) -> SideEffectDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Side effects (never awaited on the critical path)
    # ------------------------------------------------------------------

    def _notify(
        self,
        broadcaster: ProgressBroadcaster,
        scan_id: str,
        percent: int,
        message: str,
        event_type: ProgressEventType = ProgressEventType.SCAN_PROGRESS,
    ) -> None:
        event = ProgressEvent(
            scan_id=scan_id,
            percent=percent,
            message=message,
            event_type=event_type,
        )
        self._dispatcher.submit(
            f"progress:{scan_id}:{percent}",
            lambda: broadcaster.broadcast(event),
        )

    def _meter(self, scan: Scan, outcome: ScanOutcome) -> None:
        self._dispatcher.submit(
            f"metering:{scan.id}",
            lambda: self._usage_meter.record_scan(
                scan_id=scan.id,
                tenant_id=scan.tenant_id,
                is_video=outcome.is_video,
                frames_analyzed=outcome.frames_analyzed,
            ),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_scan(
        self,
        scan_id: str,
        *,
        broadcaster: Optional[ProgressBroadcaster] = None,
    ) -> ProcessScanResult:
        """
        Process one scan to a terminal state.

        Never raises for pipeline failures: the scan is marked failed and
        the error is reported in the result.
        """
        broadcaster = broadcaster or self._broadcaster

        try:
            scan = await self._repository.get_scan(scan_id)

            if scan.status.is_terminal:
                logger.info(
                    "Scan %s already %s; nothing to do", scan_id, scan.status.value
                )
                return ProcessScanResult(success=True, scan_id=scan_id, skipped=True)

            if not await self._repository.claim_scan(scan_id):
                logger.info("Scan %s is owned by another worker; skipping", scan_id)
                return ProcessScanResult(success=True, scan_id=scan_id, skipped=True)

            await self._run(scan, broadcaster)
            return ProcessScanResult(success=True, scan_id=scan_id)

        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.exception("Scan %s failed: %s", scan_id, message)

            try:
                await self._repository.fail_scan(scan_id, message)
            except Exception:
                logger.exception("Could not mark scan %s as failed", scan_id)

            self._notify(
                broadcaster,
                scan_id,
                PROGRESS_DONE,
                f"Scan failed: {message}",
                ProgressEventType.SCAN_FAILED,
            )
            return ProcessScanResult(success=False, scan_id=scan_id, error=message)

    async def process_pending(self, limit: Optional[int] = None) -> PendingBatchResult:
        """
        Process up to ``limit`` pending scans, oldest first, one at a time.
        """
        limit = limit or self._config.PENDING_BATCH_LIMIT
        scan_ids = await self._repository.list_pending_scan_ids(limit)

        results: List[ProcessScanResult] = []
        for scan_id in scan_ids:
            results.append(await self.process_scan(scan_id))

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Processed %d pending scans (%d succeeded, %d failed)",
            len(results),
            succeeded,
            len(results) - succeeded,
        )
        return PendingBatchResult(
            processed=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, scan: Scan, broadcaster: ProgressBroadcaster) -> None:
        started = time.perf_counter()
        self._notify(broadcaster, scan.id, PROGRESS_STARTED, "Initializing scan")

        asset = await self._repository.get_asset(scan.asset_id)
        guideline = await self._load_guideline(scan)

        data = await self._storage.fetch_asset(asset)
        mime_type = asset.resolved_mime_type
        is_video = asset.media_kind == MediaKind.VIDEO

        # ----------------------------------------------------------
        # Provenance
        # ----------------------------------------------------------
        self._notify(
            broadcaster, scan.id, PROGRESS_PROVENANCE, "Checking content credentials"
        )
        provenance = await self._provenance_verifier.verify_bytes(data, mime_type)
        logger.info("Scan %s provenance: %s", scan.id, provenance.status.value)

        # ----------------------------------------------------------
        # Vision analysis
        # ----------------------------------------------------------
        self._notify(broadcaster, scan.id, PROGRESS_ANALYSIS, "Analyzing content")

        frames: List[VideoFrameRecord] = []
        if is_video:
            ip, safety, frames = await self._analyze_video(
                scan, data, mime_type, guideline, provenance.status, broadcaster
            )
        else:
            ip, safety = await self._analyze_image(data, mime_type, guideline)

        # ----------------------------------------------------------
        # Scoring
        # ----------------------------------------------------------
        composite = score_composite(
            CompositeScoreInput(
                ip_score=ip.score,
                safety_score=safety.score,
                c2pa_status=provenance.status,
            )
        )

        self._notify(broadcaster, scan.id, PROGRESS_FINALIZING, "Saving results")

        findings = build_findings(
            scan,
            ip=ip,
            safety=safety,
            provenance=provenance,
            threshold=self._config.FINDING_DISCLOSURE_THRESHOLD,
        )

        outcome = ScanOutcome(
            risk_level=composite.level,
            composite_score=composite.score,
            ip_risk_score=ip.score,
            safety_risk_score=safety.score,
            provenance_risk_score=composite.provenance_score,
            provenance_status=composite.provenance_status,
            is_video=is_video,
            frames_analyzed=len(frames) if is_video else None,
            completed_at=datetime.now(timezone.utc),
            analysis_duration_ms=int((time.perf_counter() - started) * 1000),
        )

        await self._repository.complete_scan(
            scan,
            outcome,
            findings=findings,
            frames=frames,
            provenance=provenance,
        )

        logger.info(
            "Scan %s complete: composite=%d level=%s (%d ms)",
            scan.id,
            outcome.composite_score,
            outcome.risk_level.value,
            outcome.analysis_duration_ms,
        )

        self._notify(
            broadcaster,
            scan.id,
            PROGRESS_DONE,
            "Scan complete",
            ProgressEventType.SCAN_COMPLETED,
        )
        self._meter(scan, outcome)

    async def _load_guideline(self, scan: Scan) -> Optional[BrandGuideline]:
        if not scan.guideline_id:
            return None
        try:
            return await self._repository.get_brand_guideline(scan.guideline_id)
        except NotFound:
            # Guidelines only refine prompts
            logger.warning(
                "Brand guideline %s for scan %s not found; using defaults",
                scan.guideline_id,
                scan.id,
            )
            return None

    async def _analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        guideline: Optional[BrandGuideline],
    ) -> Tuple[IPAnalysisResult, SafetyAnalysisResult]:
        # Both requests settle before a failure propagates
        ip, safety = await asyncio.gather(
            self._ip_detector.analyze(image_bytes, mime_type, guideline=guideline),
            self._safety_analyzer.analyze(image_bytes, mime_type, guideline=guideline),
            return_exceptions=True,
        )
        for result in (ip, safety):
            if isinstance(result, BaseException):
                raise result
        return ip, safety

    async def _analyze_image(
        self,
        data: bytes,
        mime_type: str,
        guideline: Optional[BrandGuideline],
    ) -> Tuple[SignalSummary, SignalSummary]:
        ip, safety = await self._analyze(data, mime_type, guideline)
        return (
            SignalSummary(
                score=ip.score,
                level=ip.level,
                summary=ip.summary,
                detections=ip.detections,
            ),
            SignalSummary(
                score=safety.score,
                level=safety.level,
                summary=safety.summary,
                detections=safety.violations,
            ),
        )

    async def _analyze_video(
        self,
        scan: Scan,
        data: bytes,
        mime_type: str,
        guideline: Optional[BrandGuideline],
        provenance_status: C2PAStatus,
        broadcaster: ProgressBroadcaster,
    ) -> Tuple[SignalSummary, SignalSummary, List[VideoFrameRecord]]:
        count = self._config.VIDEO_FRAME_SAMPLE_COUNT
        sampled = await self._frame_sampler.sample(data, mime_type, count)
        if not sampled:
            raise MediaProcessingFailure(f"No frames sampled from asset {scan.asset_id}")

        records: List[VideoFrameRecord] = []
        worst_ip: Optional[Tuple[IPAnalysisResult, int, int]] = None
        worst_safety: Optional[Tuple[SafetyAnalysisResult, int, int]] = None
        all_ip_detections = []
        all_violations = []

        # Frames run one at a time to bound concurrent vision requests
        for position, frame in enumerate(sampled):
            ip, safety = await self._analyze(frame.image_bytes, frame.mime_type, guideline)

            all_ip_detections.extend(ip.detections)
            all_violations.extend(safety.violations)

            if worst_ip is None or ip.score > worst_ip[0].score:
                worst_ip = (ip, frame.frame_number, frame.timestamp_ms)
            if worst_safety is None or safety.score > worst_safety[0].score:
                worst_safety = (safety, frame.frame_number, frame.timestamp_ms)

            records.append(
                VideoFrameRecord(
                    scan_id=scan.id,
                    tenant_id=scan.tenant_id,
                    frame_number=frame.frame_number,
                    timestamp_ms=frame.timestamp_ms,
                    ip_risk_score=ip.score,
                    safety_risk_score=safety.score,
                    composite_score=compute_composite_score(
                        ip.score, safety.score, provenance_status
                    ),
                )
            )

            done = position + 1
            self._notify(
                broadcaster,
                scan.id,
                PROGRESS_ANALYSIS + PROGRESS_ANALYSIS_SPAN * done // len(sampled),
                f"Analyzed frame {done} of {len(sampled)}",
            )

        ip_result, ip_frame, ip_ts = worst_ip
        safety_result, safety_frame, safety_ts = worst_safety

        return (
            SignalSummary(
                score=ip_result.score,
                level=compute_sub_level(all_ip_detections, ip_result.score),
                summary=ip_result.summary,
                detections=ip_result.detections,
                frame_number=ip_frame,
                timestamp_ms=ip_ts,
            ),
            SignalSummary(
                score=safety_result.score,
                level=compute_sub_level(all_violations, safety_result.score),
                summary=safety_result.summary,
                detections=safety_result.violations,
                frame_number=safety_frame,
                timestamp_ms=safety_ts,
            ),
            records,
        )
