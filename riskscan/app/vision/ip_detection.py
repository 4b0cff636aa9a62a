"""
IP detector.

Flags copyrighted characters, trademarked logos, celebrity likenesses and
protected designs in a single image.
"""

from __future__ import annotations

from typing import Optional

from riskscan.app.schemas.assets import BrandGuideline
from riskscan.app.vision.analyzer_base import VisionAnalyzerMixin
from riskscan.app.vision.contracts import (
    IPAnalysisResult,
    IPDetectionResponse,
    compute_sub_level,
    compute_sub_score,
)
from riskscan.app.vision.executor import VisionExecutor
from riskscan.app.vision.prompts import IP_DETECTION, build_ip_prompt


class IPDetector(VisionAnalyzerMixin):
    ANALYZER_ID = IP_DETECTION
    RESPONSE_SCHEMA = IPDetectionResponse

    def __init__(self, executor: VisionExecutor) -> None:
        self._executor = executor

    async def analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        *,
        guideline: Optional[BrandGuideline] = None,
    ) -> IPAnalysisResult:
        response = await self._request(
            prompt=build_ip_prompt(guideline),
            image_bytes=image_bytes,
            mime_type=mime_type,
        )

        score = compute_sub_score(response.detections)

        return IPAnalysisResult(
            detections=list(response.detections),
            summary=response.summary or "No IP detected",
            score=score,
            level=compute_sub_level(response.detections, score),
        )
