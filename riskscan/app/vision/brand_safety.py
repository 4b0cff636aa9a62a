"""
Brand safety analyzer.

Flags content that breaches common social platform policies and derives
a per-platform compliance view from the violations found.
"""

from __future__ import annotations

from typing import Optional, Sequence

from riskscan.app.schemas.assets import BrandGuideline
from riskscan.app.vision.analyzer_base import VisionAnalyzerMixin
from riskscan.app.vision.contracts import (
    DetectionSeverity,
    PlatformCompliance,
    SafetyAnalysisResult,
    SafetyCategory,
    SafetyResponse,
    SafetyViolation,
    compute_sub_level,
    compute_sub_score,
)
from riskscan.app.vision.executor import VisionExecutor
from riskscan.app.vision.prompts import BRAND_SAFETY, build_safety_prompt


def determine_platform_compliance(
    violations: Sequence[SafetyViolation],
) -> PlatformCompliance:
    """
    Simplified per-platform policy view.

    Critical violations and hate symbols block every platform. Adult
    content additionally blocks Instagram and TikTok; TikTok also rejects
    any violence above low severity.
    """
    if not violations:
        return PlatformCompliance()

    has_critical = any(v.severity == DetectionSeverity.CRITICAL for v in violations)
    has_hate = any(v.category == SafetyCategory.HATE_SYMBOLS for v in violations)
    has_adult = any(v.category == SafetyCategory.ADULT_CONTENT for v in violations)
    has_violence = any(
        v.category == SafetyCategory.VIOLENCE
        and v.severity != DetectionSeverity.LOW
        for v in violations
    )

    blocked_everywhere = has_critical or has_hate

    return PlatformCompliance(
        facebook=not blocked_everywhere,
        instagram=not (blocked_everywhere or has_adult),
        youtube=not blocked_everywhere,
        tiktok=not (blocked_everywhere or has_adult or has_violence),
    )


class SafetyAnalyzer(VisionAnalyzerMixin):
    ANALYZER_ID = BRAND_SAFETY
    RESPONSE_SCHEMA = SafetyResponse

    def __init__(self, executor: VisionExecutor) -> None:
        self._executor = executor

    async def analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        *,
        guideline: Optional[BrandGuideline] = None,
    ) -> SafetyAnalysisResult:
        response = await self._request(
            prompt=build_safety_prompt(guideline),
            image_bytes=image_bytes,
            mime_type=mime_type,
        )

        score = compute_sub_score(response.violations)

        return SafetyAnalysisResult(
            violations=list(response.violations),
            summary=response.summary or "No violations detected",
            score=score,
            level=compute_sub_level(response.violations, score),
            platform_compliance=determine_platform_compliance(response.violations),
        )
