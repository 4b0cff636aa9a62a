"""
Response contracts and sub-scoring for the vision analyzers.

Both analyzers share one detection shape (severity, confidence,
description) and one scoring rule:

    sub_score = round(mean(weight(severity) * confidence / 100))

with weights low=25, medium=50, high=75, critical=100. An empty
detection list scores 0. The sub-level comes from the global tier table,
except that a single critical detection forces the critical level.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from riskscan.app.risk.scoring import round_half_up
from riskscan.app.risk.tiers import RiskLevel, get_risk_tier


class DetectionSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_WEIGHTS: Dict[DetectionSeverity, int] = {
    DetectionSeverity.LOW: 25,
    DetectionSeverity.MEDIUM: 50,
    DetectionSeverity.HIGH: 75,
    DetectionSeverity.CRITICAL: 100,
}


class IPDetectionType(str, Enum):
    CHARACTER = "character"
    LOGO = "logo"
    CELEBRITY = "celebrity"
    DESIGN = "design"
    OTHER = "other"


class SafetyCategory(str, Enum):
    ADULT_CONTENT = "adult_content"
    VIOLENCE = "violence"
    HATE_SYMBOLS = "hate_symbols"
    DRUGS_ALCOHOL = "drugs_alcohol"
    PROFANITY = "profanity"
    CONTROVERSIAL = "controversial"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Detections
# ---------------------------------------------------------------------------


class Detection(BaseModel):
    # Older prompts asked for "riskLevel"
    severity: DetectionSeverity = Field(
        ...,
        validation_alias=AliasChoices("severity", "riskLevel", "risk_level"),
    )
    confidence: int = Field(..., ge=0, le=100)
    description: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Any:
        # Models occasionally answer with decimals
        if isinstance(v, float):
            return round_half_up(v)
        return v


class IPDetection(Detection):
    type: IPDetectionType = IPDetectionType.OTHER
    name: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_is_other(cls, v: Any) -> Any:
        if isinstance(v, str):
            normalized = v.strip().lower()
            if normalized in {t.value for t in IPDetectionType}:
                return normalized
            return IPDetectionType.OTHER
        return v


class SafetyViolation(Detection):
    category: SafetyCategory = SafetyCategory.OTHER

    @field_validator("category", mode="before")
    @classmethod
    def unknown_category_is_other(cls, v: Any) -> Any:
        if isinstance(v, str):
            normalized = v.strip().lower()
            if normalized in {c.value for c in SafetyCategory}:
                return normalized
            return SafetyCategory.OTHER
        return v


class IPDetectionResponse(BaseModel):
    detections: List[IPDetection] = Field(default_factory=list)
    summary: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")


class SafetyResponse(BaseModel):
    violations: List[SafetyViolation] = Field(default_factory=list)
    summary: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def compute_sub_score(detections: Sequence[Detection]) -> int:
    if not detections:
        return 0
    total = sum(
        Decimal(SEVERITY_WEIGHTS[d.severity] * d.confidence) / 100
        for d in detections
    )
    return round_half_up(total / len(detections))


def compute_sub_level(detections: Sequence[Detection], sub_score: int) -> RiskLevel:
    if any(d.severity == DetectionSeverity.CRITICAL for d in detections):
        return RiskLevel.CRITICAL
    return get_risk_tier(sub_score).level


# ---------------------------------------------------------------------------
# Analyzer results
# ---------------------------------------------------------------------------


class PlatformCompliance(BaseModel):
    facebook: bool = True
    instagram: bool = True
    youtube: bool = True
    tiktok: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


class IPAnalysisResult(BaseModel):
    detections: List[IPDetection]
    summary: str
    score: int = Field(..., ge=0, le=100)
    level: RiskLevel

    model_config = ConfigDict(frozen=True, extra="forbid")


class SafetyAnalysisResult(BaseModel):
    violations: List[SafetyViolation]
    summary: str
    score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    platform_compliance: PlatformCompliance

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def detections(self) -> List[SafetyViolation]:
        return self.violations


def evidence_items(detections: Optional[Sequence[Detection]]) -> List[Dict[str, Any]]:
    return [d.model_dump(mode="json") for d in detections or []]
