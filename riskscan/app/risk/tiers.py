"""
Risk tier table.

This table is the single classifier for 0-100 scores in the code base.
Both the composite score and the per-signal sub-scores are mapped to a
level through get_risk_tier; no other module compares a score against
a tier boundary.

Bounds are inclusive lower bounds, checked from the highest tier down.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class RiskLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    REVIEW = "review"
    HIGH = "high"
    CRITICAL = "critical"


class Verdict(str, Enum):
    LOW_RISK = "Low Risk"
    MEDIUM_RISK = "Medium Risk"
    HIGH_RISK = "High Risk"
    CRITICAL_RISK = "Critical Risk"


class RiskTier(BaseModel):
    min_score: int
    level: RiskLevel
    label: str
    verdict: Verdict

    model_config = ConfigDict(frozen=True, extra="forbid")


# Highest tier first
RISK_TIERS: Tuple[RiskTier, ...] = (
    RiskTier(min_score=91, level=RiskLevel.CRITICAL, label="CRITICAL RISK", verdict=Verdict.CRITICAL_RISK),
    RiskTier(min_score=76, level=RiskLevel.HIGH, label="HIGH RISK", verdict=Verdict.HIGH_RISK),
    RiskTier(min_score=51, level=RiskLevel.REVIEW, label="REVIEW REQ", verdict=Verdict.MEDIUM_RISK),
    RiskTier(min_score=26, level=RiskLevel.CAUTION, label="CAUTION", verdict=Verdict.LOW_RISK),
    RiskTier(min_score=0, level=RiskLevel.SAFE, label="SAFE", verdict=Verdict.LOW_RISK),
)

# Levels written by earlier releases of the scanner
_LEGACY_LEVELS = {
    "low": RiskLevel.SAFE,
    "medium": RiskLevel.REVIEW,
}


def get_risk_tier(score: int) -> RiskTier:
    """
    Return the tier containing ``score``.

    Scores outside [0, 100] are clamped before lookup.
    """
    clamped = max(0, min(100, int(score)))
    for tier in RISK_TIERS:
        if clamped >= tier.min_score:
            return tier
    return RISK_TIERS[-1]


def map_legacy_level(raw: Optional[str]) -> Optional[RiskLevel]:
    """
    Normalize a stored level string, accepting historical values.

    Returns None for empty or unrecognized input.
    """
    if not raw:
        return None
    normalized = raw.strip().lower()
    if normalized in _LEGACY_LEVELS:
        return _LEGACY_LEVELS[normalized]
    try:
        return RiskLevel(normalized)
    except ValueError:
        return None
