"""
Composite risk scoring.

Combines the IP sub-score, the brand-safety sub-score and the content
provenance status into one 0-100 composite score. The rules are applied
in a fixed order:

1. Provenance score lookup (unknown statuses are treated as missing)
2. Trust override: valid provenance clamps the IP sub-score to 10
3. Weighted base: 40% IP, 40% safety, 20% provenance
4. Compound boost when high IP risk coincides with weak provenance
5. Critical floor for near-certain IP infringement

This module is pure and deterministic. All rounding is half-up so that
``x.5`` always rounds away from zero, never to the nearest even value.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from riskscan.app.risk.tiers import RiskLevel, Verdict, get_risk_tier
from riskscan.app.schemas.provenance import C2PAStatus


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROVENANCE_SCORES: Dict[C2PAStatus, int] = {
    C2PAStatus.VALID: 0,
    C2PAStatus.CAUTION: 20,
    C2PAStatus.ERROR: 50,
    C2PAStatus.MISSING: 80,
    C2PAStatus.INVALID: 100,
}

TRUSTED_IP_CEILING = 10

IP_WEIGHT = Decimal("0.4")
SAFETY_WEIGHT = Decimal("0.4")
PROVENANCE_WEIGHT = Decimal("0.2")

BOOST_IP_THRESHOLD = 80
BOOST_PROVENANCE_THRESHOLD = 60

CRITICAL_IP_THRESHOLD = 90
CRITICAL_FLOOR = 95


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def round_half_up(value: Union[Decimal, float, int]) -> int:
    """Round to the nearest integer, ties away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_provenance_status(
    status: Union[C2PAStatus, str, None],
) -> C2PAStatus:
    """
    Normalize a provenance status; anything unrecognized is ``missing``.
    """
    if isinstance(status, C2PAStatus):
        return status
    if status:
        try:
            return C2PAStatus(str(status).lower())
        except ValueError:
            pass
    return C2PAStatus.MISSING


def compute_provenance_score(status: Union[C2PAStatus, str, None]) -> int:
    return PROVENANCE_SCORES[compute_provenance_status(status)]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class CompositeScoreInput(BaseModel):
    ip_score: int = Field(..., ge=0, le=100)
    safety_score: int = Field(..., ge=0, le=100)
    c2pa_status: Optional[Union[C2PAStatus, str]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class CompositeScore(BaseModel):
    """
    Composite score plus the intermediate values that produced it.
    """

    score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    verdict: Verdict

    provenance_status: C2PAStatus
    provenance_score: int
    effective_ip_score: int
    base_score: int

    trust_override_applied: bool
    boost_applied: bool
    critical_floor_applied: bool

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_composite(payload: CompositeScoreInput) -> CompositeScore:
    status = compute_provenance_status(payload.c2pa_status)
    provenance = PROVENANCE_SCORES[status]

    ip = payload.ip_score
    trust_override = False
    if status == C2PAStatus.VALID and ip > TRUSTED_IP_CEILING:
        ip = TRUSTED_IP_CEILING
        trust_override = True

    base = round_half_up(
        IP_WEIGHT * ip
        + SAFETY_WEIGHT * payload.safety_score
        + PROVENANCE_WEIGHT * provenance
    )
    score = base

    boost = ip >= BOOST_IP_THRESHOLD and provenance >= BOOST_PROVENANCE_THRESHOLD
    if boost:
        score = min(100, score + round_half_up(Decimal(ip + provenance) / 10))

    floor = ip >= CRITICAL_IP_THRESHOLD
    if floor:
        score = max(score, CRITICAL_FLOOR)

    score = max(0, min(100, score))
    tier = get_risk_tier(score)

    return CompositeScore(
        score=score,
        level=tier.level,
        verdict=tier.verdict,
        provenance_status=status,
        provenance_score=provenance,
        effective_ip_score=ip,
        base_score=base,
        trust_override_applied=trust_override,
        boost_applied=boost,
        critical_floor_applied=floor,
    )


def compute_composite_score(
    ip_score: int,
    safety_score: int,
    c2pa_status: Union[C2PAStatus, str, None],
) -> int:
    return score_composite(
        CompositeScoreInput(
            ip_score=ip_score,
            safety_score=safety_score,
            c2pa_status=c2pa_status,
        )
    ).score


def compute_risk_level(score: int) -> RiskLevel:
    return get_risk_tier(score).level


def compute_verdict(score: int) -> Verdict:
    return get_risk_tier(score).verdict
