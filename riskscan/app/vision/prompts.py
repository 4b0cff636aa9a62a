"""
Analysis prompt assembly.

Prompt text is versioned and stored beside this module. A brand guideline,
when a scan has one, is appended as an additional context block; it
narrows what the model looks for but never changes how responses are
scored.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from riskscan.app.schemas.assets import BrandGuideline

PROMPTS_DIR = Path(__file__).parent / "templates"

PROMPT_VERSION = "1.2"

IP_DETECTION = "ip_detection"
BRAND_SAFETY = "brand_safety"


class AnalysisPrompt(BaseModel):
    """
    Immutable prompt for a single vision analysis.
    """

    analyzer_id: str = Field(..., description="Analyzer identifier (e.g., ip_detection)")
    version: str = Field(..., description="Prompt version")
    system_text: str
    task_text: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def prompt_id(self) -> str:
        return f"{self.analyzer_id}:{self.version}"


def load_prompt_text(name: str) -> str:
    path = PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise RuntimeError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8")


def _bullets(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    return [f"{title}:"] + [f"- {item}" for item in items]


def guideline_context(
    guideline: BrandGuideline,
    *,
    include_audience: bool,
) -> str:
    lines = [
        "--- BEGIN BRAND GUIDELINE ---",
        f"Brand: {guideline.name}",
    ]
    if guideline.industry:
        lines.append(f"Industry: {guideline.industry}")

    lines += _bullets("Prohibited content", guideline.prohibitions)

    if include_audience:
        lines += _bullets("Required elements", guideline.requirements)
        lines += _bullets("Context modifiers", guideline.context_modifiers)
        lines += _bullets("Target markets", guideline.target_markets)
        lines += _bullets("Target platforms", guideline.target_platforms)

    lines.append(
        "Treat anything matching a prohibition as a detection, using the "
        "same severity scale."
    )
    lines.append("--- END BRAND GUIDELINE ---")
    return "\n".join(lines)


def _build(
    analyzer_id: str,
    guideline: Optional[BrandGuideline],
    *,
    include_audience: bool,
) -> AnalysisPrompt:
    task_text = load_prompt_text(analyzer_id)
    if guideline is not None:
        task_text = (
            f"{task_text.rstrip()}\n\n"
            f"{guideline_context(guideline, include_audience=include_audience)}"
        )

    return AnalysisPrompt(
        analyzer_id=analyzer_id,
        version=PROMPT_VERSION,
        system_text=load_prompt_text("system_rules"),
        task_text=task_text,
    )


def build_ip_prompt(guideline: Optional[BrandGuideline] = None) -> AnalysisPrompt:
    # IP review only cares about what the brand forbids
    return _build(IP_DETECTION, guideline, include_audience=False)


def build_safety_prompt(guideline: Optional[BrandGuideline] = None) -> AnalysisPrompt:
    return _build(BRAND_SAFETY, guideline, include_audience=True)
