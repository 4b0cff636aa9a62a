import pytest

from riskscan.app.schemas.assets import BrandGuideline
from riskscan.app.vision.prompts import (
    BRAND_SAFETY,
    IP_DETECTION,
    PROMPT_VERSION,
    build_ip_prompt,
    build_safety_prompt,
    guideline_context,
    load_prompt_text,
)


def test_prompt_ids_are_versioned():
    assert build_ip_prompt().prompt_id == f"{IP_DETECTION}:{PROMPT_VERSION}"
    assert build_safety_prompt().prompt_id == f"{BRAND_SAFETY}:{PROMPT_VERSION}"


def test_prompts_share_system_rules():
    assert build_ip_prompt().system_text == build_safety_prompt().system_text
    assert "JSON" in build_ip_prompt().system_text


def test_prompt_without_guideline_is_stable():
    assert build_ip_prompt() == build_ip_prompt(None)
    assert "BRAND GUIDELINE" not in build_safety_prompt().task_text


def test_guideline_is_appended_after_base_task():
    guideline = BrandGuideline(
        id="g-1",
        tenant_id="t-1",
        name="Acme",
        prohibitions=["Alcohol"],
    )

    base = build_safety_prompt().task_text
    extended = build_safety_prompt(guideline).task_text

    assert extended.startswith(base.rstrip())
    assert "Brand: Acme" in extended
    assert "- Alcohol" in extended


def test_empty_guideline_lists_are_omitted():
    guideline = BrandGuideline(id="g-1", tenant_id="t-1", name="Acme")

    context = guideline_context(guideline, include_audience=True)

    assert "Prohibited content" not in context
    assert "Target markets" not in context
    assert context.startswith("--- BEGIN BRAND GUIDELINE ---")


def test_missing_prompt_file():
    with pytest.raises(RuntimeError):
        load_prompt_text("does_not_exist")
