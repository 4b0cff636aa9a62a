"""
Tolerant extraction of a JSON object from free-form model output.

Vision models are asked for a bare JSON object but regularly wrap it in
prose or a fenced code block. Strategies are tried in order:

1. direct parse of the whole text
2. the first fenced code block
3. the first balanced ``{...}`` literal that parses

The result is a StructuredResponse value; this module does not raise.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict

ParseStrategy = Literal["direct", "fenced_block", "balanced_object"]

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


class StructuredResponse(BaseModel):
    success: bool
    payload: Optional[Dict[str, Any]] = None
    strategy: Optional[ParseStrategy] = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def iter_balanced_objects(text: str) -> Iterator[str]:
    """
    Yield candidate ``{...}`` substrings, one per opening brace.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:index + 1]
                    break
        start = text.find("{", start + 1)


def parse_structured_response(text: Optional[str]) -> StructuredResponse:
    if not text or not text.strip():
        return StructuredResponse(success=False, error="Empty response")

    stripped = text.strip()

    payload = _load_object(stripped)
    if payload is not None:
        return StructuredResponse(success=True, payload=payload, strategy="direct")

    match = _FENCED_BLOCK.search(stripped)
    if match:
        payload = _load_object(match.group(1).strip())
        if payload is not None:
            return StructuredResponse(
                success=True, payload=payload, strategy="fenced_block"
            )

    for candidate in iter_balanced_objects(stripped):
        payload = _load_object(candidate)
        if payload is not None:
            return StructuredResponse(
                success=True, payload=payload, strategy="balanced_object"
            )

    return StructuredResponse(
        success=False,
        error="Could not locate a JSON object in the response",
    )
