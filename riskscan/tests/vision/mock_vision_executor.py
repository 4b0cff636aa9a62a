"""
Mock vision executor for analyzer and orchestrator testing.

Returns canned response text per analyzer without invoking any external
service.

IMPORTANT:
- Deterministic
- CI-safe
- NEVER raises
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence, Union

from riskscan.app.vision.executor import VisionExecutionResult, VisionExecutor
from riskscan.app.vision.prompts import AnalysisPrompt

Response = Union[str, Dict[str, Any]]


def ip_payload(*detections: Dict[str, Any], summary: str = "IP review") -> Dict[str, Any]:
    return {"detections": list(detections), "summary": summary}


def safety_payload(*violations: Dict[str, Any], summary: str = "Safety review") -> Dict[str, Any]:
    return {"violations": list(violations), "summary": summary}


def detection(
    severity: str,
    confidence: int,
    *,
    name: str = "Example Mouse",
    type: str = "character",
) -> Dict[str, Any]:
    return {
        "type": type,
        "name": name,
        "severity": severity,
        "confidence": confidence,
        "description": f"{name} visible in frame",
    }


def violation(
    severity: str,
    confidence: int,
    *,
    category: str = "violence",
) -> Dict[str, Any]:
    return {
        "category": category,
        "severity": severity,
        "confidence": confidence,
        "description": f"{category} depicted",
    }


class MockVisionExecutor(VisionExecutor):
    def __init__(
        self,
        *,
        ip: Union[Response, Sequence[Response]] = None,
        safety: Union[Response, Sequence[Response]] = None,
        mode: str = "success",
    ) -> None:
        self._responses: Dict[str, List[Response]] = {
            "ip_detection": self._as_list(ip if ip is not None else ip_payload()),
            "brand_safety": self._as_list(
                safety if safety is not None else safety_payload()
            ),
        }
        self._mode = mode

        # Observability for tests
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def _as_list(value: Union[Response, Sequence[Response]]) -> List[Response]:
        if isinstance(value, (str, dict)):
            return [value]
        return list(value)

    def _next(self, analyzer_id: str) -> str:
        responses = self._responses[analyzer_id]
        seen = sum(1 for c in self.calls if c["analyzer_id"] == analyzer_id) - 1
        response = responses[min(seen, len(responses) - 1)]
        if isinstance(response, dict):
            return json.dumps(response)
        return response

    async def execute(
        self,
        *,
        prompt: AnalysisPrompt,
        image_bytes: bytes,
        mime_type: str,
    ) -> VisionExecutionResult:
        self.calls.append(
            {
                "analyzer_id": prompt.analyzer_id,
                "prompt": prompt,
                "image_bytes": image_bytes,
                "mime_type": mime_type,
            }
        )

        if self._mode == "timeout":
            return VisionExecutionResult(
                success=False,
                failure_type="timeout",
                raw_error="Simulated timeout",
                model_deployment="mock-model",
                prompt_id=prompt.prompt_id,
            )

        if self._mode != "success":
            return VisionExecutionResult(
                success=False,
                failure_type="unexpected_error",
                raw_error=f"Unknown mock mode: {self._mode}",
                model_deployment="mock-model",
                prompt_id=prompt.prompt_id,
            )

        return VisionExecutionResult(
            success=True,
            text=self._next(prompt.analyzer_id),
            model_deployment="mock-model",
            prompt_id=prompt.prompt_id,
        )

    def calls_for(self, analyzer_id: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["analyzer_id"] == analyzer_id]


def single_prompt(analyzer_id: str = "ip_detection") -> AnalysisPrompt:
    return AnalysisPrompt(
        analyzer_id=analyzer_id,
        version="test",
        system_text="system",
        task_text="task",
    )
