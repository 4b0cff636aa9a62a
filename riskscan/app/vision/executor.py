"""
Vision understanding executors.

An executor sends one image plus one analysis prompt to a vision-capable
model and returns the raw response text. Executors MUST never raise: every
outcome is normalized into a VisionExecutionResult so that the analyzers
decide what a failure means for the scan.

The executor is constructed once at startup and injected; nothing in this
module creates clients lazily.
"""

from __future__ import annotations

import base64
import logging
from typing import Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from azure.identity import (
    DefaultAzureCredential,
    get_bearer_token_provider,
)
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ServiceResponseTimeoutError,
)

from openai import APITimeoutError, AsyncAzureOpenAI

from riskscan.app.vision.prompts import AnalysisPrompt

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Execution Result
# ----------------------------------------------------------------------

class VisionExecutionResult(BaseModel):
    """
    Canonical result of a single vision request.
    """
    success: bool
    text: Optional[str] = None

    failure_type: Optional[
        Literal[
            "timeout",
            "refusal",
            "empty_response",
            "unexpected_error",
        ]
    ] = None
    raw_error: Optional[str] = None

    model_deployment: str
    prompt_id: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ----------------------------------------------------------------------
# Executor Interface
# ----------------------------------------------------------------------

class VisionExecutor(Protocol):
    async def execute(
        self,
        *,
        prompt: AnalysisPrompt,
        image_bytes: bytes,
        mime_type: str,
    ) -> VisionExecutionResult:
        ...


class DisabledVisionExecutor:
    """
    Executor used when no vision provider is configured.

    Every request fails, which fails the scan with a clear message
    instead of silently scoring zero.
    """

    async def execute(
        self,
        *,
        prompt: AnalysisPrompt,
        image_bytes: bytes,
        mime_type: str,
    ) -> VisionExecutionResult:
        return VisionExecutionResult(
            success=False,
            failure_type="unexpected_error",
            raw_error="Vision analysis is disabled (VISION_MODEL_PROVIDER=disabled)",
            model_deployment="disabled",
            prompt_id=prompt.prompt_id,
        )


def encode_image_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


# ----------------------------------------------------------------------
# Azure OpenAI Vision Executor (Entra ID)
# ----------------------------------------------------------------------

class AzureVisionExecutor:
    """
    Azure OpenAI implementation of VisionExecutor.

    Message layout:
      1. System message: the analyzer's role and output contract
      2. User message: task instructions followed by the image
    """

    def __init__(
        self,
        *,
        endpoint: str,
        deployment: str,
        api_version: str,
        timeout_seconds: float = 60.0,
        max_tokens: int = 1500,
    ) -> None:
        self._deployment = deployment
        self._max_tokens = max_tokens

        credential = DefaultAzureCredential()
        token_provider = get_bearer_token_provider(
            credential,
            "https://cognitiveservices.azure.com/.default",
        )

        self._client = AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            azure_ad_token_provider=token_provider,
            api_version=api_version,
            timeout=timeout_seconds,
        )

    async def execute(
        self,
        *,
        prompt: AnalysisPrompt,
        image_bytes: bytes,
        mime_type: str,
    ) -> VisionExecutionResult:
        try:
            messages = [
                {"role": "system", "content": prompt.system_text},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt.task_text},
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": encode_image_data_url(image_bytes, mime_type),
                            },
                        },
                    ],
                },
            ]

            response = await self._client.chat.completions.create(
                model=self._deployment,
                messages=messages,
                max_tokens=self._max_tokens,
            )

            message = response.choices[0].message

            if getattr(message, "refusal", None):
                return VisionExecutionResult(
                    success=False,
                    failure_type="refusal",
                    raw_error=message.refusal,
                    model_deployment=self._deployment,
                    prompt_id=prompt.prompt_id,
                )

            if not message.content:
                return VisionExecutionResult(
                    success=False,
                    failure_type="empty_response",
                    raw_error="Vision model returned no content",
                    model_deployment=self._deployment,
                    prompt_id=prompt.prompt_id,
                )

            return VisionExecutionResult(
                success=True,
                text=message.content,
                model_deployment=self._deployment,
                prompt_id=prompt.prompt_id,
            )

        except (APITimeoutError, ServiceResponseTimeoutError) as exc:
            logger.warning(
                "Vision request timed out (prompt=%s)", prompt.prompt_id
            )
            return VisionExecutionResult(
                success=False,
                failure_type="timeout",
                raw_error=str(exc),
                model_deployment=self._deployment,
                prompt_id=prompt.prompt_id,
            )

        except (HttpResponseError, ClientAuthenticationError, Exception) as exc:
            logger.warning(
                "Vision request failed (prompt=%s): %s", prompt.prompt_id, exc
            )
            return VisionExecutionResult(
                success=False,
                failure_type="unexpected_error",
                raw_error=str(exc),
                model_deployment=self._deployment,
                prompt_id=prompt.prompt_id,
            )
