from __future__ import annotations

import logging
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from riskscan.app.errors import UpstreamServiceFailure
from riskscan.app.vision.executor import VisionExecutor
from riskscan.app.vision.parsing import parse_structured_response
from riskscan.app.vision.prompts import AnalysisPrompt

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class VisionAnalyzerMixin:
    """
    Shared request/parse/validate cycle for vision analyzers.

    This mixin locks the following behavior:
    - exactly one vision request per call
    - executor failures, unparseable text and schema violations all
      surface as UpstreamServiceFailure
    - scoring is left to the concrete analyzer
    """

    # ------------------------------------------------------------------
    # REQUIRED CLASS ATTRIBUTES (must be overridden)
    # ------------------------------------------------------------------

    ANALYZER_ID: str
    RESPONSE_SCHEMA: Type[BaseModel]

    _executor: VisionExecutor

    async def _request(
        self,
        *,
        prompt: AnalysisPrompt,
        image_bytes: bytes,
        mime_type: str,
    ) -> BaseModel:
        result = await self._executor.execute(
            prompt=prompt,
            image_bytes=image_bytes,
            mime_type=mime_type,
        )

        if not result.success:
            raise UpstreamServiceFailure(
                f"{self.ANALYZER_ID} request failed "
                f"({result.failure_type}): {result.raw_error}"
            )

        parsed = parse_structured_response(result.text)
        if not parsed.success:
            logger.warning(
                "Unparseable %s response (prompt=%s): %s",
                self.ANALYZER_ID,
                result.prompt_id,
                parsed.error,
            )
            raise UpstreamServiceFailure(
                f"{self.ANALYZER_ID} response could not be parsed: {parsed.error}"
            )

        try:
            return self.RESPONSE_SCHEMA.model_validate(parsed.payload)
        except ValidationError as exc:
            raise UpstreamServiceFailure(
                f"{self.ANALYZER_ID} response violated its schema: "
                f"{exc.error_count()} error(s)"
            ) from exc
