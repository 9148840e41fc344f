"""Detection of "stop contacting me" requests in inbound email."""

import logging

from src.api.models.requests import InboundEmail
from src.api.models.responses import OptOutResult
from src.llm.schemas import OptOutLLMResponse
from src.prompts import DETECT_OPT_OUT_SYSTEM, DETECT_OPT_OUT_USER

from .base import ComponentWithFallback, EngineComponent, LLMComponent

logger = logging.getLogger(__name__)

OPT_OUT_KEYWORDS = ("STOP", "UNSUBSCRIBE", "OPT-OUT", "REMOVE")
DEFAULT_OPT_OUT_CONFIDENCE = 0.7


class OptOutDetector(EngineComponent[InboundEmail, OptOutResult]):
    name = "opt_out_detector"


class KeywordOptOutDetector(OptOutDetector):
    """Case-insensitive keyword match on the full body."""

    async def run(self, request: InboundEmail) -> OptOutResult:
        upper_body = request.body.upper()
        matched = [keyword for keyword in OPT_OUT_KEYWORDS if keyword in upper_body]
        return OptOutResult(
            is_opt_out=bool(matched),
            confidence=1.0 if matched else 0.0,
            reason=f"Matched keywords: {', '.join(matched)}" if matched else None,
            source="fallback",
        )


class LLMOptOutDetector(LLMComponent, OptOutDetector):
    """Model-based detection; only a confident yes counts as an opt-out."""

    def __init__(self, llm_client, min_confidence: float = DEFAULT_OPT_OUT_CONFIDENCE):
        super().__init__(llm_client)
        self.min_confidence = min_confidence

    async def run(self, request: InboundEmail) -> OptOutResult:
        result = await self._generate(
            DETECT_OPT_OUT_SYSTEM,
            DETECT_OPT_OUT_USER.format(subject=request.subject, body=request.body),
            OptOutLLMResponse,
            temperature=0.0,
        )
        is_opt_out = result.is_opt_out and result.confidence > self.min_confidence
        if result.is_opt_out and not is_opt_out:
            logger.info(
                f"Opt-out suggested with low confidence ({result.confidence:.2f}), ignoring"
            )
        return OptOutResult(
            is_opt_out=is_opt_out,
            confidence=result.confidence,
            reason=result.reason,
            source="ai",
        )


def build_opt_out_detector(
    llm_client, min_confidence: float = DEFAULT_OPT_OUT_CONFIDENCE
) -> ComponentWithFallback:
    return ComponentWithFallback(
        primary=LLMOptOutDetector(llm_client, min_confidence=min_confidence),
        fallback=KeywordOptOutDetector(),
    )
