"""
Creditor reply classification.

Two implementations of the same capability: ``LLMResponseClassifier`` asks
the model for a structured analysis, ``KeywordResponseClassifier`` uses
keyword rules and regular expressions and always asks for human review.
``build_response_classifier`` wires them behind ``ComponentWithFallback``.
"""

import logging
import re
from typing import List, Optional

from src.api.models.enums import Intent, Sentiment, SuggestedAction
from src.api.models.requests import ResponseClassificationInput
from src.api.models.responses import ExtractedTerms, PaymentTerms, ResponseAnalysis
from src.llm.schemas import ResponseAnalysisLLMResponse
from src.prompts import ANALYZE_RESPONSE_SYSTEM, ANALYZE_RESPONSE_USER
from src.utils import timed_operation

from .base import ComponentWithFallback, EngineComponent, LLMComponent

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.6
DEFAULT_REVIEW_CONFIDENCE = 0.85

# First match wins, in this order
INTENT_KEYWORDS = [
    (Intent.ACCEPTANCE, ("accept", "agree", "approved")),
    (Intent.REJECTION, ("reject", "decline", "denied")),
    (Intent.COUNTER_OFFER, ("counter", "instead", "however")),
    (Intent.REQUEST_INFO, ("information", "clarify", "details")),
]

INTENT_SENTIMENT = {
    Intent.ACCEPTANCE: Sentiment.POSITIVE,
    Intent.REJECTION: Sentiment.NEGATIVE,
}

INTENT_ACTION = {
    Intent.ACCEPTANCE: SuggestedAction.MARK_SETTLED,
    Intent.COUNTER_OFFER: SuggestedAction.SEND_COUNTER,
}

_AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{2})?)"
AMOUNT_RE = re.compile(r"\$" + _AMOUNT)
MONTHLY_RE = re.compile(r"\$?" + _AMOUNT + r"\s*(?:per month|/month|monthly)", re.IGNORECASE)
# A count is a whole number on its own, never the tail of an amount ("$250 monthly")
PAYMENT_COUNT_RE = re.compile(
    r"(?<![\d$,.])(\d+)\s*(?:months?\b|payments?\b|installments?\b)", re.IGNORECASE
)
TOTAL_RE = re.compile(
    r"(?:total amount|totaling|total)\s*(?:of\s*)?\$?" + _AMOUNT, re.IGNORECASE
)
FREQUENCY_PATTERNS = [
    ("monthly", re.compile(r"monthly|per month|/month", re.IGNORECASE)),
    ("bi-weekly", re.compile(r"bi-?weekly|every (?:two|2) weeks", re.IGNORECASE)),
    ("weekly", re.compile(r"weekly|per week|/week", re.IGNORECASE)),
]


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def extract_amounts(text: str) -> List[float]:
    """All ``$`` amounts in order of appearance."""
    return [_to_float(m) for m in AMOUNT_RE.findall(text)]


def extract_terms(text: str) -> ExtractedTerms:
    """Pull amounts and plan terms out of free text with regular expressions."""
    amounts = extract_amounts(text)
    monthly = MONTHLY_RE.search(text)
    count = PAYMENT_COUNT_RE.search(text)
    total = TOTAL_RE.search(text)

    payment_terms = None
    if monthly or count:
        frequency = next(
            (name for name, pattern in FREQUENCY_PATTERNS if pattern.search(text)), None
        )
        payment_terms = PaymentTerms(
            monthly_amount=_to_float(monthly.group(1)) if monthly else None,
            number_of_payments=int(count.group(1)) if count else None,
            total_amount=_to_float(total.group(1)) if total else None,
            payment_frequency=frequency,
        )

    return ExtractedTerms(
        proposed_amount=amounts[0] if amounts else None,
        proposed_payment_plan="payment plan" if monthly else None,
        payment_terms=payment_terms,
    )


def detect_intent(text: str) -> Intent:
    lowered = text.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return Intent.UNCLEAR


class ResponseClassifier(EngineComponent[ResponseClassificationInput, ResponseAnalysis]):
    """Classifies a creditor reply."""

    name = "response_classifier"


class KeywordResponseClassifier(ResponseClassifier):
    """Deterministic classifier used when the model is unavailable."""

    async def run(self, request: ResponseClassificationInput) -> ResponseAnalysis:
        intent = detect_intent(request.body)
        terms = extract_terms(request.body)
        amount_count = len(extract_amounts(request.body))

        logger.info(f"Keyword classification: {intent.value}, {amount_count} amounts found")

        return ResponseAnalysis(
            intent=intent,
            sentiment=INTENT_SENTIMENT.get(intent, Sentiment.NEUTRAL),
            confidence=FALLBACK_CONFIDENCE,
            extracted_terms=terms,
            reasoning=(
                f"Fallback keyword analysis detected {intent.value}. Found {amount_count} amounts."
            ),
            suggested_next_action=INTENT_ACTION.get(intent, SuggestedAction.ESCALATE_TO_USER),
            requires_review=True,
            source="fallback",
        )


class LLMResponseClassifier(LLMComponent, ResponseClassifier):
    """Classifies replies with the text-generation model."""

    def __init__(self, llm_client, review_confidence: float = DEFAULT_REVIEW_CONFIDENCE):
        super().__init__(llm_client)
        self.review_confidence = review_confidence

    async def run(self, request: ResponseClassificationInput) -> ResponseAnalysis:
        letter = request.letter
        user_prompt = ANALYZE_RESPONSE_USER.format(
            strategy=letter.strategy.value if letter else "unknown",
            original_amount=f"{request.original_amount:,.2f}"
            if request.original_amount is not None
            else "unknown",
            proposed_terms=letter.terms.model_dump_json(exclude_none=True) if letter else "none",
            letter_reasoning=letter.reasoning if letter else "none",
            letter_body=letter.body if letter else "(no letter on record)",
            from_email=request.from_email,
            subject=request.subject,
            body=request.body,
        )

        with timed_operation("response_classification", source="ai"):
            result = await self._generate(
                ANALYZE_RESPONSE_SYSTEM,
                user_prompt,
                ResponseAnalysisLLMResponse,
                temperature=0.2,
            )

        return self._to_analysis(result)

    def _to_analysis(self, result: ResponseAnalysisLLMResponse) -> ResponseAnalysis:
        intent = Intent(result.intent)
        action = SuggestedAction(result.suggested_next_action)
        sentiment = Sentiment(result.sentiment)
        requires_review = (
            result.requires_user_review
            or intent == Intent.UNCLEAR
            or sentiment == Sentiment.NEGATIVE
            or result.confidence < self.review_confidence
            or action == SuggestedAction.ESCALATE_TO_USER
        )

        raw_terms = result.extracted_terms
        terms = ExtractedTerms(
            proposed_amount=raw_terms.proposed_amount,
            proposed_payment_plan=raw_terms.proposed_payment_plan,
            payment_terms=PaymentTerms(**raw_terms.payment_terms.model_dump())
            if raw_terms.payment_terms
            else None,
            deadline=raw_terms.deadline,
            conditions=raw_terms.conditions,
        )

        logger.info(
            f"AI classification: {intent.value} ({result.confidence:.2f}), "
            f"action={action.value}, review={requires_review}"
        )

        return ResponseAnalysis(
            intent=intent,
            sentiment=sentiment,
            confidence=result.confidence,
            extracted_terms=terms,
            reasoning=result.reasoning,
            suggested_next_action=action,
            requires_review=requires_review,
            source="ai",
        )


def build_response_classifier(
    llm_client, review_confidence: float = DEFAULT_REVIEW_CONFIDENCE
) -> ComponentWithFallback:
    return ComponentWithFallback(
        primary=LLMResponseClassifier(llm_client, review_confidence=review_confidence),
        fallback=KeywordResponseClassifier(),
    )


def analysis_summary(analysis: Optional[ResponseAnalysis]) -> dict:
    """Compact form of an analysis for audit details."""
    if analysis is None:
        return {}
    return {
        "intent": analysis.intent.value,
        "confidence": analysis.confidence,
        "suggested_next_action": analysis.suggested_next_action.value,
        "requires_review": analysis.requires_review,
        "source": analysis.source,
    }
