"""Unit tests for creditor reply classification."""

import pytest

from src.api.errors import LLMResponseInvalidError, LLMTimeoutError
from src.api.models.enums import Intent, Sentiment, SuggestedAction
from src.api.models.requests import ResponseClassificationInput
from src.engine.classifier import (
    KeywordResponseClassifier,
    LLMResponseClassifier,
    build_response_classifier,
    detect_intent,
    extract_terms,
)
from src.llm.schemas import ResponseAnalysisLLMResponse


def _reply(body: str) -> ResponseClassificationInput:
    return ResponseClassificationInput(
        from_email="billing@acme-collections.com",
        subject="Re: Settlement Offer",
        body=body,
        original_amount=4500.0,
    )


class TestKeywordRules:
    @pytest.mark.parametrize(
        "body,intent",
        [
            ("We accept your offer.", Intent.ACCEPTANCE),
            ("Your request has been declined.", Intent.REJECTION),
            ("We can offer $3,500 instead.", Intent.COUNTER_OFFER),
            ("Please clarify your income.", Intent.REQUEST_INFO),
            ("Thanks for the email.", Intent.UNCLEAR),
        ],
    )
    def test_detect_intent(self, body, intent):
        assert detect_intent(body) == intent

    def test_first_rule_wins(self):
        # "agree" (acceptance) is checked before "however" (counter)
        assert detect_intent("We agree, however we need it by Friday.") == Intent.ACCEPTANCE

    def test_extract_plan_terms(self):
        terms = extract_terms(
            "We can do $250 per month for 18 payments, a total of $4,500.00."
        )

        assert terms.proposed_amount == 250.0
        assert terms.proposed_payment_plan == "payment plan"
        assert terms.payment_terms.monthly_amount == 250.0
        assert terms.payment_terms.number_of_payments == 18
        assert terms.payment_terms.total_amount == 4500.0
        assert terms.payment_terms.payment_frequency == "monthly"

    @pytest.mark.parametrize(
        "body",
        [
            "We can accept $250 monthly for 18 months.",
            "We can accept 250 monthly for 18 months.",
            "We can accept $1,250.50 monthly over 18 installments.",
        ],
    )
    def test_monthly_amount_is_not_read_as_payment_count(self, body):
        terms = extract_terms(body)

        assert terms.payment_terms.number_of_payments == 18
        assert terms.payment_terms.payment_frequency == "monthly"

    def test_bi_weekly_frequency(self):
        terms = extract_terms("Pay $100 every two weeks for 10 payments.")

        assert terms.payment_terms.payment_frequency == "bi-weekly"
        assert terms.payment_terms.monthly_amount is None

    def test_no_terms(self):
        terms = extract_terms("We have received your letter.")

        assert terms.proposed_amount is None
        assert terms.payment_terms is None


class TestKeywordResponseClassifier:
    @pytest.mark.asyncio
    async def test_fallback_always_requires_review(self):
        result = await KeywordResponseClassifier().run(_reply("We accept $3,000 as payment."))

        assert result.intent == Intent.ACCEPTANCE
        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence == 0.6
        assert result.requires_review is True
        assert result.suggested_next_action == SuggestedAction.MARK_SETTLED
        assert result.source == "fallback"
        assert result.reasoning == (
            "Fallback keyword analysis detected acceptance. Found 1 amounts."
        )

    @pytest.mark.asyncio
    async def test_unclear_escalates(self):
        result = await KeywordResponseClassifier().run(_reply("Noted."))

        assert result.suggested_next_action == SuggestedAction.ESCALATE_TO_USER


class TestLLMResponseClassifier:
    def _llm_result(self, **overrides) -> ResponseAnalysisLLMResponse:
        data = {
            "intent": "counter_offer",
            "sentiment": "neutral",
            "confidence": 0.92,
            "extracted_terms": {"proposed_amount": 3500.0},
            "reasoning": "Creditor proposes a different settlement amount",
            "suggested_next_action": "send_counter",
            "requires_user_review": False,
        }
        data.update(overrides)
        return ResponseAnalysisLLMResponse.model_validate(data)

    @pytest.mark.asyncio
    async def test_confident_counter_offer(self, mock_llm_client):
        mock_llm_client.generate_structured.return_value = self._llm_result()

        result = await LLMResponseClassifier(mock_llm_client).run(
            _reply("We can accept $3,500 instead.")
        )

        assert result.intent == Intent.COUNTER_OFFER
        assert result.extracted_terms.proposed_amount == 3500.0
        assert result.requires_review is False
        assert result.source == "ai"
        kwargs = mock_llm_client.generate_structured.call_args.kwargs
        assert kwargs["schema"] is ResponseAnalysisLLMResponse

    @pytest.mark.parametrize(
        "overrides",
        [
            {"confidence": 0.7},
            {"sentiment": "negative"},
            {"intent": "unclear", "suggested_next_action": "request_clarification"},
            {"suggested_next_action": "escalate_to_user"},
            {"requires_user_review": True},
        ],
    )
    @pytest.mark.asyncio
    async def test_review_forced(self, mock_llm_client, overrides):
        mock_llm_client.generate_structured.return_value = self._llm_result(**overrides)

        result = await LLMResponseClassifier(mock_llm_client).run(_reply("..."))

        assert result.requires_review is True

    def test_uppercase_labels_normalized(self):
        result = self._llm_result(intent="COUNTER_OFFER", sentiment="Neutral")

        assert result.intent == "counter_offer"
        assert result.sentiment == "neutral"


class TestClassifierFallback:
    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_keywords(self, mock_llm_client):
        mock_llm_client.generate_structured.side_effect = LLMTimeoutError(30)
        classifier = build_response_classifier(mock_llm_client)

        result = await classifier.run(_reply("We reject this proposal."))

        assert result.source == "fallback"
        assert result.intent == Intent.REJECTION
        assert classifier.fallback_count == 1

    @pytest.mark.asyncio
    async def test_invalid_response_falls_back(self, mock_llm_client):
        mock_llm_client.generate_structured.side_effect = LLMResponseInvalidError(
            "LLM returned invalid JSON"
        )
        classifier = build_response_classifier(mock_llm_client)

        result = await classifier.run(_reply("Please provide more details."))

        assert result.source == "fallback"
        assert result.intent == Intent.REQUEST_INFO

    @pytest.mark.asyncio
    async def test_no_client_uses_fallback_without_counting(self):
        classifier = build_response_classifier(None)

        result = await classifier.run(_reply("We accept."))

        assert result.source == "fallback"
        assert classifier.fallback_count == 0
        assert classifier.source == "fallback"
