"""Shared test fixtures for the Debt Negotiation Engine tests."""

from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.errors import MailDeliveryError
from src.api.models.enums import Intent, Sentiment, SuggestedAction
from src.api.models.requests import InboundEmail
from src.api.models.responses import ExtractedTerms, PaymentTerms, ResponseAnalysis
from src.config.settings import Settings
from src.container import build_container
from src.mail import MailDelivery
from src.store import InMemoryRecordStore

OWNER = "owner@example.com"
CREDITOR = "billing@acme-collections.com"


class FakeMailer(MailDelivery):
    """Records every send; set ``fail`` to make the next sends raise."""

    def __init__(self):
        self.sent: List[dict] = []
        self.fail = False

    async def send(self, from_email: str, to_email: str, subject: str, body: str) -> str:
        if self.fail:
            raise MailDeliveryError("Postmark returned 500: boom", provider="fake", status=500)
        self.sent.append(
            {"from_email": from_email, "to_email": to_email, "subject": subject, "body": body}
        )
        return f"delivery-{len(self.sent)}"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no external services configured."""
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        openai_api_key=None,
        postmark_server_token=None,
        require_llm=False,
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def container(test_settings, store, mailer):
    """Rule-based container: no LLM, in-memory store, fake mailer."""
    return build_container(test_settings, store=store, mailer=mailer, llm_client=None)


@pytest.fixture
def service(container):
    return container.service


@pytest.fixture
def mock_llm_client():
    """Stand-in for LLMProviderWithFallback."""
    client = MagicMock()
    client.generate_structured = AsyncMock()
    return client


@pytest.fixture
def notice_email() -> InboundEmail:
    """A first collection notice for $1,200."""
    return InboundEmail(
        message_id="<notice-1@acme>",
        from_email=CREDITOR,
        to_email=OWNER,
        subject="Past due balance on your account",
        body=(
            "Our records show a past due balance of $1,200.00 on your account. "
            "Please remit payment within 10 days to avoid further collection activity."
        ),
    )


def _reply(message_id: str, body: str, subject: str = "Re: Payment Plan Proposal") -> InboundEmail:
    return InboundEmail(
        message_id=message_id,
        from_email=CREDITOR,
        to_email=OWNER,
        subject=subject,
        body=body,
    )


def _analysis(
    intent: Intent,
    confidence: float = 0.9,
    requires_review: bool = False,
    action: SuggestedAction = SuggestedAction.SEND_COUNTER,
    sentiment: Sentiment = Sentiment.NEUTRAL,
    terms: ExtractedTerms = None,
) -> ResponseAnalysis:
    return ResponseAnalysis(
        intent=intent,
        sentiment=sentiment,
        confidence=confidence,
        extracted_terms=terms or ExtractedTerms(),
        reasoning="test analysis",
        suggested_next_action=action,
        requires_review=requires_review,
        source="ai",
    )


@pytest.fixture
def make_reply():
    """Factory for creditor replies to the owner."""
    return _reply


@pytest.fixture
def make_analysis():
    """Factory for ResponseAnalysis objects."""
    return _analysis


@pytest.fixture
def plan_terms() -> ExtractedTerms:
    """Creditor's 18 x $250 plan on a $4,500 balance."""
    return ExtractedTerms(
        payment_terms=PaymentTerms(
            monthly_amount=250.0, number_of_payments=18, payment_frequency="monthly"
        )
    )
