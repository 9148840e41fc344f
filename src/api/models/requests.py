"""
Request models for the Debt Negotiation Engine API and engine components.

All free-text fields carry max_length constraints so a single request
cannot exhaust memory.
"""

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.api.models.domain import LetterRecord
from src.api.models.responses import ExtractedTerms, ResponseAnalysis

_EMAIL_IN_BRACKETS = re.compile(r"<([^>]+)>")


class InboundEmail(BaseModel):
    """A normalized inbound email, whatever provider delivered it."""

    message_id: str = Field(..., min_length=1, max_length=255)
    from_email: str = Field(..., min_length=3, max_length=320)  # RFC 5321 max email length
    to_email: str = Field(..., min_length=3, max_length=320)
    subject: str = Field("", max_length=500)
    body: str = Field("", max_length=50000)  # 50KB max for email body


class EmailAddressFull(BaseModel):
    Email: str
    Name: Optional[str] = None


class PostmarkInboundPayload(BaseModel):
    """Subset of Postmark's inbound webhook JSON."""

    MessageID: Optional[str] = Field(None, max_length=255)
    From: str = Field(..., max_length=500)
    FromFull: Optional[EmailAddressFull] = None
    To: str = Field(..., max_length=2000)
    ToFull: List[EmailAddressFull] = []
    Subject: str = Field("", max_length=500)
    TextBody: Optional[str] = Field(None, max_length=50000)
    HtmlBody: Optional[str] = Field(None, max_length=200000)

    def to_inbound_email(self, fallback_message_id: str) -> InboundEmail:
        from_email = self.FromFull.Email if self.FromFull else _bare_address(self.From)
        to_email = self.ToFull[0].Email if self.ToFull else _bare_address(self.To.split(",")[0])
        return InboundEmail(
            message_id=self.MessageID or fallback_message_id,
            from_email=from_email.strip().lower(),
            to_email=to_email.strip().lower(),
            subject=self.Subject,
            body=self.TextBody or _strip_html(self.HtmlBody or ""),
        )


def _bare_address(value: str) -> str:
    match = _EMAIL_IN_BRACKETS.search(value)
    return match.group(1) if match else value


def _strip_html(html: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", html)).strip()


class ResponseClassificationInput(BaseModel):
    """A creditor reply plus the letter it answers."""

    from_email: str
    subject: str
    body: str
    letter: Optional[LetterRecord] = None
    original_amount: Optional[float] = None


class CounterOfferContext(BaseModel):
    """What the creditor proposed in reply to our previous letter."""

    previous_letter: LetterRecord
    creditor_reply: str
    extracted_terms: ExtractedTerms = Field(default_factory=ExtractedTerms)
    analysis: Optional[ResponseAnalysis] = None


class StrategyRequest(BaseModel):
    """Input to strategy generation."""

    debt_id: str
    amount: float = Field(..., ge=0)
    vendor: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    notice_excerpt: Optional[str] = None
    negotiation_round: int = 1
    counter_context: Optional[CounterOfferContext] = None


class ApproveRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=2000)


class LetterUpdateRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1, max_length=50000)


class VariablesUpdateRequest(BaseModel):
    values: Dict[str, str]

    @field_validator("values")
    @classmethod
    def limit_value_size(cls, v: Dict[str, str]) -> Dict[str, str]:
        for name, value in v.items():
            if len(value) > 2000:
                raise ValueError(f"Value for '{name}' exceeds 2000 characters")
        return v


class ManualResponseRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1, max_length=50000)


class FailDebtRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class AnalyzeResponseRequest(BaseModel):
    """A creditor reply submitted directly for a known debt."""

    debt_id: str = Field(..., min_length=1, max_length=100)
    message_id: str = Field(..., min_length=1, max_length=255)
    from_email: str = Field(..., min_length=3, max_length=320)
    subject: str = Field("", max_length=500)
    body: str = Field(..., min_length=1, max_length=50000)


class ExtractionPreviewRequest(BaseModel):
    """Dry-run classification of arbitrary reply text."""

    body: str = Field(..., min_length=1, max_length=50000)
    subject: str = Field("", max_length=500)
    from_email: str = Field("creditor@example.com", max_length=320)


class ConfirmAcceptanceRequest(BaseModel):
    """User confirmation that the creditor accepted; ``terms`` overrides the extracted ones."""

    terms: Optional[ExtractedTerms] = None
    note: Optional[str] = Field(None, max_length=2000)
