from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from src.api.models.enums import DebtStatus, Intent, Sentiment, SuggestedAction


class PaymentTerms(BaseModel):
    """Payment plan terms found in a creditor reply."""
    monthly_amount: Optional[float] = None
    number_of_payments: Optional[int] = None
    total_amount: Optional[float] = None
    interest_rate: Optional[float] = None
    payment_frequency: Optional[str] = None  # monthly, weekly, bi-weekly


class ExtractedTerms(BaseModel):
    proposed_amount: Optional[float] = None
    proposed_payment_plan: Optional[str] = None
    payment_terms: Optional[PaymentTerms] = None
    deadline: Optional[str] = None
    conditions: List[str] = []


class ResponseAnalysis(BaseModel):
    """Classification of a creditor reply."""
    intent: Intent
    sentiment: Sentiment
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_terms: ExtractedTerms = Field(default_factory=ExtractedTerms)
    reasoning: str
    suggested_next_action: SuggestedAction
    requires_review: bool
    source: Literal["ai", "fallback"]


class OptOutResult(BaseModel):
    """Whether an inbound email asks us to stop contact."""
    is_opt_out: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None
    source: Literal["ai", "fallback"]


class DebtNotice(BaseModel):
    """Debt details parsed from a creditor's first email."""
    amount: float = Field(ge=0.0)
    vendor: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    is_debt_collection: bool
    successfully_parsed: bool
    source: Literal["ai", "fallback"]


class InboundEmailResult(BaseModel):
    """What the engine did with an inbound email."""
    action: Literal["created", "opted_out", "reply_processed", "duplicate"]
    debt_id: str
    status: DebtStatus
    negotiation_generated: bool = False
    analysis: Optional[ResponseAnalysis] = None
    outbound_delivery_id: Optional[str] = None


class SendResult(BaseModel):
    """Outcome of a delivery attempt."""
    debt_id: str
    delivered: bool
    status: DebtStatus
    delivery_id: Optional[str] = None
    error: Optional[str] = None


class VariablesResponse(BaseModel):
    debt_id: str
    variables: dict[str, str]
    unfilled: List[str] = []


class HealthResponse(BaseModel):
    """Health check response."""
    status: str  # healthy, degraded
    version: str
    provider: Optional[str] = None  # None when running on rule-based fallbacks only
    model: Optional[str] = None
    fallback_provider: Optional[str] = None
    fallback_model: Optional[str] = None
    llm_fallback_count: int = 0
    component_fallback_counts: dict[str, int] = {}
    model_available: bool = False
    mail_configured: bool = False
    uptime_seconds: float
