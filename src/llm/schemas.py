"""
Pydantic models for validating LLM responses.

These models are passed to ``with_structured_output`` and used again to
validate the returned JSON, so every structured call yields a typed object.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

IntentLiteral = Literal["acceptance", "rejection", "counter_offer", "request_info", "unclear"]
SentimentLiteral = Literal["positive", "negative", "neutral"]
ActionLiteral = Literal[
    "accept_offer", "send_counter", "request_clarification", "escalate_to_user", "mark_settled"
]


class LLMPaymentTerms(BaseModel):
    """Payment plan terms quoted by the creditor."""

    monthly_amount: Optional[float] = Field(None, ge=0)
    number_of_payments: Optional[int] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    interest_rate: Optional[float] = Field(None, ge=0)
    payment_frequency: Optional[Literal["monthly", "weekly", "bi-weekly"]] = None


class LLMExtractedTerms(BaseModel):
    """Terms the model found in the creditor's reply."""

    proposed_amount: Optional[float] = Field(None, ge=0)
    proposed_payment_plan: Optional[str] = None
    payment_terms: Optional[LLMPaymentTerms] = None
    deadline: Optional[str] = None
    conditions: List[str] = Field(default_factory=list)


class ResponseAnalysisLLMResponse(BaseModel):
    """
    Expected response structure from creditor reply analysis.

    The LLM must return JSON matching this schema.
    """

    intent: IntentLiteral
    sentiment: SentimentLiteral
    confidence: float = Field(..., ge=0.0, le=1.0)
    extracted_terms: LLMExtractedTerms = Field(default_factory=LLMExtractedTerms)
    reasoning: str = Field(..., description="Explanation of the analysis")
    suggested_next_action: ActionLiteral
    requires_user_review: bool

    @field_validator("intent", "sentiment", "suggested_next_action", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class OptOutLLMResponse(BaseModel):
    """Whether the sender asked us to stop contacting them."""

    is_opt_out: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: Optional[str] = None


class DebtNoticeLLMResponse(BaseModel):
    """Fields parsed from a creditor's first notice."""

    amount: float = Field(..., ge=0)
    vendor: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    is_debt_collection: bool
    successfully_parsed: bool


class NegotiationLetterLLMResponse(BaseModel):
    """
    Generated negotiation letter.

    ``strategy`` may only differ from the recommended strategy when the model
    switches to ``dispute``; the engine enforces this.
    """

    strategy: Literal["extension", "installment", "settlement", "dispute"]
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    tone: Literal["formal", "respectful", "assertive", "conciliatory"]
    key_points: List[str] = Field(default_factory=list)
    reasoning: str
    confidence: float = Field(..., ge=0.0, le=1.0)
