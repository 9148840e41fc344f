"""
Stored records: debts, conversation messages, template variables and
audit entries, plus the typed sub-records kept on a debt.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.api.models.enums import AuditAction, DebtStatus, Direction, MessageType, Strategy
from src.api.models.responses import ResponseAnalysis


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# Strategy output


class StrategyTerms(BaseModel):
    """Concrete terms proposed by a negotiation letter."""

    extension_days: Optional[int] = None
    installment_months: Optional[int] = None
    monthly_payment: Optional[float] = None
    settlement_percentage: Optional[float] = None
    settlement_amount: Optional[float] = None


class NegotiationPlan(BaseModel):
    """A chosen strategy and the letter that proposes it."""

    strategy: Strategy
    confidence: float = Field(ge=0.0, le=1.0)
    projected_savings: float = Field(ge=0.0)
    reasoning: str
    terms: StrategyTerms = Field(default_factory=StrategyTerms)
    subject: str
    body: str
    tone: str = "respectful"
    key_points: List[str] = Field(default_factory=list)
    source: Literal["ai", "fallback"]


# Financial outcome


class PaymentStructure(BaseModel):
    type: Literal["installment_plan"] = "installment_plan"
    monthly_amount: Optional[float] = None
    number_of_payments: Optional[int] = None
    total_amount: Optional[float] = None
    payment_frequency: str = "monthly"
    interest_rate: float = 0.0


class PrincipalReduction(BaseModel):
    amount: float
    percentage: str


class PaymentRestructuring(BaseModel):
    monthly_reduction: float
    cash_flow_benefit: float


class TimeValueBenefit(BaseModel):
    present_value: float
    benefit: float
    effective_discount: str


class FinancialOutcome(BaseModel):
    """Result of comparing an accepted offer with the original balance."""

    original_amount: float
    accepted_amount: float
    actual_savings: float
    principal_reduction: Optional[PrincipalReduction] = None
    payment_restructuring: Optional[PaymentRestructuring] = None
    time_value_benefit: Optional[TimeValueBenefit] = None
    payment_structure: Optional[PaymentStructure] = None
    benefit_type: Literal["principal_reduction", "payment_restructuring", "none"]


# Debt extension sub-records, each written by a single operation


class IntakeRecord(BaseModel):
    subject: str
    from_email: str
    to_email: str
    is_debt_collection: bool
    parse_source: Literal["ai", "fallback"]
    received_at: datetime = Field(default_factory=utcnow)


class LetterRecord(NegotiationPlan):
    negotiation_round: int = 1
    generated_at: datetime = Field(default_factory=utcnow)


class ApprovalRecord(BaseModel):
    approved_at: datetime = Field(default_factory=utcnow)
    note: str = "Approved without sending email"
    strategy: Strategy
    finalized_subject: str
    finalized_body: str


class DeliveryRecord(BaseModel):
    sent_at: datetime = Field(default_factory=utcnow)
    delivery_id: str
    to_email: str
    from_email: str
    subject: str


class ClassificationRecord(BaseModel):
    analysis: ResponseAnalysis
    message_id: str
    from_email: str
    subject: str
    received_at: datetime = Field(default_factory=utcnow)


class FinancialOutcomeRecord(FinancialOutcome):
    calculated_at: datetime = Field(default_factory=utcnow)


class DebtExtension(BaseModel):
    intake: Optional[IntakeRecord] = None
    letter: Optional[LetterRecord] = None
    approval: Optional[ApprovalRecord] = None
    delivery: Optional[DeliveryRecord] = None
    last_response: Optional[ClassificationRecord] = None
    financial_outcome: Optional[FinancialOutcomeRecord] = None


# Stored records


class Debt(BaseModel):
    id: str = Field(default_factory=new_id)
    owner_email: str
    vendor: str
    creditor_email: str
    amount: float = Field(ge=0.0)
    description: Optional[str] = None
    due_date: Optional[str] = None
    raw_email: Optional[str] = None
    status: DebtStatus = DebtStatus.RECEIVED
    conversation_count: int = Field(0, ge=0)
    negotiation_round: int = Field(1, ge=1)
    projected_savings: Optional[float] = None
    prospected_savings: Optional[float] = None
    actual_savings: Optional[float] = None
    processed_message_ids: List[str] = Field(default_factory=list)
    extension: DebtExtension = Field(default_factory=DebtExtension)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ConversationMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    debt_id: str
    message_type: MessageType
    direction: Direction
    subject: str
    body: str
    from_email: str
    to_email: str
    message_id: str
    classification: Optional[ResponseAnalysis] = None
    created_at: datetime = Field(default_factory=utcnow)


class Variable(BaseModel):
    id: str = Field(default_factory=new_id)
    debt_id: str
    name: str
    value: str = ""


class AuditLogEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    debt_id: str
    action: AuditAction
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
