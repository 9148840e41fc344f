"""Enumerations shared by stored records and API payloads."""

from enum import Enum


class DebtStatus(str, Enum):
    """Lifecycle states of a debt. Values are the wire strings."""

    RECEIVED = "received"
    NEGOTIATING = "negotiating"
    APPROVED = "approved"
    SENT = "sent"
    AWAITING_RESPONSE = "awaiting_response"
    COUNTER_NEGOTIATING = "counter_negotiating"
    REQUIRES_MANUAL_REVIEW = "requires_manual_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SETTLED = "settled"
    FAILED = "failed"
    OPTED_OUT = "opted_out"


class MessageType(str, Enum):
    INITIAL_DEBT = "initial_debt"
    NEGOTIATION_SENT = "negotiation_sent"
    RESPONSE_RECEIVED = "response_received"
    COUNTER_OFFER = "counter_offer"
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"
    MANUAL_RESPONSE = "manual_response"


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Strategy(str, Enum):
    EXTENSION = "extension"
    INSTALLMENT = "installment"
    SETTLEMENT = "settlement"
    DISPUTE = "dispute"


class AuditAction(str, Enum):
    EMAIL_RECEIVED = "email_received"
    OPT_OUT_LOGGED = "opt_out_logged"
    NEGOTIATION_GENERATED = "negotiation_generated"
    LETTER_EDITED = "letter_edited"
    DEBT_APPROVED = "debt_approved"
    EMAIL_SENT = "email_sent"
    EMAIL_SEND_FAILED = "email_send_failed"
    RESPONSE_ANALYZED = "response_analyzed"
    OFFER_ACCEPTED = "offer_accepted"
    DEBT_SETTLED = "debt_settled"
    OFFER_REJECTED = "offer_rejected"
    AUTO_COUNTER_TRIGGERED = "auto_counter_triggered"
    ESCALATED_FOR_REVIEW = "escalated_for_review"
    MANUAL_RESPONSE_SENT = "manual_response_sent"
    DEBT_FAILED = "debt_failed"
    DUPLICATE_IGNORED = "duplicate_ignored"


class Intent(str, Enum):
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"
    COUNTER_OFFER = "counter_offer"
    REQUEST_INFO = "request_info"
    UNCLEAR = "unclear"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class SuggestedAction(str, Enum):
    ACCEPT_OFFER = "accept_offer"
    SEND_COUNTER = "send_counter"
    REQUEST_CLARIFICATION = "request_clarification"
    ESCALATE_TO_USER = "escalate_to_user"
    MARK_SETTLED = "mark_settled"
