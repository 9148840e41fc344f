"""
Debt status state machine.

``STATE_CONFIG`` is the single source of truth for which status changes are
legal. ``decide_reply`` turns a reply classification into the next status
and the follow-up action; ``NegotiationService`` carries the action out.
"""

from dataclasses import dataclass
from typing import Dict, List, Literal, Tuple

from src.api.errors import InvalidTransitionError
from src.api.models.enums import DebtStatus, Intent, MessageType, SuggestedAction
from src.api.models.responses import ResponseAnalysis

S = DebtStatus

# Absorbing exits available from every non-terminal status except accepted
_EXITS = [S.OPTED_OUT, S.FAILED]

STATE_CONFIG: Dict[DebtStatus, Dict] = {
    S.RECEIVED: {
        "description": "Notice parsed, no strategy yet",
        "allowed_transitions": [S.NEGOTIATING, *_EXITS],
        "terminal": False,
    },
    S.NEGOTIATING: {
        "description": "Letter generated, waiting for the user to approve",
        "allowed_transitions": [S.NEGOTIATING, S.APPROVED, *_EXITS],
        "terminal": False,
    },
    S.APPROVED: {
        "description": "Letter approved, not yet delivered",
        "allowed_transitions": [S.SENT, S.NEGOTIATING, *_EXITS],
        "terminal": False,
    },
    S.SENT: {
        "description": "Letter delivered, no reply yet",
        "allowed_transitions": [S.COUNTER_NEGOTIATING, *_EXITS],
        "terminal": False,
    },
    S.AWAITING_RESPONSE: {
        "description": "Waiting for the creditor after a reply was handled",
        "allowed_transitions": [S.COUNTER_NEGOTIATING, S.AWAITING_RESPONSE, *_EXITS],
        "terminal": False,
    },
    S.COUNTER_NEGOTIATING: {
        "description": "A creditor reply is being handled or a counter-offer was sent",
        "allowed_transitions": [
            S.COUNTER_NEGOTIATING,
            S.ACCEPTED,
            S.REJECTED,
            S.REQUIRES_MANUAL_REVIEW,
            S.AWAITING_RESPONSE,
            *_EXITS,
        ],
        "terminal": False,
    },
    S.REQUIRES_MANUAL_REVIEW: {
        "description": "The user must answer or confirm an acceptance",
        "allowed_transitions": [S.AWAITING_RESPONSE, S.ACCEPTED, *_EXITS],
        "terminal": False,
    },
    S.ACCEPTED: {
        "description": "Creditor accepted, outcome being recorded",
        "allowed_transitions": [S.SETTLED],
        "terminal": False,
    },
    S.REJECTED: {
        "description": "Creditor rejected the proposal",
        "allowed_transitions": [*_EXITS],
        "terminal": False,
    },
    S.SETTLED: {
        "description": "Settled with a recorded financial outcome",
        "allowed_transitions": [],
        "terminal": True,
    },
    S.FAILED: {
        "description": "Abandoned after an unrecoverable problem",
        "allowed_transitions": [],
        "terminal": True,
    },
    S.OPTED_OUT: {
        "description": "Contact stopped at the sender's request",
        "allowed_transitions": [],
        "terminal": True,
    },
}

# Statuses in which a creditor email is treated as a reply to our letter
IN_FLIGHT_STATUSES = (S.SENT, S.AWAITING_RESPONSE, S.COUNTER_NEGOTIATING)
REPLY_STATUSES = (*IN_FLIGHT_STATUSES, S.REQUIRES_MANUAL_REVIEW)


def can_transition(from_status: DebtStatus, to_status: DebtStatus) -> Tuple[bool, str]:
    config = STATE_CONFIG[from_status]
    if config["terminal"]:
        return False, f"'{from_status.value}' is terminal"
    if to_status not in config["allowed_transitions"]:
        allowed = [s.value for s in config["allowed_transitions"]]
        return False, f"allowed from '{from_status.value}': {allowed}"
    return True, "ok"


def ensure_transition(from_status: DebtStatus, to_status: DebtStatus) -> None:
    """Raise ``InvalidTransitionError`` unless the move is in the table."""
    allowed, reason = can_transition(from_status, to_status)
    if not allowed:
        raise InvalidTransitionError(from_status.value, to_status.value, reason)


def is_terminal(status: DebtStatus) -> bool:
    return STATE_CONFIG[status]["terminal"]


def next_states(status: DebtStatus) -> List[DebtStatus]:
    return list(STATE_CONFIG[status]["allowed_transitions"])


ReplyAction = Literal["settle", "reject", "auto_counter", "await", "escalate"]

INTENT_MESSAGE_TYPE = {
    Intent.ACCEPTANCE: MessageType.ACCEPTANCE,
    Intent.REJECTION: MessageType.REJECTION,
    Intent.COUNTER_OFFER: MessageType.COUNTER_OFFER,
}


@dataclass(frozen=True)
class ReplyDecision:
    next_status: DebtStatus
    action: ReplyAction
    message_type: MessageType
    reason: str


def decide_reply(analysis: ResponseAnalysis, auto_counter_confidence: float = 0.8) -> ReplyDecision:
    """
    Map a classification to the next step.

    Anything short of a confident, unflagged result goes to manual review;
    an automatic counter additionally needs the ``send_counter`` suggestion
    and a confidence strictly above ``auto_counter_confidence``.
    """
    message_type = INTENT_MESSAGE_TYPE.get(analysis.intent, MessageType.RESPONSE_RECEIVED)
    confident = analysis.confidence > auto_counter_confidence and not analysis.requires_review

    def escalate(reason: str) -> ReplyDecision:
        return ReplyDecision(S.REQUIRES_MANUAL_REVIEW, "escalate", message_type, reason)

    if analysis.intent == Intent.ACCEPTANCE:
        if analysis.requires_review:
            return escalate("acceptance needs review before recording an outcome")
        return ReplyDecision(S.ACCEPTED, "settle", message_type, "creditor accepted")

    if analysis.intent == Intent.REJECTION:
        return ReplyDecision(S.REJECTED, "reject", message_type, "creditor rejected")

    if analysis.intent == Intent.COUNTER_OFFER:
        if confident and analysis.suggested_next_action == SuggestedAction.SEND_COUNTER:
            return ReplyDecision(
                S.COUNTER_NEGOTIATING, "auto_counter", message_type, "confident counter-offer"
            )
        return escalate(
            f"counter-offer at confidence {analysis.confidence:.2f}, "
            f"review={analysis.requires_review}, action={analysis.suggested_next_action.value}"
        )

    if analysis.intent == Intent.REQUEST_INFO and confident:
        return ReplyDecision(
            S.AWAITING_RESPONSE, "await", message_type, "creditor asked for information"
        )

    return escalate(f"{analysis.intent.value} reply needs a decision")
