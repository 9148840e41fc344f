"""
Debt lifecycle endpoints for the user-facing workflow.

Reads: debt, conversation, audit trail, variables.
Actions: regenerate, edit, fill variables, approve, send, manual reply,
confirm acceptance, fail.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from src.api.dependencies import get_service
from src.api.errors import ErrorResponse
from src.api.models.domain import AuditLogEntry, ConversationMessage, Debt
from src.api.models.requests import (
    ApproveRequest,
    ConfirmAcceptanceRequest,
    FailDebtRequest,
    LetterUpdateRequest,
    ManualResponseRequest,
    VariablesUpdateRequest,
)
from src.api.models.responses import SendResult, VariablesResponse
from src.engine.negotiation import NegotiationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/debts")

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Debt not found"}}
_TRANSITION = {
    **_NOT_FOUND,
    409: {"model": ErrorResponse, "description": "Action not allowed in current status"},
}


def _variables_response(service: NegotiationService, debt_id: str) -> VariablesResponse:
    values = service.get_variables(debt_id)
    return VariablesResponse(
        debt_id=debt_id,
        variables=values,
        unfilled=[name for name, value in values.items() if not value.strip()],
    )


@router.get("/{debt_id}", response_model=Debt, responses=_NOT_FOUND)
async def get_debt(debt_id: str, service: NegotiationService = Depends(get_service)) -> Debt:
    return service.get_debt(debt_id)


@router.get(
    "/{debt_id}/messages", response_model=List[ConversationMessage], responses=_NOT_FOUND
)
async def list_messages(
    debt_id: str, service: NegotiationService = Depends(get_service)
) -> List[ConversationMessage]:
    return service.list_messages(debt_id)


@router.get("/{debt_id}/audit", response_model=List[AuditLogEntry], responses=_NOT_FOUND)
async def list_audit(
    debt_id: str, service: NegotiationService = Depends(get_service)
) -> List[AuditLogEntry]:
    return service.list_audit(debt_id)


@router.get("/{debt_id}/variables", response_model=VariablesResponse, responses=_NOT_FOUND)
async def get_variables(
    debt_id: str, service: NegotiationService = Depends(get_service)
) -> VariablesResponse:
    return _variables_response(service, debt_id)


@router.put(
    "/{debt_id}/variables",
    response_model=VariablesResponse,
    responses={**_NOT_FOUND, 400: {"model": ErrorResponse, "description": "Unknown variable"}},
)
async def set_variables(
    debt_id: str,
    update: VariablesUpdateRequest,
    service: NegotiationService = Depends(get_service),
) -> VariablesResponse:
    service.set_variables(debt_id, update.values)
    return _variables_response(service, debt_id)


@router.put("/{debt_id}/letter", response_model=Debt, responses=_TRANSITION)
async def update_letter(
    debt_id: str,
    update: LetterUpdateRequest,
    service: NegotiationService = Depends(get_service),
) -> Debt:
    return service.update_letter(debt_id, update.subject, update.body)


@router.post("/{debt_id}/negotiate", response_model=Debt, responses=_TRANSITION)
async def negotiate(debt_id: str, service: NegotiationService = Depends(get_service)) -> Debt:
    """Generate or regenerate the negotiation letter."""
    return await service.generate_negotiation(debt_id)


@router.post("/{debt_id}/approve", response_model=Debt, responses=_TRANSITION)
async def approve(
    debt_id: str,
    approval: Optional[ApproveRequest] = None,
    service: NegotiationService = Depends(get_service),
) -> Debt:
    return service.approve(debt_id, approval.note if approval else None)


@router.post(
    "/{debt_id}/send",
    response_model=SendResult,
    responses={
        **_TRANSITION,
        422: {"model": ErrorResponse, "description": "Letter has unfilled variables"},
    },
)
async def send(debt_id: str, service: NegotiationService = Depends(get_service)) -> SendResult:
    """
    Deliver the approved letter.

    A delivery failure is not an HTTP error: the result has
    ``delivered=false`` and the debt stays approved.
    """
    result = await service.send(debt_id)
    if not result.delivered:
        logger.warning(f"Send for debt {debt_id} not delivered")
    return result


@router.post(
    "/{debt_id}/manual-response",
    response_model=SendResult,
    responses={
        **_TRANSITION,
        422: {"model": ErrorResponse, "description": "Reply has unfilled variables"},
    },
)
async def manual_response(
    debt_id: str,
    reply: ManualResponseRequest,
    service: NegotiationService = Depends(get_service),
) -> SendResult:
    return await service.submit_manual_response(debt_id, reply.subject, reply.body)


@router.post("/{debt_id}/fail", response_model=Debt, responses=_TRANSITION)
async def fail(
    debt_id: str, failure: FailDebtRequest, service: NegotiationService = Depends(get_service)
) -> Debt:
    return service.mark_failed(debt_id, failure.reason)


@router.post(
    "/{debt_id}/confirm-acceptance",
    response_model=Debt,
    responses={
        **_TRANSITION,
        400: {"model": ErrorResponse, "description": "No creditor reply to confirm"},
    },
)
async def confirm_acceptance(
    debt_id: str,
    confirmation: Optional[ConfirmAcceptanceRequest] = None,
    service: NegotiationService = Depends(get_service),
) -> Debt:
    """Settle a debt under manual review whose reply the user reads as an acceptance."""
    if confirmation is None:
        return service.confirm_acceptance(debt_id)
    return service.confirm_acceptance(debt_id, confirmation.terms, confirmation.note)
