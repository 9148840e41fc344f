"""
Reply analysis endpoints.

POST /analyze-response - Process a creditor reply for a known debt.
POST /test-extraction  - Classify reply text without storing anything.
"""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.api.dependencies import get_service
from src.api.errors import ErrorResponse
from src.api.models.requests import (
    AnalyzeResponseRequest,
    ExtractionPreviewRequest,
    InboundEmail,
    ResponseClassificationInput,
)
from src.api.models.responses import InboundEmailResult, ResponseAnalysis
from src.config.settings import settings
from src.engine.negotiation import NegotiationService

logger = logging.getLogger(__name__)
router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/analyze-response",
    response_model=InboundEmailResult,
    responses={
        404: {"model": ErrorResponse, "description": "Debt not found"},
        409: {"model": ErrorResponse, "description": "Debt is not awaiting a reply"},
    },
)
@limiter.limit(settings.rate_limit_analyze)
async def analyze_response(
    request: Request,
    analyze_request: AnalyzeResponseRequest,
    service: NegotiationService = Depends(get_service),
) -> InboundEmailResult:
    debt = service.get_debt(analyze_request.debt_id)
    email = InboundEmail(
        message_id=analyze_request.message_id,
        from_email=analyze_request.from_email,
        to_email=debt.owner_email,
        subject=analyze_request.subject,
        body=analyze_request.body,
    )
    return await service.process_reply(debt.id, email)


@router.post("/test-extraction", response_model=ResponseAnalysis)
@limiter.limit(settings.rate_limit_analyze)
async def test_extraction(
    request: Request,
    preview_request: ExtractionPreviewRequest,
    service: NegotiationService = Depends(get_service),
) -> ResponseAnalysis:
    """Dry run of reply classification; nothing is stored."""
    result = await service.preview_analysis(
        ResponseClassificationInput(
            from_email=preview_request.from_email,
            subject=preview_request.subject,
            body=preview_request.body,
        )
    )
    logger.info(f"Extraction preview: {result.intent.value} ({result.confidence:.2f})")
    return result
