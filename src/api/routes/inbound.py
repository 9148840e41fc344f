"""
Inbound email webhook.

POST /webhooks/inbound-email - Postmark inbound JSON.

Security:
- Rate limited: configurable via settings (default 60/minute)
"""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.api.dependencies import get_service
from src.api.errors import ErrorResponse
from src.api.models.requests import PostmarkInboundPayload
from src.api.models.responses import InboundEmailResult
from src.config.settings import settings
from src.engine.negotiation import NegotiationService

logger = logging.getLogger(__name__)
router = APIRouter()

# Rate limiter (uses app.state.limiter from main.py)
limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/webhooks/inbound-email",
    response_model=InboundEmailResult,
    responses={
        400: {"model": ErrorResponse, "description": "Empty or unparseable email"},
        409: {"model": ErrorResponse, "description": "Conflicting concurrent update"},
        429: {"description": "Rate limit exceeded"},
    },
)
@limiter.limit(settings.rate_limit_inbound)
async def inbound_email(
    request: Request,
    payload: PostmarkInboundPayload,
    service: NegotiationService = Depends(get_service),
) -> InboundEmailResult:
    """
    Receive an email from the mail provider.

    A new notice creates a debt, a reply advances the matching negotiation,
    an opt-out stops contact, and a repeated MessageID is ignored.
    """
    email = payload.to_inbound_email(fallback_message_id=request.state.request_id)
    logger.info(f"Inbound email {email.message_id} from {email.from_email}")
    result = await service.handle_inbound_email(email)
    logger.info(f"Inbound email {email.message_id}: {result.action} -> {result.status.value}")
    return result
