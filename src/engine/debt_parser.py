"""
Parsing of a creditor's first notice into debt fields.

The regex fallback only finds an amount; vendor defaults to the sender
address and the email counts as a collection notice when an amount exists.
"""

import logging

from src.api.models.requests import InboundEmail
from src.api.models.responses import DebtNotice
from src.llm.schemas import DebtNoticeLLMResponse
from src.prompts import PARSE_DEBT_NOTICE_SYSTEM, PARSE_DEBT_NOTICE_USER

from .base import ComponentWithFallback, EngineComponent, LLMComponent
from .classifier import extract_amounts

logger = logging.getLogger(__name__)


class DebtNoticeParser(EngineComponent[InboundEmail, DebtNotice]):
    name = "debt_notice_parser"


class RegexDebtNoticeParser(DebtNoticeParser):
    async def run(self, request: InboundEmail) -> DebtNotice:
        amounts = extract_amounts(f"{request.subject} {request.body}")
        amount = amounts[0] if amounts else 0.0
        return DebtNotice(
            amount=amount,
            vendor=request.from_email,
            description=request.subject or None,
            is_debt_collection=amount > 0,
            successfully_parsed=amount > 0,
            source="fallback",
        )


class LLMDebtNoticeParser(LLMComponent, DebtNoticeParser):
    async def run(self, request: InboundEmail) -> DebtNotice:
        result = await self._generate(
            PARSE_DEBT_NOTICE_SYSTEM,
            PARSE_DEBT_NOTICE_USER.format(
                from_email=request.from_email, subject=request.subject, body=request.body
            ),
            DebtNoticeLLMResponse,
            temperature=0.1,
        )
        logger.info(
            f"Parsed notice from {request.from_email}: ${result.amount:,.2f} "
            f"(collection={result.is_debt_collection})"
        )
        return DebtNotice(
            amount=result.amount,
            vendor=result.vendor.strip() or request.from_email,
            description=result.description,
            due_date=result.due_date,
            is_debt_collection=result.is_debt_collection,
            successfully_parsed=result.successfully_parsed,
            source="ai",
        )


def build_debt_notice_parser(llm_client) -> ComponentWithFallback:
    return ComponentWithFallback(
        primary=LLMDebtNoticeParser(llm_client),
        fallback=RegexDebtNoticeParser(),
    )
