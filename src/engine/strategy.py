"""
Negotiation strategy and letter generation.

The strategy comes from fixed amount thresholds. ``RuleBasedStrategyGenerator``
fills a fixed letter per strategy; ``LLMStrategyGenerator`` writes a
personalized letter for the same strategy and terms, checked by the letter
guardrails. Letters use ``{{ }}`` placeholders for personal details the
engine does not know.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Optional

from src.api.models.domain import NegotiationPlan, StrategyTerms
from src.api.models.enums import Strategy
from src.api.models.requests import CounterOfferContext, StrategyRequest
from src.guardrails import GuardrailPipeline, LetterContext
from src.llm.schemas import NegotiationLetterLLMResponse
from src.prompts import COUNTER_SECTION, GENERATE_LETTER_SYSTEM, GENERATE_LETTER_USER
from src.utils import timed_operation

from .base import ComponentUnavailableError, ComponentWithFallback, EngineComponent, LLMComponent

logger = logging.getLogger(__name__)

EXTENSION_LIMIT = 500
INSTALLMENT_LIMIT = 2000
EXTENSION_DAYS = 30
INSTALLMENT_MONTHS = 3
INSTALLMENT_SAVINGS_RATE = 0.1
SETTLEMENT_PERCENTAGE = 0.6
FALLBACK_CONFIDENCE = 0.7
MAX_GUARDRAIL_RETRIES = 1

SIGNATURE = "Sincerely,\n{{ Your Name }}\n{{ Your Address }}"


@dataclass
class StrategySelection:
    strategy: Strategy
    terms: StrategyTerms
    projected_savings: float
    reasoning: str


def select_strategy(amount: float) -> StrategySelection:
    """Pick a strategy from the balance alone."""
    if amount < EXTENSION_LIMIT:
        return StrategySelection(
            strategy=Strategy.EXTENSION,
            terms=StrategyTerms(extension_days=EXTENSION_DAYS),
            projected_savings=0.0,
            reasoning=(
                f"Balance under ${EXTENSION_LIMIT}: request a {EXTENSION_DAYS}-day extension "
                "to pay in full."
            ),
        )
    if amount < INSTALLMENT_LIMIT:
        return StrategySelection(
            strategy=Strategy.INSTALLMENT,
            terms=StrategyTerms(
                installment_months=INSTALLMENT_MONTHS,
                monthly_payment=round(amount / INSTALLMENT_MONTHS, 2),
            ),
            projected_savings=round(amount * INSTALLMENT_SAVINGS_RATE, 2),
            reasoning=(
                f"Balance between ${EXTENSION_LIMIT} and ${INSTALLMENT_LIMIT}: propose "
                f"{INSTALLMENT_MONTHS} monthly payments."
            ),
        )
    return StrategySelection(
        strategy=Strategy.SETTLEMENT,
        terms=StrategyTerms(
            settlement_percentage=SETTLEMENT_PERCENTAGE,
            settlement_amount=round(amount * SETTLEMENT_PERCENTAGE, 2),
        ),
        projected_savings=round(amount * (1 - SETTLEMENT_PERCENTAGE), 2),
        reasoning=(
            f"Balance of ${INSTALLMENT_LIMIT} or more: offer a lump-sum settlement at "
            f"{SETTLEMENT_PERCENTAGE:.0%} of the balance."
        ),
    )


def _format_date(value: date) -> str:
    return value.strftime("%B %d, %Y")


def _offer_paragraph(selection: StrategySelection, amount: float, today: date) -> str:
    terms = selection.terms
    if selection.strategy == Strategy.EXTENSION:
        pay_by = _format_date(today + timedelta(days=terms.extension_days))
        return (
            f"Due to temporary financial circumstances, I am requesting an extension of "
            f"{terms.extension_days} days to pay this balance. I intend to pay the full amount "
            f"of ${amount:,.2f} on or before {pay_by}. Please confirm that no late fees or "
            "further collection activity will apply during this period."
        )
    if selection.strategy == Strategy.INSTALLMENT:
        first_payment = _format_date(today + timedelta(days=30))
        return (
            f"I am committed to resolving this balance and propose to pay it in "
            f"{terms.installment_months} monthly payments of ${terms.monthly_payment:,.2f}, "
            f"beginning {first_payment}. Please confirm that no additional interest or fees "
            "will be added while payments are made as agreed."
        )
    return (
        f"I am prepared to make a one-time payment of ${terms.settlement_amount:,.2f} "
        f"({terms.settlement_percentage:.0%} of the balance) as full and final settlement "
        "of this account. On acceptance, I ask that you confirm in writing that the account "
        "will be reported as settled in full and that no remaining balance will be pursued "
        "or sold."
    )


SUBJECTS = {
    Strategy.EXTENSION: "Request for Payment Extension - Account {{ Account Number }}",
    Strategy.INSTALLMENT: "Payment Plan Proposal - Account {{ Account Number }}",
    Strategy.SETTLEMENT: "Settlement Offer - Account {{ Account Number }}",
}

KEY_POINTS = {
    Strategy.EXTENSION: ["Full payment", "Extended due date", "No late fees"],
    Strategy.INSTALLMENT: ["Monthly payments", "No added interest", "Written confirmation"],
    Strategy.SETTLEMENT: ["Lump-sum payment", "Full and final settlement", "Reported as settled"],
}


def _counter_subject(previous_subject: str) -> str:
    return previous_subject if previous_subject.lower().startswith("re:") else f"Re: {previous_subject}"


def build_rule_based_letter(
    selection: StrategySelection,
    request: StrategyRequest,
    today: date,
) -> NegotiationPlan:
    """Fixed letter for a strategy; counter rounds acknowledge the creditor's proposal."""
    offer = _offer_paragraph(selection, request.amount, today)
    counter = request.counter_context

    if counter is None:
        subject = SUBJECTS[selection.strategy]
        opening = (
            f"I am writing regarding account {{{{ Account Number }}}}, with a stated balance of "
            f"${request.amount:,.2f}."
        )
    else:
        subject = _counter_subject(counter.previous_letter.subject)
        proposed = counter.extracted_terms.proposed_amount
        opening = (
            "Thank you for your reply regarding account {{ Account Number }}. I have carefully "
            "considered your proposal"
            + (f" of ${proposed:,.2f}" if proposed is not None else "")
            + ". After reviewing my finances, this is what I am able to offer."
        )

    body = f"Dear {request.vendor},\n\n{opening}\n\n{offer}\n\nThank you for your time.\n\n{SIGNATURE}"

    return NegotiationPlan(
        strategy=selection.strategy,
        confidence=FALLBACK_CONFIDENCE,
        projected_savings=selection.projected_savings,
        reasoning=selection.reasoning,
        terms=selection.terms,
        subject=subject,
        body=body,
        tone="respectful",
        key_points=KEY_POINTS[selection.strategy],
        source="fallback",
    )


class StrategyGenerator(EngineComponent[StrategyRequest, NegotiationPlan]):
    name = "strategy_generator"

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self.today = today or date.today


class RuleBasedStrategyGenerator(StrategyGenerator):
    async def run(self, request: StrategyRequest) -> NegotiationPlan:
        selection = select_strategy(request.amount)
        logger.info(
            f"Rule-based strategy for debt {request.debt_id}: {selection.strategy.value} "
            f"(${request.amount:,.2f})"
        )
        return build_rule_based_letter(selection, request, self.today())


def letter_context(request: StrategyRequest, selection: StrategySelection) -> LetterContext:
    """Amounts a letter for this request may mention."""
    allowed: List[float] = []
    terms = selection.terms
    for value in (terms.monthly_payment, terms.settlement_amount):
        if value is not None:
            allowed.append(value)
    counter = request.counter_context
    if counter is not None:
        theirs = counter.extracted_terms
        if theirs.proposed_amount is not None:
            allowed.append(theirs.proposed_amount)
        if theirs.payment_terms is not None:
            plan = theirs.payment_terms
            allowed.extend(v for v in (plan.monthly_amount, plan.total_amount) if v is not None)
    return LetterContext(debt_amount=request.amount, allowed_amounts=allowed)


class LLMStrategyGenerator(LLMComponent, StrategyGenerator):
    """Model-written letter for the threshold strategy, validated by guardrails."""

    def __init__(
        self,
        llm_client,
        guardrails: Optional[GuardrailPipeline] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        LLMComponent.__init__(self, llm_client)
        StrategyGenerator.__init__(self, today=today)
        self.guardrails = guardrails or GuardrailPipeline()

    def _user_prompt(self, request: StrategyRequest, selection: StrategySelection) -> str:
        counter_section = ""
        counter: Optional[CounterOfferContext] = request.counter_context
        if counter is not None:
            counter_section = COUNTER_SECTION.format(
                negotiation_round=request.negotiation_round,
                previous_subject=counter.previous_letter.subject,
                creditor_reply=counter.creditor_reply,
                their_terms=counter.extracted_terms.model_dump_json(exclude_none=True),
            )
        return GENERATE_LETTER_USER.format(
            vendor=request.vendor,
            amount=request.amount,
            description=request.description or "Not provided",
            due_date=request.due_date or "Not provided",
            notice_excerpt=(request.notice_excerpt or "Not provided")[:2000],
            strategy=selection.strategy.value,
            terms=selection.terms.model_dump_json(exclude_none=True),
            counter_section=counter_section,
        )

    async def run(self, request: StrategyRequest) -> NegotiationPlan:
        selection = select_strategy(request.amount)
        base_prompt = self._user_prompt(request, selection)
        context = letter_context(request, selection)
        feedback = ""

        for attempt in range(MAX_GUARDRAIL_RETRIES + 1):
            if feedback:
                logger.info(
                    f"Retrying letter generation (attempt {attempt + 1}) with guardrail feedback"
                )
            with timed_operation("letter_generation", debt_id=request.debt_id, attempt=attempt):
                result = await self._generate(
                    GENERATE_LETTER_SYSTEM,
                    base_prompt + feedback,
                    NegotiationLetterLLMResponse,
                    temperature=0.7,
                )

            guardrail_result = self.guardrails.validate(
                f"{result.subject}\n{result.body}", context
            )
            if not guardrail_result.should_block:
                return self._to_plan(result, selection)

            feedback = self.guardrails.build_feedback(guardrail_result)

        raise ComponentUnavailableError(
            f"letter failed guardrails after {MAX_GUARDRAIL_RETRIES + 1} attempts: "
            f"{guardrail_result.blocking_guardrails}"
        )

    def _to_plan(
        self, result: NegotiationLetterLLMResponse, selection: StrategySelection
    ) -> NegotiationPlan:
        chosen = Strategy(result.strategy)
        if chosen == Strategy.DISPUTE:
            logger.info("Model switched strategy to dispute")
            terms, savings = StrategyTerms(), 0.0
        else:
            if chosen != selection.strategy:
                logger.warning(
                    f"Model chose {chosen.value}, keeping threshold strategy "
                    f"{selection.strategy.value}"
                )
            chosen, terms, savings = selection.strategy, selection.terms, selection.projected_savings

        return NegotiationPlan(
            strategy=chosen,
            confidence=result.confidence,
            projected_savings=savings,
            reasoning=result.reasoning,
            terms=terms,
            subject=result.subject,
            body=result.body,
            tone=result.tone,
            key_points=result.key_points,
            source="ai",
        )


def build_strategy_generator(
    llm_client, today: Optional[Callable[[], date]] = None
) -> ComponentWithFallback:
    return ComponentWithFallback(
        primary=LLMStrategyGenerator(llm_client, today=today),
        fallback=RuleBasedStrategyGenerator(today=today),
    )
