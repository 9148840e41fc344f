"""
Financial outcome of an accepted offer.

Pure functions; the orchestrator stores the result on the debt.
"""

from typing import Optional

from src.api.models.domain import (
    FinancialOutcome,
    PaymentRestructuring,
    PaymentStructure,
    PrincipalReduction,
    TimeValueBenefit,
)
from src.api.models.responses import ExtractedTerms

DEFAULT_ANNUAL_DISCOUNT_RATE = 0.05


def present_value_of_payments(
    monthly_amount: float,
    number_of_payments: int,
    annual_rate: float = DEFAULT_ANNUAL_DISCOUNT_RATE,
) -> float:
    """Sum of ``monthly_amount / (1 + r)^i`` for i = 1..n with r = annual_rate / 12."""
    monthly_rate = annual_rate / 12
    return sum(
        monthly_amount / (1 + monthly_rate) ** i for i in range(1, number_of_payments + 1)
    )


def _percent_of(part: float, whole: float) -> str:
    if whole <= 0:
        return "0.00"
    return f"{part / whole * 100:.2f}"


def _accepted_amount(
    original_amount: float, terms: ExtractedTerms, projected_savings: Optional[float]
) -> float:
    if terms.proposed_amount is not None:
        return terms.proposed_amount
    if terms.payment_terms and terms.payment_terms.total_amount is not None:
        return terms.payment_terms.total_amount
    if projected_savings and projected_savings > 0:
        return original_amount - projected_savings
    return original_amount


def calculate_financial_outcome(
    original_amount: float,
    terms: Optional[ExtractedTerms] = None,
    projected_savings: Optional[float] = None,
    annual_rate: float = DEFAULT_ANNUAL_DISCOUNT_RATE,
) -> FinancialOutcome:
    """
    Compare what the creditor accepted with the original balance.

    The accepted amount is the flat settlement amount if one was proposed,
    otherwise the plan total, otherwise the original reduced by the
    projected savings. A reduction in principal wins over a restructured
    plan; a plan is only analysed when both the monthly amount and the
    number of payments are known.
    """
    terms = terms or ExtractedTerms()
    payment_terms = terms.payment_terms

    accepted_amount = _accepted_amount(original_amount, terms, projected_savings)
    actual_savings = max(0.0, original_amount - accepted_amount)

    payment_structure = None
    if payment_terms is not None:
        payment_structure = PaymentStructure(
            monthly_amount=payment_terms.monthly_amount,
            number_of_payments=payment_terms.number_of_payments,
            total_amount=payment_terms.total_amount,
            payment_frequency=payment_terms.payment_frequency or "monthly",
            interest_rate=payment_terms.interest_rate or 0.0,
        )

    outcome = FinancialOutcome(
        original_amount=round(original_amount, 2),
        accepted_amount=round(accepted_amount, 2),
        actual_savings=round(actual_savings, 2),
        payment_structure=payment_structure,
        benefit_type="none",
    )

    if actual_savings > 0:
        outcome.principal_reduction = PrincipalReduction(
            amount=round(actual_savings, 2),
            percentage=_percent_of(actual_savings, original_amount),
        )
        outcome.benefit_type = "principal_reduction"
        return outcome

    if (
        payment_terms is not None
        and payment_terms.monthly_amount is not None
        and payment_terms.number_of_payments
    ):
        monthly = payment_terms.monthly_amount
        count = payment_terms.number_of_payments
        monthly_reduction = original_amount - monthly
        present_value = present_value_of_payments(monthly, count, annual_rate)
        time_value = original_amount - present_value

        outcome.payment_restructuring = PaymentRestructuring(
            monthly_reduction=round(monthly_reduction, 2),
            cash_flow_benefit=round(monthly_reduction * count, 2),
        )
        outcome.time_value_benefit = TimeValueBenefit(
            present_value=round(present_value, 2),
            benefit=round(time_value, 2),
            effective_discount=_percent_of(time_value, original_amount),
        )
        outcome.benefit_type = "payment_restructuring"

    return outcome
