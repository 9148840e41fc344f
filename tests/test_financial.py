"""Tests for the financial outcome calculator."""

import pytest

from src.api.models.responses import ExtractedTerms, PaymentTerms
from src.engine.financial import calculate_financial_outcome, present_value_of_payments


class TestPresentValue:
    def test_three_monthly_payments(self):
        assert present_value_of_payments(400.0, 3, 0.05) == pytest.approx(1190.07, abs=0.01)

    def test_zero_rate_is_plain_sum(self):
        assert present_value_of_payments(100.0, 12, 0.0) == pytest.approx(1200.0)

    def test_no_payments(self):
        assert present_value_of_payments(100.0, 0) == 0


class TestFinancialOutcome:
    def test_settlement_is_principal_reduction(self):
        outcome = calculate_financial_outcome(5000.0, ExtractedTerms(proposed_amount=3200.0))

        assert outcome.benefit_type == "principal_reduction"
        assert outcome.accepted_amount == 3200.0
        assert outcome.actual_savings == 1800.0
        assert outcome.principal_reduction.amount == 1800.0
        assert outcome.principal_reduction.percentage == "36.00"
        assert outcome.payment_restructuring is None

    def test_flat_settlement_percentage(self):
        outcome = calculate_financial_outcome(5000.0, ExtractedTerms(proposed_amount=3000.0))

        assert outcome.actual_savings == 2000.0
        assert outcome.principal_reduction.percentage == "40.00"

    def test_plan_without_reduction_is_restructuring(self, plan_terms):
        outcome = calculate_financial_outcome(4500.0, plan_terms)

        assert outcome.benefit_type == "payment_restructuring"
        assert outcome.accepted_amount == 4500.0
        assert outcome.actual_savings == 0.0
        assert outcome.principal_reduction is None
        assert outcome.payment_restructuring.monthly_reduction == 4250.0
        assert outcome.payment_restructuring.cash_flow_benefit == 76500.0
        assert outcome.time_value_benefit.present_value == pytest.approx(4326.72, abs=0.02)
        assert outcome.time_value_benefit.benefit == pytest.approx(173.28, abs=0.02)
        assert outcome.time_value_benefit.effective_discount == "3.85"
        assert outcome.payment_structure.payment_frequency == "monthly"

    def test_reduction_wins_over_plan(self):
        terms = ExtractedTerms(
            payment_terms=PaymentTerms(
                monthly_amount=200.0, number_of_payments=10, total_amount=2000.0
            )
        )

        outcome = calculate_financial_outcome(3000.0, terms)

        assert outcome.benefit_type == "principal_reduction"
        assert outcome.actual_savings == 1000.0
        assert outcome.payment_restructuring is None
        assert outcome.payment_structure.total_amount == 2000.0

    def test_falls_back_to_projected_savings(self):
        outcome = calculate_financial_outcome(1200.0, ExtractedTerms(), projected_savings=120.0)

        assert outcome.accepted_amount == 1080.0
        assert outcome.actual_savings == 120.0
        assert outcome.principal_reduction.percentage == "10.00"

    def test_nothing_known_means_no_benefit(self):
        outcome = calculate_financial_outcome(800.0)

        assert outcome.benefit_type == "none"
        assert outcome.accepted_amount == 800.0
        assert outcome.actual_savings == 0.0

    def test_plan_needs_both_amount_and_count(self):
        terms = ExtractedTerms(payment_terms=PaymentTerms(monthly_amount=100.0))

        outcome = calculate_financial_outcome(900.0, terms)

        assert outcome.benefit_type == "none"
        assert outcome.time_value_benefit is None

    def test_accepting_more_than_owed_has_no_savings(self):
        outcome = calculate_financial_outcome(500.0, ExtractedTerms(proposed_amount=650.0))

        assert outcome.actual_savings == 0.0
        assert outcome.benefit_type == "none"

    def test_zero_original_amount_percentage(self):
        outcome = calculate_financial_outcome(
            0.0,
            ExtractedTerms(payment_terms=PaymentTerms(monthly_amount=10.0, number_of_payments=2)),
        )

        assert outcome.time_value_benefit.effective_discount == "0.00"
