"""Guardrail Pipeline - runs letter guardrails in severity order."""

import logging
from typing import List, Optional

from .amounts import AmountGroundingGuardrail
from .base import (
    BaseGuardrail,
    GuardrailPipelineResult,
    GuardrailResult,
    GuardrailSeverity,
    LetterContext,
)
from .placeholders import PlaceholderStructureGuardrail

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {
    GuardrailSeverity.CRITICAL: 0,
    GuardrailSeverity.HIGH: 1,
    GuardrailSeverity.MEDIUM: 2,
    GuardrailSeverity.LOW: 3,
}


class GuardrailPipeline:
    """
    Orchestrates guardrails.

    Critical guardrails run first; with ``fail_fast`` the first critical
    failure ends the run.
    """

    def __init__(self, guardrails: Optional[List[BaseGuardrail]] = None):
        if guardrails is None:
            guardrails = [AmountGroundingGuardrail(), PlaceholderStructureGuardrail()]
        self.guardrails = sorted(guardrails, key=lambda g: SEVERITY_ORDER[g.severity])

        logger.info(
            f"Initialized guardrail pipeline with {len(self.guardrails)} guardrails: "
            f"{[g.name for g in self.guardrails]}"
        )

    def validate(
        self, output: str, context: LetterContext, fail_fast: bool = True
    ) -> GuardrailPipelineResult:
        all_results: List[GuardrailResult] = []
        blocking_guardrails: List[str] = []

        for guardrail in self.guardrails:
            results = guardrail.validate(output, context)
            all_results.extend(results)

            blocked = [r for r in results if r.should_block]
            if not blocked:
                continue

            blocking_guardrails.append(guardrail.name)
            for result in blocked:
                logger.warning(f"Guardrail {guardrail.name} BLOCKED output: {result.message}")

            if fail_fast and guardrail.severity == GuardrailSeverity.CRITICAL:
                break

        return GuardrailPipelineResult(
            all_passed=all(r.passed for r in all_results),
            should_block=bool(blocking_guardrails),
            results=all_results,
            blocking_guardrails=blocking_guardrails,
        )

    def build_feedback(self, pipeline_result: GuardrailPipelineResult) -> str:
        """Extra prompt instructions describing what the previous letter got wrong."""
        if pipeline_result.all_passed:
            return ""

        additions = [
            "\n\n**IMPORTANT VALIDATION REQUIREMENTS:**",
            "The previous letter had validation errors. Please ensure:",
        ]
        for result in pipeline_result.failures:
            if result.guardrail_name == "amount_grounding":
                additions.append("- ONLY use dollar amounts from the terms provided")
                if result.expected:
                    additions.append(f"- Allowed amounts: {result.expected}")
            elif result.guardrail_name == "placeholder_structure":
                additions.append(f"- {result.message}")
                additions.append("- Sign the letter with {{ Your Name }} exactly")

        return "\n".join(additions)
