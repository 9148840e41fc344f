"""Amount grounding - every dollar figure in a letter must come from the terms."""

import re
from typing import List

from .base import BaseGuardrail, GuardrailResult, GuardrailSeverity, LetterContext

CURRENCY_RE = re.compile(r"\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")


class AmountGroundingGuardrail(BaseGuardrail):
    """
    Blocks letters that state amounts not present in the debt, the proposed
    terms or the creditor's own proposal.
    """

    def __init__(self):
        super().__init__(name="amount_grounding", severity=GuardrailSeverity.CRITICAL)

    def validate(self, output: str, context: LetterContext) -> List[GuardrailResult]:
        stated = [float(m.replace(",", "")) for m in CURRENCY_RE.findall(output)]
        ungrounded = [value for value in stated if not context.is_allowed_amount(value)]

        if ungrounded:
            return [
                self._fail(
                    message=f"Letter states amounts not in the terms: {ungrounded}",
                    expected=sorted({context.debt_amount, *context.allowed_amounts}),
                    found=ungrounded,
                    details={"stated_amounts": stated},
                )
            ]
        return [self._pass(details={"stated_amounts": stated})]
