"""Placeholder structure - letters must use ``{{ name }}`` placeholders correctly."""

import re
from typing import List

from src.engine.variables import extract_variables

from .base import BaseGuardrail, GuardrailResult, GuardrailSeverity, LetterContext

SQUARE_PLACEHOLDER_RE = re.compile(r"\[(?:your|creditor|account|date|insert)[^\]]{0,40}\]", re.I)


class PlaceholderStructureGuardrail(BaseGuardrail):
    """
    Checks that:
    1. Required placeholders (the signature) are present
    2. No square-bracket placeholders slipped in
    3. Double braces are balanced
    """

    def __init__(self):
        super().__init__(name="placeholder_structure", severity=GuardrailSeverity.HIGH)

    def validate(self, output: str, context: LetterContext) -> List[GuardrailResult]:
        results = []
        names = extract_variables(output)

        missing = [name for name in context.required_placeholders if name not in names]
        if missing:
            results.append(
                self._fail(
                    message=f"Missing required placeholders: {missing}",
                    expected=context.required_placeholders,
                    found=names,
                )
            )

        square = SQUARE_PLACEHOLDER_RE.findall(output)
        if square:
            results.append(
                self._fail(message=f"Square-bracket placeholders used: {square}", found=square)
            )

        if output.count("{{") != output.count("}}"):
            results.append(
                self._fail(
                    message="Unbalanced placeholder braces",
                    details={"open": output.count("{{"), "close": output.count("}}")},
                )
            )

        return results or [self._pass(details={"placeholders": names})]
