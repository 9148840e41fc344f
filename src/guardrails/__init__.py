"""Validation of generated negotiation letters."""

from .amounts import AmountGroundingGuardrail
from .base import (
    BaseGuardrail,
    GuardrailPipelineResult,
    GuardrailResult,
    GuardrailSeverity,
    LetterContext,
)
from .pipeline import GuardrailPipeline
from .placeholders import PlaceholderStructureGuardrail

__all__ = [
    "AmountGroundingGuardrail",
    "BaseGuardrail",
    "GuardrailPipeline",
    "GuardrailPipelineResult",
    "GuardrailResult",
    "GuardrailSeverity",
    "LetterContext",
    "PlaceholderStructureGuardrail",
]
