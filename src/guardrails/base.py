"""Base guardrail classes and types."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class GuardrailSeverity(Enum):
    """Severity levels for guardrail failures."""

    CRITICAL = "critical"  # Block output, must retry or fall back
    HIGH = "high"  # Block output
    MEDIUM = "medium"  # Warn, allow with flag
    LOW = "low"  # Log only


@dataclass
class LetterContext:
    """Facts a generated letter may state."""

    debt_amount: float
    allowed_amounts: List[float] = field(default_factory=list)
    required_placeholders: List[str] = field(default_factory=lambda: ["Your Name"])

    def is_allowed_amount(self, value: float, tolerance: float = 0.01) -> bool:
        candidates = [self.debt_amount, *self.allowed_amounts]
        return any(abs(value - candidate) <= tolerance for candidate in candidates)


@dataclass
class GuardrailResult:
    """Result of a guardrail validation check."""

    passed: bool
    guardrail_name: str
    severity: GuardrailSeverity
    message: str = ""
    details: dict = field(default_factory=dict)
    expected: Any = None
    found: Any = None

    @property
    def should_block(self) -> bool:
        """Whether this failure should block the output."""
        return not self.passed and self.severity in [
            GuardrailSeverity.CRITICAL,
            GuardrailSeverity.HIGH,
        ]

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "guardrail": self.guardrail_name,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
            "expected": str(self.expected) if self.expected else None,
            "found": str(self.found) if self.found else None,
        }


@dataclass
class GuardrailPipelineResult:
    """Result of running all guardrails in the pipeline."""

    all_passed: bool
    should_block: bool
    results: List[GuardrailResult]
    blocking_guardrails: List[str] = field(default_factory=list)

    @property
    def failures(self) -> List[GuardrailResult]:
        return [r for r in self.results if not r.passed]

    def to_dict(self) -> dict:
        return {
            "all_passed": self.all_passed,
            "should_block": self.should_block,
            "blocking_guardrails": self.blocking_guardrails,
            "results": [r.to_dict() for r in self.results],
        }


class BaseGuardrail(ABC):
    """Abstract base class for all guardrails."""

    def __init__(self, name: str, severity: GuardrailSeverity):
        self.name = name
        self.severity = severity
        self.logger = logging.getLogger(f"{__name__}.{name}")

    @abstractmethod
    def validate(self, output: str, context: LetterContext) -> List[GuardrailResult]:
        """
        Validate a generated letter body.

        Returns:
            List of GuardrailResult objects (one per validation check)
        """

    def _pass(self, message: str = "", details: Optional[dict] = None) -> GuardrailResult:
        return GuardrailResult(
            passed=True,
            guardrail_name=self.name,
            severity=self.severity,
            message=message or f"{self.name} validation passed",
            details=details or {},
        )

    def _fail(
        self,
        message: str,
        expected: Any = None,
        found: Any = None,
        details: Optional[dict] = None,
    ) -> GuardrailResult:
        self.logger.warning(f"Guardrail {self.name} failed: {message}")
        return GuardrailResult(
            passed=False,
            guardrail_name=self.name,
            severity=self.severity,
            message=message,
            details=details or {},
            expected=expected,
            found=found,
        )
