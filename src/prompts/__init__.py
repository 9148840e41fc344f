"""Prompt templates for AI operations."""

from .classification import ANALYZE_RESPONSE_SYSTEM, ANALYZE_RESPONSE_USER
from .debt_parsing import PARSE_DEBT_NOTICE_SYSTEM, PARSE_DEBT_NOTICE_USER
from .negotiation import COUNTER_SECTION, GENERATE_LETTER_SYSTEM, GENERATE_LETTER_USER
from .opt_out import DETECT_OPT_OUT_SYSTEM, DETECT_OPT_OUT_USER

__all__ = [
    "ANALYZE_RESPONSE_SYSTEM",
    "ANALYZE_RESPONSE_USER",
    "PARSE_DEBT_NOTICE_SYSTEM",
    "PARSE_DEBT_NOTICE_USER",
    "COUNTER_SECTION",
    "GENERATE_LETTER_SYSTEM",
    "GENERATE_LETTER_USER",
    "DETECT_OPT_OUT_SYSTEM",
    "DETECT_OPT_OUT_USER",
]
