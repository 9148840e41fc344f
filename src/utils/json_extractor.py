"""
Lenient JSON extraction from LLM output.

Providers with structured output return clean JSON, but the plain
``json_mode`` path can still wrap the object in markdown fences, prefix it
with prose or leave trailing commas behind.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


class JSONExtractionError(Exception):
    """Raised when no JSON object could be recovered from the content."""

    def __init__(self, message: str, raw_content: Optional[str], attempts: List[str]):
        super().__init__(message)
        self.raw_content = raw_content
        self.attempts = attempts


def extract_json(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse the first JSON object found in ``content``.

    Candidates are tried in order: the raw text, the text with a markdown
    fence removed, the first decodable ``{...}`` span, and finally that text
    with trailing commas dropped.

    Raises:
        JSONExtractionError: if none of the candidates decodes to a dict
    """
    if not content or not content.strip():
        raise JSONExtractionError("Empty content received from LLM", content, ["empty content"])

    attempts: List[str] = []
    text = content.lstrip("\ufeff").strip()

    fence = _FENCE_RE.match(text)
    unfenced = fence.group(1).strip() if fence else text

    candidates = [("direct", text)]
    if unfenced != text:
        candidates.append(("unfenced", unfenced))

    for label, candidate in candidates:
        parsed = _loads_dict(candidate, label, attempts)
        if parsed is not None:
            return parsed

    embedded = _first_object(unfenced, attempts)
    if embedded is not None:
        return embedded

    cleaned = _TRAILING_COMMA_RE.sub(r"\1", unfenced)
    if cleaned != unfenced:
        parsed = _loads_dict(cleaned, "trailing_commas", attempts) or _first_object(
            cleaned, attempts
        )
        if parsed is not None:
            return parsed

    logger.error("Failed to extract JSON after %d attempts: %r", len(attempts), content[:200])
    raise JSONExtractionError(
        "Failed to parse JSON from LLM response after all extraction attempts",
        content,
        attempts,
    )


def _loads_dict(candidate: str, label: str, attempts: List[str]) -> Optional[Dict[str, Any]]:
    try:
        result = json.loads(candidate)
    except json.JSONDecodeError as e:
        attempts.append(f"{label}: {e}")
        return None
    if not isinstance(result, dict):
        attempts.append(f"{label}: got {type(result).__name__}, not dict")
        return None
    return result


def _first_object(text: str, attempts: List[str]) -> Optional[Dict[str, Any]]:
    """Decode the first ``{`` that starts a complete JSON object."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            result, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(result, dict):
            logger.debug("JSON object found at offset %d", start)
            return result
        start = text.find("{", start + 1)
    attempts.append("embedded: no decodable object")
    return None
