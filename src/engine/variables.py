"""
``{{ name }}`` template variables in letter subjects and bodies.

Names are case-sensitive and trimmed; anything except ``}`` may appear
inside the braces, so ``{{ Your Name }}`` and ``{{ user-name }}`` are both
valid. Substitution only touches names present in the supplied values.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

VARIABLE_PATTERN = re.compile(r"\{\{\s*([^}]+)\s*\}\}")


def extract_variables(text: str) -> List[str]:
    """Unique variable names in order of first appearance."""
    seen: Dict[str, None] = {}
    for match in VARIABLE_PATTERN.finditer(text or ""):
        name = match.group(1).strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def substitute_variables(text: str, values: Mapping[str, str]) -> str:
    """Replace every occurrence of each named variable; unknown names stay verbatim."""
    result = text
    for name, value in values.items():
        pattern = re.compile(r"\{\{\s*" + re.escape(name) + r"\s*\}\}")
        # Callable replacement keeps backslashes in values literal
        result = pattern.sub(lambda _m, v=value: v, result)
    return result


def reconcile_variables(
    current: Mapping[str, str], new_text: str, other_text: str = ""
) -> Dict[str, str]:
    """
    Bring a variable map in line with edited text.

    Names found in ``new_text`` or ``other_text`` are kept with their values,
    new names start empty, and names no longer referenced are dropped.
    Ordering follows first appearance in the combined text.
    """
    names = extract_variables(f"{new_text} {other_text}")
    return {name: current.get(name, "") for name in names}


@dataclass
class RenderedLetter:
    subject: str
    body: str
    unfilled: List[str] = field(default_factory=list)

    @property
    def has_unfilled(self) -> bool:
        return bool(self.unfilled)


def render_letter(subject: str, body: str, values: Mapping[str, str]) -> RenderedLetter:
    """Fill a letter with the non-blank values and report what is still empty."""
    filled = {name: value for name, value in values.items() if value and value.strip()}
    unfilled = [name for name in extract_variables(f"{subject} {body}") if name not in filled]
    return RenderedLetter(
        subject=substitute_variables(subject, filled),
        body=substitute_variables(body, filled),
        unfilled=unfilled,
    )
