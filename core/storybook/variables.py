"""
Variable detection and substitution.

Text elements reference variables with a parenthesised token, e.g.
"Bonjour (nom), tu as (âge) ans". Image elements name their single variable
explicitly through `variable_name`.
"""

import re
from typing import Any, Iterable, List, Mapping

from .models import EditorElement, ElementType

VARIABLE_PATTERN = re.compile(r"\(([^)]+)\)")

# Letters only (French accents included); excludes narrative asides
_VARIABLE_NAME = re.compile(r"^[a-zA-ZàâäéèêëïîôöùûüÿñçÀÂÄÉÈÊËÏÎÔÖÙÛÜŸÇ]+$")
_MAX_NAME_LENGTH = 20
_FORBIDDEN = (" ", "-", "®")


def detect_variables(text: str) -> List[str]:
    """Inner strings of every `(...)` group, left to right, repeats included."""
    if not text:
        return []
    return VARIABLE_PATTERN.findall(text)


def is_variable_name(token: str) -> bool:
    token = token.strip()
    if not token or len(token) >= _MAX_NAME_LENGTH:
        return False
    if any(ch in token for ch in _FORBIDDEN):
        return False
    return bool(_VARIABLE_NAME.match(token))


def parse_variables_from_text(text: str) -> List[str]:
    """Deduplicated variable names in `text` that pass the strict name filter."""
    found: List[str] = []
    for candidate in detect_variables(text):
        name = candidate.strip()
        if is_variable_name(name) and name not in found:
            found.append(name)
    return found


def parse_variables_from_elements(elements: Iterable[EditorElement]) -> List[str]:
    """
    Template-level variable list, order-preserving and deduplicated.

    Text elements contribute the strictly-filtered tokens of their content;
    image elements contribute their `variable_name` verbatim.
    """
    result: List[str] = []
    for element in elements:
        if element.type == ElementType.TEXT and element.text_content:
            names = parse_variables_from_text(element.text_content)
        elif element.type == ElementType.IMAGE and element.variable_name:
            names = [element.variable_name]
        else:
            continue
        for name in names:
            if name not in result:
                result.append(name)
    return result


def substitute_variables(text: str, values: Mapping[str, Any]) -> str:
    """
    Replace every `(name)` whose name is present in `values`.

    Unknown tokens are left literally in place so missing values stay
    visible in the rendered page.
    """
    if not text:
        return text or ""

    def _replace(match: "re.Match") -> str:
        name = match.group(1).strip()
        if name in values and values[name] is not None:
            return str(values[name])
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, text)


def merge_default_values(elements: Iterable[EditorElement], variables: Mapping[str, Any]) -> dict:
    """Element default values merged under the supplied variables (supplied wins)."""
    merged: dict = {}
    for element in elements:
        if element.default_values:
            merged.update(element.default_values)
    merged.update(variables)
    return merged
