"""Parse-with-repair for JSON embedded in model output.

Models wrap JSON in code fences, prepend chatter, use smart quotes, leave
trailing commas and put raw newlines inside strings. :func:`parse_with_repair`
runs a fixed pipeline and reports how it got its value:

- :class:`Ok`: the cleaned text parsed as-is.
- :class:`RepairedOk`: it parsed only after mechanical repair.
- :class:`Fatal`: nothing parseable was found.

No exception escapes the pipeline; callers branch on the result type.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_OPEN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```")
_JSON_TAGS = re.compile(r"</?json>", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")

_SMART_QUOTES = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "‘": "'",
        "’": "'",
    }
)

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


@dataclass(frozen=True)
class Ok:
    value: dict[str, Any]


@dataclass(frozen=True)
class RepairedOk:
    """Parsed after repair; ``repairs`` names the fixes that were needed."""

    value: dict[str, Any]
    repairs: tuple[str, ...] = ()


@dataclass(frozen=True)
class Fatal:
    reason: str


ParseResult = Ok | RepairedOk | Fatal


# ---------------------------------------------------------------------------
# Cleanup steps
# ---------------------------------------------------------------------------


def strip_wrappers(text: str) -> str:
    """Remove code fences and ``<json>`` tags."""
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return _JSON_TAGS.sub("", text).strip()


def remove_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing brace or bracket.

    Applied until stable, since removing one can expose another.
    """
    previous = None
    while previous != text:
        previous = text
        text = _TRAILING_COMMA.sub(r"\1", text)
    return text


def extract_object(text: str) -> str | None:
    """Return the outermost ``{...}`` object, matching braces outside strings.

    If the object is never closed, everything from the first ``{`` is
    returned so that repair still gets a chance.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
    return text[start:]


def escape_control_characters(text: str) -> str:
    """Escape raw newlines, carriage returns and tabs inside JSON strings."""
    out: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if escaped:
            escaped = False
            out.append(char)
            continue
        if char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif in_string and char in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[char])
            continue
        out.append(char)
    return "".join(out)


def clean_json_text(raw: str) -> str | None:
    """Strip wrappers and slice out the JSON object."""
    return extract_object(strip_wrappers(raw))


def normalize_smart_quotes(text: str) -> str:
    """Replace typographic quotes with ASCII ones.

    Only useful when the model typeset the JSON syntax itself; dialogue
    quotes inside strings would be broken by it, so it runs last.
    """
    return text.translate(_SMART_QUOTES)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

REPAIR_STEPS = (
    ("trailing_commas", remove_trailing_commas),
    ("control_characters", escape_control_characters),
    ("smart_quotes", normalize_smart_quotes),
)


def _loads_object(text: str) -> dict[str, Any]:
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value


def parse_with_repair(raw: str) -> ParseResult:
    """Parse a JSON object out of raw model output.

    Repair steps are applied cumulatively in :data:`REPAIR_STEPS` order,
    with a parse attempt after each one that changed the text.

    Args:
        raw: Complete response text.

    Returns:
        Ok, RepairedOk or Fatal. Fatal carries the last parse error.
    """
    if not raw or not raw.strip():
        return Fatal("Empty response")

    candidate = clean_json_text(raw)
    if candidate is None:
        return Fatal("No JSON object found in response")

    try:
        return Ok(_loads_object(candidate))
    except ValueError as e:
        last_error = str(e)

    repairs: list[str] = []
    text = candidate
    for name, step in REPAIR_STEPS:
        repaired = step(text)
        if repaired == text:
            continue
        text = repaired
        repairs.append(name)
        try:
            return RepairedOk(_loads_object(text), tuple(repairs))
        except ValueError as e:
            last_error = str(e)

    if repairs:
        return Fatal(f"{last_error} (after repairing {', '.join(repairs)})")
    return Fatal(last_error)
