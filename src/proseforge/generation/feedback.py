"""Corrective blocks appended to the prompt for a retry.

A retry always reuses the original user prompt; only the corrective block
changes, and it is built from the previous attempt's outcome alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from proseforge.prose.validator import ProseValidation

SEPARATOR = "=" * 61

JSON_RULES = (
    "Return ONLY a JSON object. No code fences, no commentary before or after it.",
    'Escape every double quote inside string values as \\".',
    "Encode line breaks inside strings as \\n. Never put a raw line break inside a string.",
    "No trailing commas after the last item of an object or array.",
)


def invalid_json_feedback(error: str) -> str:
    """Corrective block after an attempt whose JSON could not be parsed."""
    return "\n".join(
        [
            SEPARATOR,
            "PREVIOUS ATTEMPT HAD INVALID JSON",
            SEPARATOR,
            f"Parser error: {error}",
            "",
            "JSON RULES:",
            *(f"- {rule}" for rule in JSON_RULES),
        ]
    )


def prose_feedback(validation: ProseValidation) -> str:
    """Corrective block naming each failed prose check.

    Issues come first; warnings are included because they also cost points.
    """
    lines = [
        SEPARATOR,
        "PREVIOUS ATTEMPT FAILED PROSE VALIDATION",
        SEPARATOR,
        f"Score: {validation.score}/100",
    ]
    if validation.regeneration_reason:
        lines.append(f"Reason: {validation.regeneration_reason}")
    lines.extend(["", "Issues detected:"])
    lines.extend(f"- Fix: {issue}" for issue in validation.issues)
    lines.extend(f"- Improve: {warning}" for warning in validation.warnings)
    lines.extend(
        [
            "",
            "REMINDER:",
            "- Open inside a scene already in motion; no waking up, no exposition-first openings",
            "- Short paragraphs (1-3 sentences) separated by blank lines",
            "- Show through action, dialogue, sensory detail and interiority; do not summarize",
            "- Never mention the story bible, canon, world rules or any other planning material",
        ]
    )
    return "\n".join(lines)


def with_feedback(user_prompt: str, feedback: str | None) -> str:
    """Append a corrective block to the original user prompt."""
    if not feedback:
        return user_prompt
    return f"{user_prompt}\n\n{feedback}"
