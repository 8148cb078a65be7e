"""Character roster parsing and the canonical-names prompt block.

A roster is free text, one character per line, in any of these shapes::

    Kate Andrea Clauzure – protagonist, a transfer student
    Kate Andrea Clauzure (Kat) - protagonist
    Kate Andrea Clauzure: protagonist
    Kate Andrea Clauzure

Only names with at least two words are accepted; a lone first name is too
ambiguous to enforce as canon.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from proseforge.models.canon import CharacterRecord


class NamePattern(NamedTuple):
    """A roster-line pattern and which groups carry which fields.

    Group numbers of 0 mean the pattern does not capture that field.
    """

    regex: re.Pattern[str]
    nickname_group: int
    description_group: int


# Tried in order; first match whose name has two or more words wins.
NAME_PATTERNS: tuple[NamePattern, ...] = (
    # Name (nickname) – description
    NamePattern(re.compile(r"^([^–\-:]+?)\s*(?:\(([^)]+)\))?\s*[–\-:]\s*(.+)$"), 2, 3),
    # Name – description
    NamePattern(re.compile(r"^([^–\-:]+?)\s*[–\-:]\s*(.+)$"), 0, 2),
    # Bare multi-word capitalized name
    NamePattern(re.compile(r"^([A-Z][a-zA-Z\s]+(?:[A-Z][a-zA-Z]+)+)"), 0, 0),
)

_FALLBACK_NAME = re.compile(r"^[A-Z][a-zA-Z\s]+$")
_FALLBACK_MAX_WORDS = 4
_HEADER_PREFIX = "character"


def _match_line(line: str) -> CharacterRecord | None:
    for pattern in NAME_PATTERNS:
        match = pattern.regex.match(line)
        if not match:
            continue

        full_name = match.group(1).strip()
        name_parts = full_name.split()
        if len(name_parts) < 2:
            continue

        nickname = match.group(pattern.nickname_group) if pattern.nickname_group else None
        description = (
            match.group(pattern.description_group) if pattern.description_group else None
        )
        return CharacterRecord(
            full_name=full_name,
            short_name=nickname.strip() if nickname else name_parts[0],
            description=description.strip() if description else None,
        )
    return None


def _fallback_line(line: str) -> CharacterRecord | None:
    if not line[0].isupper():
        return None
    words = line.split()
    if len(words) < 2:
        return None
    candidate = " ".join(words[:_FALLBACK_MAX_WORDS])
    if not _FALLBACK_NAME.match(candidate):
        return None
    return CharacterRecord(full_name=candidate, short_name=words[0])


def parse_characters(characters_text: str) -> list[CharacterRecord]:
    """Parse a free-text roster into canonical name records.

    Blank lines and header lines (starting with "character", any case) are
    skipped. ``short_name`` is the parenthesized nickname when present,
    otherwise the first word of the full name.

    Args:
        characters_text: Roster text, one character per line.

    Returns:
        Records in roster order. Lines that do not yield a two-word name
        are dropped.
    """
    if not characters_text or not characters_text.strip():
        return []

    characters: list[CharacterRecord] = []
    for raw_line in characters_text.splitlines():
        line = raw_line.strip()
        if not line or line.lower().startswith(_HEADER_PREFIX):
            continue

        record = _match_line(line) or _fallback_line(line)
        if record is not None:
            characters.append(record)

    return characters


def format_character_canon(characters: list[CharacterRecord]) -> str:
    """Render the canonical-names enforcement block for a prompt.

    Args:
        characters: Parsed roster.

    Returns:
        Prompt text, or an empty string for an empty roster.
    """
    if not characters:
        return ""

    lines = []
    for char in characters:
        parts = [f"**{char.full_name}**"]
        if char.short_name != char.full_name.split()[0]:
            parts.append(f'(nickname: "{char.short_name}")')
        if char.description:
            parts.append(f"- {char.description}")
        lines.append(" ".join(parts))

    example = characters[0]
    return "\n".join(
        [
            "CHARACTER CANON (IMMUTABLE)",
            "The following character names are CANONICAL and MUST be used exactly as written:",
            "",
            *lines,
            "",
            "NAMING RULES (MANDATORY):",
            "- First mention: use the FULL NAME exactly as shown above",
            "- Later mentions: use the nickname if one is given, otherwise the first name only",
            "- NEVER alter, shorten, or change surnames",
            "- NEVER invent new surnames or middle names",
            "- NEVER use common name substitutions",
            "",
            "Example:",
            f'- First mention: "{example.full_name} walked into the room."',
            f'- Later: "{example.short_name} smiled."',
        ]
    )
