"""Story-bible input checks, prompt assembly and structural validation.

Bible validation is deliberately soft: failures are reported and logged,
never raised. An imperfect bible the writer can edit beats a blocked
generation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from proseforge.canon.characters import format_character_canon, parse_characters
from proseforge.models.canon import GeneratedStoryBible, StoryCanon, StoryCanonInput
from proseforge.observability.logging import get_logger
from proseforge.prompts import get_default_compiler

if TYPE_CHECKING:
    from proseforge.prompts import CompiledPrompt

log = get_logger(__name__)

# Extra characters tolerated before the bible is suspected of inventing cast
INVENTED_CHARACTER_SLACK = 2


@dataclass
class CanonValidationResult:
    """Errors block nothing on their own; callers decide what to do."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_story_canon_input(canon_input: StoryCanonInput) -> CanonValidationResult:
    """Check that the writer supplied the required canon material.

    Args:
        canon_input: Raw user input.

    Returns:
        Errors for missing whitepaper, characters, settings, title or genre;
        a warning when no outline was given.
    """
    result = CanonValidationResult()
    required = (
        (canon_input.core_whitepaper, "Core whitepaper is required"),
        (canon_input.characters_input, "Characters input is required"),
        (canon_input.settings_input, "Settings input is required"),
        (canon_input.metadata.title, "Book title is required"),
        (canon_input.metadata.genre, "Genre is required"),
    )
    for value, message in required:
        if not value.strip():
            result.errors.append(message)

    if not canon_input.story_outline.strip():
        result.warnings.append("Story outline is recommended for better structure")

    return result


def build_bible_prompt(canon_input: StoryCanonInput) -> CompiledPrompt:
    """Compile the bible-generation prompt from the writer's input."""
    metadata = canon_input.metadata
    target = f"{metadata.target_word_count:,} words" if metadata.target_word_count else "Not set"
    context = {
        "title": metadata.title,
        "genre": metadata.genre,
        "pov": metadata.pov or "Not set",
        "tone": metadata.tone or "Not set",
        "target_length": target,
        "characters_input": canon_input.characters_input.strip(),
        "character_canon": format_character_canon(parse_characters(canon_input.characters_input)),
        "settings_input": canon_input.settings_input.strip(),
        "whitepaper": canon_input.core_whitepaper.strip(),
        "outline_block": _outline_block(canon_input.story_outline),
        "constraints_block": _constraints_block(canon_input.constraints),
    }
    return get_default_compiler().compile("story_bible", context, strict=True)


def _outline_block(outline: str) -> str:
    if not outline.strip():
        return ""
    return "\n".join(
        [
            "STORY OUTLINE (STRUCTURAL GUIDANCE)",
            outline.strip(),
            "",
            "OUTLINE RULES:",
            "- Use as structural blueprint for volume/chapter intent",
            "- Extract act structure, pacing, major plot points",
            "- Respect the narrative flow described here",
        ]
    )


def _constraints_block(constraints: str) -> str:
    if not constraints.strip():
        return ""
    return f"AUTHOR CONSTRAINTS (copy into hard_constraints):\n{constraints.strip()}"


def validate_generated_bible(
    bible: GeneratedStoryBible, canon_input: StoryCanonInput
) -> CanonValidationResult:
    """Check that a generated bible incorporates the writer's input.

    A roster character counts as present when its full name and a profile
    name contain one another (case-insensitive).

    Args:
        bible: Parsed bible-generation output.
        canon_input: The input it was generated from.

    Returns:
        Structural errors and softer warnings.
    """
    result = CanonValidationResult()
    roster = parse_characters(canon_input.characters_input)
    profile_names = [p.full_name.lower() for p in bible.character_profiles if p.full_name]

    for character in roster:
        wanted = character.full_name.lower()
        if not any(wanted in name or name in wanted for name in profile_names):
            result.errors.append(
                f'Character "{character.full_name}" from Characters input is missing in Story Bible'
            )

    if len(bible.character_profiles) > len(roster) + INVENTED_CHARACTER_SLACK:
        result.warnings.append(
            "Story Bible contains significantly more characters than provided in Characters input"
        )

    if not bible.world_settings:
        result.errors.append(
            "No world settings found in Story Bible despite Settings input being provided"
        )

    if not bible.themes:
        result.errors.append("No themes extracted in Story Bible")

    genre = canon_input.metadata.genre.strip().lower()
    if genre and genre != "other" and genre not in bible.model_dump_json().lower():
        result.warnings.append(
            f'Genre "{canon_input.metadata.genre}" not clearly reflected in Story Bible'
        )

    if not bible.core_premise.strip():
        result.errors.append("Core premise is missing")

    if not bible.hard_constraints:
        result.warnings.append("No hard constraints defined - consider adding story rules")

    if result.errors:
        log.error("bible_validation_failed", errors=result.errors, warnings=result.warnings)
    elif result.warnings:
        log.warning("bible_validation_warnings", warnings=result.warnings)

    return result


def bible_to_canon(bible: GeneratedStoryBible, canon_input: StoryCanonInput) -> StoryCanon:
    """Lock a generated bible into the canon every generation reads.

    Args:
        bible: Generated (possibly best-effort) bible.
        canon_input: The writer's raw input.

    Returns:
        A locked StoryCanon.
    """
    return StoryCanon(
        whitepaper=canon_input.core_whitepaper,
        characters=parse_characters(canon_input.characters_input),
        settings=canon_input.settings_input,
        core_premise=bible.core_premise,
        world_rules=list(bible.world_rules),
        technology_magic_rules=list(bible.technology_magic_rules),
        hard_constraints=list(bible.hard_constraints),
        soft_guidelines=list(bible.soft_guidelines),
        themes=list(bible.themes),
        factions=list(bible.factions),
        timeline=list(bible.timeline),
        character_profiles=list(bible.character_profiles),
        world_settings=list(bible.world_settings),
        metadata=canon_input.metadata,
        locked=True,
    )
