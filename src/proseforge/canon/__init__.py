"""Character canon parsing and story-bible handling."""

from proseforge.canon.bible import (
    CanonValidationResult,
    bible_to_canon,
    build_bible_prompt,
    validate_generated_bible,
    validate_story_canon_input,
)
from proseforge.canon.characters import format_character_canon, parse_characters

__all__ = [
    "CanonValidationResult",
    "bible_to_canon",
    "build_bible_prompt",
    "format_character_canon",
    "parse_characters",
    "validate_generated_bible",
    "validate_story_canon_input",
]
