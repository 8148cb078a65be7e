"""Prose formatting and quality validation."""

from proseforge.prose.constraints import get_prose_quality_prompt
from proseforge.prose.formatting import (
    FormattingReport,
    format_prose,
    split_into_sentences,
    validate_formatting,
)
from proseforge.prose.patterns import DEFAULT_RUBRIC, ProseRubric
from proseforge.prose.validator import (
    ProseCheck,
    ProseValidation,
    analyze_paragraphs,
    check_scene_elements,
    count_exposition,
    detect_canon_leakage,
    detect_synopsis_writing,
    validate_opening,
    validate_prose,
)

__all__ = [
    "DEFAULT_RUBRIC",
    "FormattingReport",
    "ProseCheck",
    "ProseRubric",
    "ProseValidation",
    "analyze_paragraphs",
    "check_scene_elements",
    "count_exposition",
    "detect_canon_leakage",
    "detect_synopsis_writing",
    "format_prose",
    "get_prose_quality_prompt",
    "split_into_sentences",
    "validate_formatting",
    "validate_opening",
    "validate_prose",
]
