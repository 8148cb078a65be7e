"""Generation pipeline: completion calls, parse-with-repair, retries and memory."""

from proseforge.generation.canon_check import check_canon_compliance
from proseforge.generation.errors import (
    GenerationError,
    GenerationFailedError,
    MalformedOutputError,
    PageLockedError,
    WordCountViolation,
)
from proseforge.generation.json_repair import Fatal, Ok, ParseResult, RepairedOk, parse_with_repair
from proseforge.generation.memory import merge_state_delta, update_act_memory
from proseforge.generation.orchestrator import (
    BibleResult,
    ChapterResult,
    GenerationOrchestrator,
    GenerationState,
    PageResult,
)
from proseforge.generation.outline import (
    OutlinedChapter,
    StoryOutline,
    generate_outline,
    parse_story_outline,
)
from proseforge.generation.pages import (
    count_words,
    delete_page,
    ensure_regenerable,
    lock_previous_pages,
    recompute_chapter_stats,
)

__all__ = [
    "BibleResult",
    "ChapterResult",
    "Fatal",
    "GenerationError",
    "GenerationFailedError",
    "GenerationOrchestrator",
    "GenerationState",
    "MalformedOutputError",
    "Ok",
    "OutlinedChapter",
    "PageLockedError",
    "PageResult",
    "ParseResult",
    "RepairedOk",
    "StoryOutline",
    "WordCountViolation",
    "check_canon_compliance",
    "count_words",
    "delete_page",
    "ensure_regenerable",
    "generate_outline",
    "lock_previous_pages",
    "merge_state_delta",
    "parse_story_outline",
    "parse_with_repair",
    "recompute_chapter_stats",
    "update_act_memory",
]
