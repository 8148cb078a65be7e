"""Story outlines: act and chapter structure built from the canon.

Two entry points:

- :func:`parse_story_outline` expands the writer's outline, or the canon
  alone when there is none, into acts that hold chapters.
- :func:`generate_outline` asks for a flat chapter-by-chapter outline in a
  three- or five-act shape.

Both fail soft. A response that cannot be parsed even after repair yields
a placeholder outline with ``parsed=False`` that the writer can edit.
Provider failures beyond the retry budget still raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, TypeVar, cast, get_args

from pydantic import BaseModel, ValidationError

from proseforge.config import GenerationConfig
from proseforge.context.layers import format_global_layer
from proseforge.generation.completion import ProviderBudget, complete_within
from proseforge.generation.json_repair import Fatal, RepairedOk, parse_with_repair
from proseforge.models.generation import (
    OutlineChapterDraft,
    OutlineDraft,
    StoryStructureDraft,
    StructureActDraft,
)
from proseforge.models.structure import ActContext, ChapterOutline, NarrativePurpose, Pacing
from proseforge.observability.logging import get_logger
from proseforge.prompts import get_default_compiler

if TYPE_CHECKING:
    from proseforge.models.canon import StoryCanon
    from proseforge.prompts import CompiledPrompt
    from proseforge.providers.base import TextCompletionService

log = get_logger(__name__)

ActStructure = Literal["three-act", "five-act"]

DEFAULT_TARGET_CHAPTERS = 40
PLACEHOLDER_SUMMARY = "Placeholder summary (outline parsing failed)"
PLACEHOLDER_BEATS = ("Setup", "Development", "Climax")
GENERATED_OUTLINE_TEXT = "Generated from story canon"

_DraftT = TypeVar("_DraftT", bound=BaseModel)


@dataclass
class OutlinedChapter:
    """A chapter slot produced by an outline.

    Attributes:
        chapter_number: Position in the volume, counted from 1.
        outline: Binding outline for the chapter.
        act_number: Act the chapter belongs to, if the outline had acts.
    """

    chapter_number: int
    outline: ChapterOutline
    act_number: int | None = None


@dataclass
class StoryOutline:
    """Acts and chapters from one outline call."""

    acts: list[ActContext] = field(default_factory=list)
    chapters: list[OutlinedChapter] = field(default_factory=list)
    parsed: bool = True

    @property
    def chapter_outlines(self) -> list[ChapterOutline]:
        return [chapter.outline for chapter in self.chapters]

    def act(self, act_number: int | None) -> ActContext | None:
        return next((a for a in self.acts if a.act_number == act_number), None)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_response(raw: str, model: type[_DraftT], kind: str) -> _DraftT | None:
    parsed = parse_with_repair(raw)
    if isinstance(parsed, Fatal):
        log.error("outline_json_invalid", kind=kind, reason=parsed.reason)
        return None
    if isinstance(parsed, RepairedOk):
        log.info("outline_json_repaired", kind=kind, repairs=list(parsed.repairs))
    try:
        return model.model_validate(parsed.value)
    except ValidationError as e:
        log.error("outline_shape_invalid", kind=kind, errors=e.error_count())
        return None


def _normalized(value: str) -> str:
    return value.strip().lower().replace("_", "-").replace(" ", "-")


def _purpose(value: str) -> NarrativePurpose:
    purpose = _normalized(value)
    if purpose in get_args(NarrativePurpose):
        return cast("NarrativePurpose", purpose)
    return "setup"


def _pacing(value: str) -> Pacing:
    pacing = _normalized(value)
    if pacing in get_args(Pacing):
        return cast("Pacing", pacing)
    return "medium"


def _act_context(draft: StructureActDraft, act_number: int) -> ActContext:
    return ActContext(
        act_number=act_number,
        title=draft.title,
        narrative_purpose=_purpose(draft.narrative_purpose),
        pacing=_pacing(draft.pacing),
        emotional_pressure=min(max(draft.emotional_pressure, 1), 10),
    )


def structure_to_outline(draft: StoryStructureDraft, raw_outline: str = "") -> StoryOutline:
    """Convert a parsed structure into numbered acts and chapters.

    Acts and chapters are numbered in response order, chapters counting
    on across act boundaries, whatever numbers the model wrote.
    """
    outline = StoryOutline()
    fallback_text = "" if raw_outline.strip() else GENERATED_OUTLINE_TEXT
    for act_index, act_draft in enumerate(draft.acts, start=1):
        outline.acts.append(_act_context(act_draft, act_index))
        for chapter_draft in act_draft.chapters:
            number = len(outline.chapters) + 1
            chapter = ChapterOutline(
                title=chapter_draft.title or f"Chapter {number}",
                summary=chapter_draft.summary,
                plot_beats=chapter_draft.plot_beats,
                emotional_intent=chapter_draft.emotional_intent,
                character_focus=chapter_draft.character_focus,
                pacing_hint=chapter_draft.pacing_hint,
                raw_outline_text=chapter_draft.raw_outline_text or fallback_text,
            )
            outline.chapters.append(OutlinedChapter(number, chapter, act_index))
    return outline


def _outline_chapter(draft: OutlineChapterDraft, number: int) -> ChapterOutline:
    notes = (
        ("Conflict", draft.conflict),
        ("Relationship", draft.relationship_movement),
        ("Hook", draft.hook_for_next),
    )
    return ChapterOutline(
        title=draft.title or f"Chapter {number}",
        summary=draft.summary,
        plot_beats=draft.beats,
        emotional_intent=draft.emotional_goal,
        character_focus=draft.character_arcs,
        raw_outline_text="\n".join(f"{label}: {text}" for label, text in notes if text),
    )


def placeholder_outline(target_chapters: int, raw_outline: str = "") -> StoryOutline:
    """Editable stand-in used when an outline response is unreadable."""
    chapters = [
        OutlinedChapter(
            number,
            ChapterOutline(
                title=f"Chapter {number}",
                summary=PLACEHOLDER_SUMMARY,
                plot_beats=list(PLACEHOLDER_BEATS),
                raw_outline_text=raw_outline.strip(),
            ),
        )
        for number in range(1, target_chapters + 1)
    ]
    return StoryOutline(chapters=chapters, parsed=False)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _metadata_context(canon: StoryCanon) -> dict[str, str]:
    metadata = canon.metadata
    return {
        "global_layer": format_global_layer(canon),
        "genre": metadata.genre or "Not specified",
        "tone": metadata.tone or "Not specified",
        "pov": metadata.pov or "Not specified",
    }


def _outline_block(raw_outline: str) -> str:
    if not raw_outline.strip():
        return "\n".join(
            [
                "NO OUTLINE PROVIDED. Build the structure from the canon alone:",
                "- 4-6 acts following a natural story progression",
                "- 5-12 chapters per act",
                "- infer plot progression from world rules, themes and genre",
            ]
        )
    return "\n".join(
        [
            "WRITER OUTLINE:",
            raw_outline.strip(),
            "",
            "- Expand this outline into acts and chapters",
            "- Infer act boundaries from the narrative flow when they are not explicit",
            "- Keep the writer's chapter descriptions as rawOutlineText",
        ]
    )


def build_structure_prompt(
    raw_outline: str, canon: StoryCanon, target_chapters: int = DEFAULT_TARGET_CHAPTERS
) -> CompiledPrompt:
    context = {
        **_metadata_context(canon),
        "outline_block": _outline_block(raw_outline),
        "target_chapters": target_chapters,
    }
    return get_default_compiler().compile("story_structure", context, strict=True)


def build_outline_prompt(
    canon: StoryCanon,
    act_structure: ActStructure = "three-act",
    target_chapters: int = DEFAULT_TARGET_CHAPTERS,
) -> CompiledPrompt:
    context = {
        **_metadata_context(canon),
        "act_structure": act_structure,
        "target_chapters": target_chapters,
    }
    return get_default_compiler().compile("outline", context, strict=True)


async def _complete_outline(
    service: TextCompletionService, prompt: CompiledPrompt, config: GenerationConfig
) -> str:
    return await complete_within(
        service,
        prompt.system,
        prompt.user,
        max_tokens=config.outline_max_tokens,
        temperature=config.outline_temperature,
        timeout=config.timeout_seconds,
        budget=ProviderBudget(retries=config.provider_retries),
    )


async def parse_story_outline(
    service: TextCompletionService,
    raw_outline: str,
    canon: StoryCanon,
    *,
    target_chapters: int = DEFAULT_TARGET_CHAPTERS,
    config: GenerationConfig | None = None,
) -> StoryOutline:
    """Expand a writer's outline into acts and chapters.

    Args:
        service: Completion backend.
        raw_outline: The writer's outline. Blank means build from the canon.
        canon: Locked story canon.
        target_chapters: Chapter count to aim for, and the size of the
            placeholder outline.
        config: Timeout, retry budget and sampling settings.

    Returns:
        The parsed outline, or a placeholder with ``parsed=False``.

    Raises:
        GenerationFailedError: If the provider failed beyond its retry budget.
    """
    config = config or GenerationConfig()
    prompt = build_structure_prompt(raw_outline, canon, target_chapters)
    raw = await _complete_outline(service, prompt, config)

    draft = _parse_response(raw, StoryStructureDraft, "structure")
    if draft is None:
        return placeholder_outline(target_chapters, raw_outline)

    outline = structure_to_outline(draft, raw_outline)
    log.info("outline_parsed", acts=len(outline.acts), chapters=len(outline.chapters))
    return outline


async def generate_outline(
    service: TextCompletionService,
    canon: StoryCanon,
    *,
    act_structure: ActStructure = "three-act",
    target_chapters: int = DEFAULT_TARGET_CHAPTERS,
    config: GenerationConfig | None = None,
) -> StoryOutline:
    """Generate a chapter-by-chapter outline from the canon alone.

    Returns:
        Chapters without acts, or a placeholder with ``parsed=False``.

    Raises:
        GenerationFailedError: If the provider failed beyond its retry budget.
    """
    config = config or GenerationConfig()
    prompt = build_outline_prompt(canon, act_structure, target_chapters)
    raw = await _complete_outline(service, prompt, config)

    draft = _parse_response(raw, OutlineDraft, "outline")
    if draft is None:
        return placeholder_outline(target_chapters)

    chapters = [
        OutlinedChapter(number, _outline_chapter(chapter, number))
        for number, chapter in enumerate(draft.chapters, start=1)
    ]
    log.info("outline_generated", chapters=len(chapters), requested=target_chapters)
    return StoryOutline(chapters=chapters)
