"""Layered prompt construction for chapter and page generation.

The assembler is a pure prompt builder: it reads canon, memory caches and
the continuity window, and produces a system + user prompt pair. It never
calls a completion service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from proseforge.config import MAX_CONTINUITY_WINDOW
from proseforge.context.layers import (
    format_act_layer,
    format_chapter_local_layer,
    format_global_layer,
    format_page_local_layer,
    format_volume_layer,
)
from proseforge.context.policy import (
    PACING_GUIDANCE,
    PACING_SPEED,
    ending_policy,
    outline_enforcement,
    page_beat_plan,
    volume_outline_boundary,
)
from proseforge.observability.logging import get_logger
from proseforge.prompts import get_default_compiler
from proseforge.prose.constraints import get_prose_quality_prompt

if TYPE_CHECKING:
    from proseforge.context.requests import ChapterRequest, PageRequest
    from proseforge.models.canon import StoryCanon
    from proseforge.prompts import CompiledPrompt, PromptCompiler

log = get_logger(__name__)

DEFAULT_CONTINUITY_WINDOW = MAX_CONTINUITY_WINDOW
DEFAULT_MIN_PAGE_WORDS = 600
DEFAULT_MAX_PAGE_WORDS = 1200


class ContextAssembler:
    """Build the four-layer prompt for a generation request.

    Attributes:
        canon: Locked story canon shared by every request.
        continuity_window: Prior pages included verbatim for page prompts.
    """

    def __init__(
        self,
        canon: StoryCanon,
        *,
        continuity_window: int = DEFAULT_CONTINUITY_WINDOW,
        min_page_words: int = DEFAULT_MIN_PAGE_WORDS,
        max_page_words: int = DEFAULT_MAX_PAGE_WORDS,
        compiler: PromptCompiler | None = None,
    ) -> None:
        if not canon.locked:
            log.warning("canon_not_locked", title=canon.metadata.title)
        self.canon = canon
        self.continuity_window = continuity_window
        self.min_page_words = min_page_words
        self.max_page_words = max_page_words
        self._compiler = compiler or get_default_compiler()

    def global_layer(self) -> str:
        return format_global_layer(self.canon)

    def build_chapter_prompt(self, request: ChapterRequest) -> CompiledPrompt:
        """Assemble the chapter prompt.

        Args:
            request: Chapter, volume, act, memory and continuity inputs.

        Returns:
            Compiled system + user prompt.
        """
        volume, chapter, act = request.volume, request.chapter, request.act
        structure = request.structure
        global_number = chapter.global_chapter_number or chapter.chapter_number
        pacing = (request.outline.pacing_hint if request.outline else "") or act.pacing

        directive = [
            f"Write Chapter {chapter.chapter_number} (Global #{global_number})",
        ]
        title = (request.outline.title if request.outline else "") or chapter.title
        if title:
            directive.append(f'Title: "{title}"')
        if chapter.emotional_beat:
            directive.append(f"Emotional Beat: {chapter.emotional_beat}")
        if chapter.relationship_shift:
            directive.append(f"Relationship Shift: {chapter.relationship_shift}")
        if chapter.scene_goal:
            directive.append(f"Scene Goal: {chapter.scene_goal}")
        if chapter.outline and request.outline is None:
            directive.append(f"Outline (binding, cover every beat, add none): {chapter.outline}")

        context = {
            "volume_number": volume.volume_number,
            "volume_title": volume.title,
            "act_number": act.act_number,
            "narrative_purpose": act.narrative_purpose,
            "pacing": pacing,
            "pacing_speed": PACING_SPEED.get(pacing, pacing),
            "pacing_guidance": "\n".join(f'- "{k}": {v}' for k, v in PACING_GUIDANCE.items()),
            "emotional_pressure": act.emotional_pressure,
            "development_focus": act.character_development_focus or "General progression",
            "volume_theme": volume.theme or "Not specified",
            "chapter_number": chapter.chapter_number,
            "global_chapter_number": global_number,
            "target_words": chapter.target_word_count,
            "prose_quality": get_prose_quality_prompt(),
            "global_layer": self.global_layer(),
            "volume_layer": format_volume_layer(volume, request.volume_memory),
            "act_layer": format_act_layer(act, request.act_memory),
            "local_layer": format_chapter_local_layer(request.previous_chapters),
            "volume_boundary": volume_outline_boundary(volume.outline),
            "outline_block": outline_enforcement(request.outline, act) if request.outline else "",
            "ending_policy": ending_policy(
                "chapter",
                is_final_unit=structure.is_last_chapter,
                is_last_chapter=structure.is_last_chapter,
                is_last_volume=structure.is_last_volume,
            ),
            "chapter_directive": "\n".join(directive),
        }
        prompt = self._compiler.compile("chapter", context, strict=True)
        log.debug(
            "chapter_prompt_built",
            volume=volume.volume_number,
            chapter=chapter.chapter_number,
            previous_chapters=len(request.previous_chapters),
            chars=len(prompt.system) + len(prompt.user),
        )
        return prompt

    def build_page_prompt(self, request: PageRequest) -> CompiledPrompt:
        """Assemble the page prompt.

        Args:
            request: Page position, chapter, volume and prior pages.

        Returns:
            Compiled system + user prompt.
        """
        volume, chapter, structure = request.volume, request.chapter, request.structure
        total = request.total_pages

        if request.is_first_page:
            position = "This is the FIRST page. Open inside a scene already in motion."
        elif request.is_final_page:
            position = "This is the FINAL page of the chapter. Deliver the chapter climax."
        else:
            position = (
                "This is a MIDDLE page. Continue from the previous page "
                "and advance 1-2 micro-beats."
            )

        chapter_outline = ""
        if chapter.outline.strip():
            chapter_outline = "\n".join(
                [
                    "CHAPTER OUTLINE (BINDING)",
                    chapter.outline.strip(),
                    "",
                    f"This outline is spread over {total} pages:",
                    page_beat_plan(request.page_number, total),
                    "",
                    f"You are writing page {request.page_number}. "
                    "Cover ONLY the beats assigned to this page. Invent no beats.",
                ]
            )

        directive = [
            f"Chapter: {chapter.title or f'Chapter {chapter.chapter_number}'}",
        ]
        if chapter.emotional_beat:
            directive.append(f"Emotional Beat: {chapter.emotional_beat}")
        if chapter.scene_goal:
            directive.append(f"Scene Goal: {chapter.scene_goal}")

        context = {
            "page_number": request.page_number,
            "total_pages": total,
            "min_words": self.min_page_words,
            "max_words": self.max_page_words,
            "structure_block": self._structure_block(request),
            "prose_quality": get_prose_quality_prompt(),
            "global_layer": self.global_layer(),
            "volume_layer": format_volume_layer(volume, request.volume_memory),
            "act_layer": format_act_layer(request.act, request.act_memory) if request.act else "",
            "local_layer": format_page_local_layer(request.previous_pages, self.continuity_window),
            "volume_boundary": volume_outline_boundary(volume.outline),
            "chapter_outline": chapter_outline,
            "ending_policy": ending_policy(
                "page",
                is_final_unit=request.is_final_page,
                is_last_chapter=structure.is_last_chapter,
                is_last_volume=structure.is_last_volume,
            ),
            "page_position": position,
            "chapter_number": chapter.chapter_number,
            "page_directive": "\n".join(directive),
        }
        prompt = self._compiler.compile("page", context, strict=True)
        log.debug(
            "page_prompt_built",
            chapter=chapter.chapter_number,
            page=request.page_number,
            previous_pages=len(request.previous_pages),
            chars=len(prompt.system) + len(prompt.user),
        )
        return prompt

    @staticmethod
    def _structure_block(request: PageRequest) -> str:
        structure, volume, chapter = request.structure, request.volume, request.chapter
        total_volumes = structure.total_volumes or "?"
        lines = [f"- Volume {volume.volume_number} of {total_volumes}"]
        if structure.current_act_number is not None:
            lines.append(
                f"- Act {structure.current_act_number} of {structure.total_acts_in_volume or '?'}"
            )
        total_chapters = structure.total_chapters_in_volume or "?"
        title = chapter.title or "Untitled"
        lines.append(f'- Chapter {chapter.chapter_number} of {total_chapters}: "{title}"')
        lines.append(f"- Page {request.page_number} of {request.total_pages}")
        lines.append(f"- Target chapter length: {chapter.target_word_count} words")
        if structure.is_last_chapter:
            lines.append("- This is the LAST chapter of the volume")
        if structure.is_last_volume:
            lines.append("- This is the LAST volume of the book")
        return "\n".join(lines)
