"""Inputs for a single chapter or page generation."""

from __future__ import annotations

from dataclasses import dataclass, field

from proseforge.models.structure import (
    ActContext,
    ActMemory,
    Chapter,
    ChapterOutline,
    Page,
    StructureContext,
    Volume,
    VolumeMemory,
)


@dataclass
class ChapterRequest:
    """Everything the canon store supplies for one chapter.

    Attributes:
        volume: Volume the chapter belongs to.
        chapter: Chapter being written (number, targets, directive fields).
        act: Act-level purpose and pacing.
        previous_chapters: Earlier chapters in reading order.
        volume_memory: Optional volume progress cache.
        act_memory: Optional act tension cache.
        outline: Binding chapter outline, if the writer supplied one.
        structure: Position of the chapter in the book.
    """

    volume: Volume
    chapter: Chapter
    act: ActContext = field(default_factory=ActContext)
    previous_chapters: list[Chapter] = field(default_factory=list)
    volume_memory: VolumeMemory | None = None
    act_memory: ActMemory | None = None
    outline: ChapterOutline | None = None
    structure: StructureContext = field(default_factory=StructureContext)


@dataclass
class PageRequest:
    """Everything the canon store supplies for one page.

    ``previous_pages`` are the earlier pages of the same chapter, in order.
    """

    volume: Volume
    chapter: Chapter
    page_number: int
    previous_pages: list[Page] = field(default_factory=list)
    act: ActContext | None = None
    volume_memory: VolumeMemory | None = None
    act_memory: ActMemory | None = None
    structure: StructureContext = field(default_factory=StructureContext)

    @property
    def total_pages(self) -> int:
        return max(self.chapter.target_page_count, self.page_number)

    @property
    def is_first_page(self) -> bool:
        return self.page_number == 1

    @property
    def is_final_page(self) -> bool:
        return self.page_number >= self.chapter.target_page_count
