"""Book file: canon, volumes, chapters and pages in one YAML document.

This is the file-backed canon store used by the CLI. It builds generation
requests from stored structure and records accepted results back into it.

Layout::

    canon: {...}            # StoryCanon
    volumes:
      - volume_number: 1
        title: ...
        memory: {...}       # VolumeMemory, optional
        act_memory: {...}   # ActMemory, optional
        chapters:
          - chapter_number: 1
            act: {...}      # ActContext, optional
            chapter_outline: {...}
            pages: [...]
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field
from ruamel.yaml import YAML

from proseforge.context.requests import ChapterRequest, PageRequest
from proseforge.generation.memory import merge_state_delta, update_act_memory
from proseforge.generation.pages import (
    delete_page,
    lock_previous_pages,
    recompute_chapter_stats,
)
from proseforge.models.canon import StoryCanon
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

if TYPE_CHECKING:
    from proseforge.generation.orchestrator import ChapterResult, PageResult
    from proseforge.generation.outline import StoryOutline


class BookError(Exception):
    """Raised when a book file is missing data a command needs."""

    pass


class ChapterEntry(Chapter):
    act: ActContext | None = None
    chapter_outline: ChapterOutline | None = None
    pages: list[Page] = Field(default_factory=list)
    word_count: int = 0
    page_count: int = 0


class VolumeEntry(Volume):
    memory: VolumeMemory | None = None
    act_memory: ActMemory | None = None
    chapters: list[ChapterEntry] = Field(default_factory=list)


class Book(BaseModel):
    """A whole book as stored on disk."""

    canon: StoryCanon = Field(default_factory=StoryCanon)
    volumes: list[VolumeEntry] = Field(default_factory=list)

    # -- lookup ------------------------------------------------------------------

    def volume(self, volume_number: int) -> VolumeEntry:
        for volume in self.volumes:
            if volume.volume_number == volume_number:
                return volume
        raise BookError(f"Volume {volume_number} not found")

    def chapter(self, volume_number: int, chapter_number: int) -> ChapterEntry:
        for chapter in self.volume(volume_number).chapters:
            if chapter.chapter_number == chapter_number:
                return chapter
        raise BookError(f"Chapter {chapter_number} not found in volume {volume_number}")

    def _structure(self, volume: VolumeEntry, chapter: ChapterEntry) -> StructureContext:
        last_volume = max(v.volume_number for v in self.volumes)
        last_chapter = max(c.chapter_number for c in volume.chapters)
        return StructureContext(
            current_volume_number=volume.volume_number,
            total_volumes=len(self.volumes),
            current_act_number=chapter.act.act_number if chapter.act else None,
            total_chapters_in_volume=len(volume.chapters),
            is_last_chapter=chapter.chapter_number == last_chapter,
            is_last_volume=volume.volume_number == last_volume,
        )

    # -- requests ----------------------------------------------------------------

    def chapter_request(self, volume_number: int, chapter_number: int) -> ChapterRequest:
        """Build a chapter request from stored structure and earlier chapters."""
        volume = self.volume(volume_number)
        chapter = self.chapter(volume_number, chapter_number)
        previous = sorted(
            (c for c in volume.chapters if c.chapter_number < chapter_number),
            key=lambda c: c.chapter_number,
        )
        return ChapterRequest(
            volume=volume,
            chapter=chapter,
            act=chapter.act or ActContext(),
            previous_chapters=list(previous),
            volume_memory=volume.memory,
            act_memory=volume.act_memory,
            outline=chapter.chapter_outline,
            structure=self._structure(volume, chapter),
        )

    def page_request(
        self, volume_number: int, chapter_number: int, page_number: int
    ) -> tuple[PageRequest, Page | None]:
        """Build a page request plus the stored page it would replace, if any."""
        volume = self.volume(volume_number)
        chapter = self.chapter(volume_number, chapter_number)
        pages = sorted(chapter.pages, key=lambda p: p.page_number)
        existing = next((p for p in pages if p.page_number == page_number), None)
        request = PageRequest(
            volume=volume,
            chapter=chapter,
            page_number=page_number,
            previous_pages=[p for p in pages if p.page_number < page_number],
            act=chapter.act,
            volume_memory=volume.memory,
            act_memory=volume.act_memory,
            structure=self._structure(volume, chapter),
        )
        return request, existing

    # -- structure -----------------------------------------------------------------

    def apply_outline(
        self, volume_number: int, outline: StoryOutline, *, replace: bool = False
    ) -> VolumeEntry:
        """Lay an outline's chapters into a volume, creating the volume if needed.

        Raises:
            BookError: If the volume already has chapters and ``replace`` is not set.
        """
        volume = next((v for v in self.volumes if v.volume_number == volume_number), None)
        if volume is None:
            volume = VolumeEntry(volume_number=volume_number)
            self.volumes.append(volume)
            self.volumes.sort(key=lambda v: v.volume_number)
        elif volume.chapters and not replace:
            raise BookError(f"Volume {volume_number} already has {len(volume.chapters)} chapters")

        chapters = []
        for chapter in outline.chapters:
            act = outline.act(chapter.act_number)
            chapters.append(
                ChapterEntry(
                    volume_number=volume_number,
                    chapter_number=chapter.chapter_number,
                    title=chapter.outline.title,
                    outline=chapter.outline.summary,
                    act_tag=act.title if act else None,
                    act=act,
                    chapter_outline=chapter.outline,
                )
            )
        volume.chapters = chapters
        volume.target_chapter_count = len(chapters)
        return volume

    # -- recording ---------------------------------------------------------------

    def record_chapter(
        self, volume_number: int, chapter_number: int, result: ChapterResult
    ) -> None:
        """Store an accepted chapter's summary and delta and refresh the memory caches."""
        volume = self.volume(volume_number)
        chapter = self.chapter(volume_number, chapter_number)
        chapter.summary = result.summary
        chapter.state_delta = result.state_delta
        chapter.word_count = result.word_count
        volume.memory = merge_state_delta(volume.memory, result.state_delta)
        tension = chapter.act.emotional_pressure if chapter.act else None
        volume.act_memory = update_act_memory(volume.act_memory, result.state_delta, tension)

    def record_page(self, volume_number: int, chapter_number: int, result: PageResult) -> None:
        """Store a page, lock the pages before it and recompute chapter stats."""
        chapter = self.chapter(volume_number, chapter_number)
        page = Page(
            page_number=result.page_number,
            content=result.content,
            word_count=result.word_count,
            beat_coverage=result.beat_coverage,
            narrative_momentum=result.narrative_momentum,
        )
        pages = [p for p in chapter.pages if p.page_number != result.page_number]
        pages.append(page)
        pages.sort(key=lambda p: p.page_number)
        chapter.pages = lock_previous_pages(pages, result.page_number)
        chapter.word_count, chapter.page_count = recompute_chapter_stats(chapter.pages)

    def delete_page(self, volume_number: int, chapter_number: int, page_number: int) -> int:
        """Delete a page and every later page of the chapter.

        Returns:
            How many pages were removed.

        Raises:
            BookError: If the chapter has no such page.
        """
        chapter = self.chapter(volume_number, chapter_number)
        before = len(chapter.pages)
        try:
            pages, word_count, page_count = delete_page(chapter.pages, page_number)
        except KeyError:
            raise BookError(f"Page {page_number} not found in chapter {chapter_number}") from None
        chapter.pages = pages
        chapter.word_count, chapter.page_count = word_count, page_count
        return before - page_count


def load_book(path: Path) -> Book:
    """Read a book file.

    Raises:
        BookError: If the file is missing or empty.
        pydantic.ValidationError: If its content does not match the layout.
    """
    if not path.exists():
        raise BookError(f"Book file not found: {path}")
    yaml = YAML(typ="safe")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.load(f)
    if not data:
        raise BookError(f"Book file is empty: {path}")
    return Book.model_validate(data)


def save_book(path: Path, book: Book) -> None:
    yaml = YAML()
    yaml.default_flow_style = False
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(book.model_dump(mode="json", exclude_none=True), f)
