"""Tests for story structure parsing and outline generation."""

from __future__ import annotations

import json
from typing import Any

import pytest

from proseforge.book import Book, BookError, ChapterEntry, VolumeEntry
from proseforge.config import GenerationConfig
from proseforge.generation import (
    GenerationFailedError,
    StoryOutline,
    generate_outline,
    parse_story_outline,
)
from proseforge.generation.outline import (
    PLACEHOLDER_SUMMARY,
    placeholder_outline,
    structure_to_outline,
)
from proseforge.models import StoryCanon, StoryStructureDraft
from proseforge.providers.base import ProviderConnectionError


def _structure(*acts: dict[str, Any]) -> str:
    return json.dumps({"acts": list(acts)})


def _act(title: str, *chapter_titles: str, **fields: Any) -> dict[str, Any]:
    return {
        "actNumber": 9,
        "title": title,
        "narrativePurpose": "setup",
        "emotionalPressure": 3,
        "pacing": "slow",
        "chapters": [
            {
                "chapterNumber": 1,
                "title": name,
                "summary": f"{name} happens.",
                "plotBeats": ["arrive", "notice", "leave"],
                "emotionalIntent": "Curiosity",
                "characterFocus": ["Mara"],
                "pacingHint": "slow",
            }
            for name in chapter_titles
        ],
        **fields,
    }


class TestParseStoryOutline:
    """Tests for parse_story_outline."""

    @pytest.mark.asyncio
    async def test_acts_and_chapters_numbered_in_order(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        raw = _structure(
            _act("The Platform", "Missed", "Waiting"),
            _act("Snowbound", "Stranded", narrativePurpose="crisis", emotionalPressure=9),
        )
        service = scripted_service([raw])

        outline = await parse_story_outline(service, "", sample_canon)

        assert outline.parsed
        assert [a.act_number for a in outline.acts] == [1, 2]
        assert outline.acts[1].narrative_purpose == "crisis"
        assert outline.acts[1].emotional_pressure == 9
        assert [(c.chapter_number, c.act_number) for c in outline.chapters] == [
            (1, 1),
            (2, 1),
            (3, 2),
        ]
        first = outline.chapter_outlines[0]
        assert first.title == "Missed"
        assert first.plot_beats == ["arrive", "notice", "leave"]
        assert first.character_focus == ["Mara"]
        assert first.raw_outline_text == "Generated from story canon"

    @pytest.mark.asyncio
    async def test_writer_outline_in_prompt(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        service = scripted_service([_structure(_act("The Platform", "Missed"))])

        outline = await parse_story_outline(
            service, "Ch 1: Mara misses the train", sample_canon, target_chapters=12
        )

        call = service.calls[0]
        assert "WRITER OUTLINE:\nCh 1: Mara misses the train" in call["user_prompt"]
        assert "about 12 chapters" in call["user_prompt"]
        assert "Trains never run on Sundays" in call["user_prompt"]
        assert call["max_tokens"] == 8000
        assert call["temperature"] == 0.7
        assert outline.chapter_outlines[0].raw_outline_text == ""

    @pytest.mark.asyncio
    async def test_unknown_purpose_and_pacing_normalized(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        raw = _structure(
            _act("Thaw", "Spring", narrativePurpose="Rising Tension", pacing="breakneck")
        )
        service = scripted_service([raw])

        outline = await parse_story_outline(service, "", sample_canon)

        assert outline.acts[0].narrative_purpose == "rising-tension"
        assert outline.acts[0].pacing == "medium"

    @pytest.mark.asyncio
    async def test_pressure_clamped(self, scripted_service, sample_canon: StoryCanon) -> None:
        service = scripted_service([_structure(_act("Peak", "Storm", emotionalPressure=14))])

        outline = await parse_story_outline(service, "", sample_canon)

        assert outline.acts[0].emotional_pressure == 10

    @pytest.mark.asyncio
    async def test_repaired_response_accepted(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        raw = "Here you go:\n```json\n" + _structure(_act("Platform", "Missed"))[:-1] + ",}\n```"
        service = scripted_service([raw])

        outline = await parse_story_outline(service, "", sample_canon)

        assert outline.parsed
        assert outline.chapter_outlines[0].title == "Missed"

    @pytest.mark.asyncio
    async def test_unreadable_response_falls_back(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        """An unreadable structure becomes an editable placeholder, not an error."""
        service = scripted_service(["I could not build a structure."])

        outline = await parse_story_outline(
            service, "Ch 1: missed train", sample_canon, target_chapters=3
        )

        assert not outline.parsed
        assert outline.acts == []
        assert [c.outline.title for c in outline.chapters] == [
            "Chapter 1",
            "Chapter 2",
            "Chapter 3",
        ]
        assert outline.chapters[0].outline.summary == PLACEHOLDER_SUMMARY
        assert outline.chapters[0].outline.raw_outline_text == "Ch 1: missed train"

    @pytest.mark.asyncio
    async def test_empty_acts_fall_back(self, scripted_service, sample_canon: StoryCanon) -> None:
        service = scripted_service(['{"acts": []}'])

        outline = await parse_story_outline(service, "", sample_canon, target_chapters=2)

        assert not outline.parsed
        assert len(outline.chapters) == 2

    @pytest.mark.asyncio
    async def test_provider_failure_raises(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        service = scripted_service(
            [
                ProviderConnectionError("ollama", "refused"),
                ProviderConnectionError("ollama", "refused"),
            ]
        )

        with pytest.raises(GenerationFailedError):
            await parse_story_outline(service, "", sample_canon)

    @pytest.mark.asyncio
    async def test_hung_provider_times_out(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        service = scripted_service([0.5, _structure(_act("Platform", "Missed"))])

        outline = await parse_story_outline(
            service, "", sample_canon, config=GenerationConfig(timeout_seconds=0.01)
        )

        assert outline.parsed
        assert len(service.calls) == 2


class TestGenerateOutline:
    """Tests for generate_outline."""

    @pytest.mark.asyncio
    async def test_chapters_mapped(self, scripted_service, sample_canon: StoryCanon) -> None:
        raw = json.dumps(
            {
                "chapters": [
                    {
                        "number": 4,
                        "title": "Missed",
                        "summary": "Mara misses the last train.",
                        "beats": ["run", "miss", "wait"],
                        "emotionalGoal": "Frustration",
                        "characterArcs": ["Mara"],
                        "conflict": "The timetable",
                        "hookForNext": "A stranger waits too",
                    },
                    {"title": "", "beats": [1, 2]},
                ]
            }
        )
        service = scripted_service([raw])

        outline = await generate_outline(
            service, sample_canon, act_structure="five-act", target_chapters=2
        )

        assert outline.parsed
        assert outline.acts == []
        assert [c.chapter_number for c in outline.chapters] == [1, 2]
        first, second = outline.chapter_outlines
        assert first.plot_beats == ["run", "miss", "wait"]
        assert first.emotional_intent == "Frustration"
        assert first.character_focus == ["Mara"]
        assert first.raw_outline_text == "Conflict: The timetable\nHook: A stranger waits too"
        assert second.title == "Chapter 2"
        assert second.plot_beats == ["1", "2"]
        assert "Create a five-act outline with 2 chapters." in service.calls[0]["user_prompt"]

    @pytest.mark.asyncio
    async def test_unreadable_response_falls_back(
        self, scripted_service, sample_canon: StoryCanon
    ) -> None:
        service = scripted_service(['{"chapters": "none"}'])

        outline = await generate_outline(service, sample_canon, target_chapters=4)

        assert not outline.parsed
        assert len(outline.chapters) == 4
        assert outline.chapters[3].outline.plot_beats == ["Setup", "Development", "Climax"]


class TestApplyOutline:
    """Tests for Book.apply_outline."""

    def _outline(self) -> StoryOutline:
        draft = StoryStructureDraft.model_validate(
            json.loads(_structure(_act("Platform", "Missed", "Waiting"), _act("Snow", "Stuck")))
        )
        return structure_to_outline(draft)

    def test_new_volume_created(self) -> None:
        book = Book()

        volume = book.apply_outline(2, self._outline())

        assert book.volume(2) is volume
        assert volume.target_chapter_count == 3
        third = book.chapter(2, 3)
        assert third.title == "Stuck"
        assert third.act is not None and third.act.act_number == 2
        assert third.act_tag == "Snow"
        assert third.chapter_outline is not None
        assert third.chapter_outline.summary == "Stuck happens."
        assert book.chapter_request(2, 1).outline == book.chapter(2, 1).chapter_outline

    def test_existing_chapters_kept_without_replace(self) -> None:
        volume = VolumeEntry(volume_number=1, chapters=[ChapterEntry(chapter_number=1)])
        book = Book(volumes=[volume])

        with pytest.raises(BookError, match="already has 1 chapters"):
            book.apply_outline(1, self._outline())

        book.apply_outline(1, self._outline(), replace=True)
        assert len(book.volume(1).chapters) == 3

    def test_placeholder_chapters_have_no_act(self) -> None:
        book = Book()

        book.apply_outline(1, placeholder_outline(2))

        assert [c.act for c in book.volume(1).chapters] == [None, None]
