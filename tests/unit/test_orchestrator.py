"""Tests for the generation orchestrator."""

from __future__ import annotations

import json
from typing import Any

import pytest

from proseforge.config import GenerationConfig
from proseforge.context import ChapterRequest, ContextAssembler, PageRequest
from proseforge.generation import (
    GenerationError,
    GenerationFailedError,
    GenerationOrchestrator,
    GenerationState,
    MalformedOutputError,
    PageLockedError,
    WordCountViolation,
    count_words,
)
from proseforge.models import CanonMetadata, Chapter, Page, StoryCanon, StoryCanonInput, Volume
from proseforge.prose import format_prose
from proseforge.providers.base import ProviderConnectionError, ProviderRateLimitError


@pytest.fixture
def assembler(sample_canon: StoryCanon) -> ContextAssembler:
    return ContextAssembler(sample_canon)


@pytest.fixture
def chapter_request(sample_volume: Volume) -> ChapterRequest:
    return ChapterRequest(
        volume=sample_volume,
        chapter=Chapter(chapter_number=1, title="Late Train"),
    )


@pytest.fixture
def page_request(sample_volume: Volume) -> PageRequest:
    return PageRequest(
        volume=sample_volume,
        chapter=Chapter(chapter_number=1, target_page_count=3),
        page_number=2,
        previous_pages=[Page(page_number=1, content="Mara ran for the train.")],
    )


def _orchestrator(
    service: Any, assembler: ContextAssembler | None, **config: Any
) -> GenerationOrchestrator:
    return GenerationOrchestrator(service, assembler, GenerationConfig(**config))


class TestGenerationState:
    """Tests for GenerationState."""

    def test_terminal_states(self) -> None:
        assert GenerationState.ACCEPTED.is_terminal
        assert GenerationState.EXHAUSTED.is_terminal
        assert not GenerationState.DRAFTING.is_terminal
        assert not GenerationState.VALIDATING.is_terminal
        assert not GenerationState.REGENERATION_REQUESTED.is_terminal


class TestGenerateChapter:
    """Tests for chapter generation and regeneration."""

    @pytest.mark.asyncio
    async def test_accepts_first_passing_attempt(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        """A passing first draft is returned after one call."""
        service = scripted_service([make_chapter_json(good_prose)])

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 1
        assert not result.exhausted
        assert result.content == format_prose(good_prose)
        assert result.summary == "Mara comes home late."
        assert result.state_delta.emotional_state == "guilty"
        assert result.prose_validation.score == 100
        assert len(service.calls) == 1
        assert service.calls[0]["max_tokens"] == 8000
        assert service.calls[0]["temperature"] == 0.8

    @pytest.mark.asyncio
    async def test_regenerates_with_corrective_feedback(
        self,
        scripted_service,
        assembler,
        chapter_request,
        good_prose,
        leaky_prose,
        make_chapter_json,
    ) -> None:
        service = scripted_service(
            [make_chapter_json(leaky_prose), make_chapter_json(good_prose)]
        )

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 2
        assert not result.exhausted
        first, second = (call["user_prompt"] for call in service.calls)
        assert "PREVIOUS ATTEMPT FAILED PROSE VALIDATION" not in first
        assert second.startswith(first)
        assert "PREVIOUS ATTEMPT FAILED PROSE VALIDATION" in second
        assert "CANON LEAKAGE DETECTED" in second
        assert service.calls[0]["system_prompt"] == service.calls[1]["system_prompt"]

    @pytest.mark.asyncio
    async def test_exhausted_returns_best_attempt(
        self, scripted_service, assembler, chapter_request, leaky_prose, make_chapter_json
    ) -> None:
        """After the last attempt the highest-scoring draft is returned."""
        service = scripted_service(
            [
                make_chapter_json("I woke up and stretched.", summary="best"),
                make_chapter_json(leaky_prose),
                make_chapter_json(leaky_prose),
            ]
        )

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.exhausted
        assert result.attempts == 3
        assert result.summary == "best"
        assert result.content == "I woke up and stretched."
        assert result.prose_validation.score == 40
        assert len(service.calls) == 3

    @pytest.mark.asyncio
    async def test_max_attempts_configurable(
        self, scripted_service, assembler, chapter_request, leaky_prose, make_chapter_json
    ) -> None:
        service = scripted_service([make_chapter_json(leaky_prose)])

        result = await _orchestrator(service, assembler, max_attempts=1).generate_chapter(
            chapter_request
        )

        assert result.exhausted
        assert result.attempts == 1
        assert result.prose_validation.score == 0

    @pytest.mark.asyncio
    async def test_invalid_json_then_valid(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        service = scripted_service(["not json at all", make_chapter_json(good_prose)])

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 2
        retry_prompt = service.calls[1]["user_prompt"]
        assert "PREVIOUS ATTEMPT HAD INVALID JSON" in retry_prompt
        assert "Parser error: No JSON object found in response" in retry_prompt

    @pytest.mark.asyncio
    async def test_never_parseable_raises(
        self, scripted_service, assembler, chapter_request
    ) -> None:
        service = scripted_service(["nope", '{"summary": "no content"}', "```\n```"])

        with pytest.raises(GenerationFailedError) as exc_info:
            await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert exc_info.value.attempts == 3
        assert len(exc_info.value.last_errors) == 3
        assert "wrong shape" in exc_info.value.last_errors[1]

    @pytest.mark.asyncio
    async def test_repaired_json_accepted(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        raw = "```json\n" + make_chapter_json(good_prose)[:-1] + ",}\n```"
        service = scripted_service([raw])

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 1
        assert result.prose_validation.score == 100

    @pytest.mark.asyncio
    async def test_provider_error_retried_once(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        """A single provider failure is retried without using a generation attempt."""
        service = scripted_service(
            [ProviderConnectionError("ollama", "refused"), make_chapter_json(good_prose)]
        )

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 1
        assert len(service.calls) == 2
        assert service.calls[0]["user_prompt"] == service.calls[1]["user_prompt"]

    @pytest.mark.asyncio
    async def test_second_provider_error_fails(
        self, scripted_service, assembler, chapter_request
    ) -> None:
        service = scripted_service(
            [
                ProviderConnectionError("ollama", "refused"),
                ProviderRateLimitError("ollama", "429"),
            ]
        )

        with pytest.raises(GenerationFailedError) as exc_info:
            await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert exc_info.value.attempts == 2
        assert exc_info.value.last_errors == ["[ollama] refused", "[ollama] 429"]

    @pytest.mark.asyncio
    async def test_provider_budget_spans_attempts(
        self, scripted_service, assembler, chapter_request
    ) -> None:
        service = scripted_service(
            [
                ProviderConnectionError("ollama", "refused"),
                "not json at all",
                ProviderConnectionError("ollama", "refused"),
            ]
        )

        with pytest.raises(GenerationFailedError) as exc_info:
            await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert exc_info.value.last_errors == ["[ollama] refused", "[ollama] refused"]

    @pytest.mark.asyncio
    async def test_provider_failure_after_draft_returns_best(
        self, scripted_service, assembler, chapter_request, leaky_prose, make_chapter_json
    ) -> None:
        """A parsed draft survives a later provider failure as the best attempt."""
        service = scripted_service(
            [
                make_chapter_json(leaky_prose, summary="first draft"),
                ProviderConnectionError("ollama", "refused"),
                ProviderConnectionError("ollama", "refused"),
            ]
        )

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.exhausted
        assert result.attempts == 1
        assert result.summary == "first draft"
        assert result.content == format_prose(leaky_prose)
        assert result.prose_validation.should_regenerate
        assert len(service.calls) == 3

    @pytest.mark.asyncio
    async def test_timeout_counts_as_provider_failure(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        service = scripted_service([0.5, make_chapter_json(good_prose)])

        result = await _orchestrator(
            service, assembler, timeout_seconds=0.01
        ).generate_chapter(chapter_request)

        assert result.attempts == 1
        assert len(service.calls) == 2

    @pytest.mark.asyncio
    async def test_repeated_timeouts_fail(
        self, scripted_service, assembler, chapter_request
    ) -> None:
        service = scripted_service([0.5, 0.5])

        with pytest.raises(GenerationFailedError) as exc_info:
            await _orchestrator(service, assembler, timeout_seconds=0.01).generate_chapter(
                chapter_request
            )

        assert "No response within" in exc_info.value.last_errors[-1]

    @pytest.mark.asyncio
    async def test_empty_response_retried(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        service = scripted_service(["   ", make_chapter_json(good_prose)])

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)

        assert result.attempts == 1
        assert len(service.calls) == 2

    @pytest.mark.asyncio
    async def test_requires_assembler(self, scripted_service, chapter_request) -> None:
        service = scripted_service([])

        with pytest.raises(GenerationError, match="ContextAssembler"):
            await GenerationOrchestrator(service).generate_chapter(chapter_request)

        assert service.calls == []

    @pytest.mark.asyncio
    async def test_result_to_dict(
        self, scripted_service, assembler, chapter_request, good_prose, make_chapter_json
    ) -> None:
        service = scripted_service([make_chapter_json(good_prose)])

        result = await _orchestrator(service, assembler).generate_chapter(chapter_request)
        data = result.to_dict()

        assert set(data) == {"content", "summary", "stateDelta", "proseValidation"}
        assert data["stateDelta"]["emotionalState"] == "guilty"
        assert data["stateDelta"]["unresolvedThreads"] == ["Why was the train late?"]
        assert data["proseValidation"] == {"score": 100, "issues": [], "warnings": []}
        assert result.word_count == len(result.content.split())


class TestGeneratePage:
    """Tests for page generation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("words", [600, 1200])
    async def test_band_edges_accepted(
        self, scripted_service, assembler, page_request, make_page_json, words: int
    ) -> None:
        service = scripted_service([make_page_json(words)])

        result = await _orchestrator(service, assembler).generate_page(page_request)

        assert result.word_count == words
        assert result.page_number == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("words", [599, 1201])
    async def test_outside_band_rejected(
        self, scripted_service, assembler, page_request, make_page_json, words: int
    ) -> None:
        """Pages outside the band fail at once and are not retried."""
        service = scripted_service([make_page_json(words)])

        with pytest.raises(WordCountViolation) as exc_info:
            await _orchestrator(service, assembler).generate_page(page_request)

        assert exc_info.value.word_count == words
        assert len(service.calls) == 1

    @pytest.mark.asyncio
    async def test_band_configurable(
        self, scripted_service, assembler, page_request, make_page_json
    ) -> None:
        service = scripted_service([make_page_json(100)])

        result = await _orchestrator(
            service, assembler, min_page_words=50, max_page_words=150
        ).generate_page(page_request)

        assert result.word_count == 100

    @pytest.mark.asyncio
    async def test_missing_fields_defaulted(
        self, scripted_service, assembler, page_request, make_page_json
    ) -> None:
        service = scripted_service([make_page_json(700)])

        result = await _orchestrator(service, assembler).generate_page(page_request)

        assert result.beat_coverage == "Page 2 beats"
        assert result.narrative_momentum == "Continues to next page"

    @pytest.mark.asyncio
    async def test_model_word_count_ignored(
        self, scripted_service, assembler, page_request, make_page_json
    ) -> None:
        service = scripted_service(
            [make_page_json(700, wordCount=900, beatCoverage="arrival")]
        )

        result = await _orchestrator(service, assembler).generate_page(page_request)

        assert result.word_count == 700
        assert result.beat_coverage == "arrival"
        assert result.to_dict()["wordCount"] == 700
        assert service.calls[0]["max_tokens"] == 4000

    @pytest.mark.asyncio
    async def test_page_content_formatted(
        self, scripted_service, assembler, page_request
    ) -> None:
        words = " ".join(["rain"] * 650)
        content = f'"Wait," she said. {words}.'
        service = scripted_service([json.dumps({"content": content})])

        result = await _orchestrator(service, assembler).generate_page(page_request)

        assert result.content.startswith('"Wait,"\n\nshe said.')
        assert result.word_count == 653
        assert result.word_count == count_words(result.content)

    @pytest.mark.asyncio
    async def test_locked_page_rejected(
        self, scripted_service, assembler, page_request
    ) -> None:
        service = scripted_service([])
        existing = Page(page_number=2, content="old", locked=True)

        with pytest.raises(PageLockedError):
            await _orchestrator(service, assembler).generate_page(page_request, existing)

        assert service.calls == []

    @pytest.mark.asyncio
    async def test_unlocked_page_regenerated(
        self, scripted_service, assembler, page_request, make_page_json
    ) -> None:
        service = scripted_service([make_page_json(650)])
        existing = Page(page_number=2, content="old")

        result = await _orchestrator(service, assembler).generate_page(page_request, existing)

        assert result.word_count == 650

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["no json here", '{"content": ""}', '{"beatCoverage": "x"}'])
    async def test_malformed_output(
        self, scripted_service, assembler, page_request, raw: str
    ) -> None:
        service = scripted_service([raw])

        with pytest.raises(MalformedOutputError):
            await _orchestrator(service, assembler).generate_page(page_request)

        assert len(service.calls) == 1


class TestGenerateStoryBible:
    """Tests for story bible generation."""

    @pytest.fixture
    def canon_input(self) -> StoryCanonInput:
        return StoryCanonInput(
            core_whitepaper="A courier keeps missing the last train.",
            characters_input="Mara Elise Vance – protagonist\nJonah Reyes – love interest",
            settings_input="A rail town in winter.",
            story_outline="Volume 1: departures.",
            metadata=CanonMetadata(title="Last Train", genre="romance"),
        )

    @pytest.mark.asyncio
    async def test_bible_generated_and_locked(
        self, scripted_service, canon_input: StoryCanonInput
    ) -> None:
        bible = {
            "core_premise": "Two people keep missing the same train.",
            "themes": ["romance", "timing"],
            "character_profiles": [
                {"full_name": "Mara Elise Vance", "short_name": "Mara"},
                {"full_name": "Jonah Reyes", "short_name": "Jonah"},
            ],
            "world_settings": [{"location": "Station", "description": "Cold platform"}],
            "world_rules": ["Trains never run on Sundays"],
            "hard_constraints": ["Jonah never leaves town"],
        }
        service = scripted_service([json.dumps(bible)])

        result = await GenerationOrchestrator(service).generate_story_bible(canon_input)

        assert result.parsed
        assert result.validation.valid
        assert result.canon.locked
        assert result.canon.core_premise == "Two people keep missing the same train."
        assert [c.full_name for c in result.canon.characters] == [
            "Mara Elise Vance",
            "Jonah Reyes",
        ]
        assert service.calls[0]["temperature"] == 0.7
        assert service.calls[0]["max_tokens"] == 8000

    @pytest.mark.asyncio
    async def test_unparseable_bible_is_soft_failure(
        self, scripted_service, canon_input: StoryCanonInput
    ) -> None:
        """A garbage bible still yields a locked, editable canon."""
        service = scripted_service(["I'd rather not."])

        result = await GenerationOrchestrator(service).generate_story_bible(canon_input)

        assert not result.parsed
        assert not result.validation.valid
        assert "Core premise is missing" in result.validation.errors
        assert result.canon.locked
        assert result.canon.whitepaper == canon_input.core_whitepaper
