"""Generate, validate and conditionally regenerate chapters and pages.

Each chapter request runs an explicit state machine::

    DRAFTING -> VALIDATING -> ACCEPTED
                           -> REGENERATION_REQUESTED -> DRAFTING
                           -> EXHAUSTED

The attempt counter, the corrective feedback for the next draft, and the
best attempt so far live on a per-request state object. Retries are
strictly sequential because each corrective prompt is built from the
previous attempt's outcome.

Pages take a single draft. A page outside the word band is rejected
immediately with :class:`WordCountViolation`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from proseforge.canon.bible import bible_to_canon, build_bible_prompt, validate_generated_bible
from proseforge.config import GenerationConfig
from proseforge.generation.completion import ProviderBudget, complete_within
from proseforge.generation.errors import (
    GenerationError,
    GenerationFailedError,
    MalformedOutputError,
    WordCountViolation,
)
from proseforge.generation.feedback import invalid_json_feedback, prose_feedback, with_feedback
from proseforge.generation.json_repair import Fatal, RepairedOk, parse_with_repair
from proseforge.generation.pages import count_words, ensure_regenerable
from proseforge.models.canon import GeneratedStoryBible
from proseforge.models.generation import ChapterDraft, PageDraft
from proseforge.observability.logging import generation_scope, get_logger
from proseforge.prose.formatting import format_prose
from proseforge.prose.patterns import DEFAULT_RUBRIC
from proseforge.prose.validator import validate_prose

if TYPE_CHECKING:
    from proseforge.canon.bible import CanonValidationResult
    from proseforge.context.assembler import ContextAssembler
    from proseforge.context.requests import ChapterRequest, PageRequest
    from proseforge.models.canon import StoryCanon, StoryCanonInput
    from proseforge.models.structure import Page, StateDelta
    from proseforge.prose.patterns import ProseRubric
    from proseforge.prose.validator import ProseValidation
    from proseforge.providers.base import TextCompletionService

log = get_logger(__name__)


class GenerationState(StrEnum):
    """States of a chapter generation request."""

    DRAFTING = "drafting"
    VALIDATING = "validating"
    REGENERATION_REQUESTED = "regeneration_requested"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationState.ACCEPTED, GenerationState.EXHAUSTED)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class ChapterResult:
    """Accepted (or best-effort) chapter.

    Attributes:
        content: Formatted chapter text.
        summary: Model-written summary.
        state_delta: What the chapter changed in the story state.
        prose_validation: Validator verdict for ``content``.
        attempts: Generation attempts made.
        exhausted: True when no attempt passed and the best one was returned.
    """

    content: str
    summary: str
    state_delta: StateDelta
    prose_validation: ProseValidation
    attempts: int
    exhausted: bool = False

    @property
    def word_count(self) -> int:
        return count_words(self.content)

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing output with camelCase keys."""
        return {
            "content": self.content,
            "summary": self.summary,
            "stateDelta": self.state_delta.model_dump(by_alias=True),
            "proseValidation": self.prose_validation.to_dict(),
        }


@dataclass
class PageResult:
    """Accepted page.

    ``word_count`` is counted on the formatted ``content``, the same text the
    chapter totals are recomputed from.
    """

    page_number: int
    content: str
    beat_coverage: str
    narrative_momentum: str
    word_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "beatCoverage": self.beat_coverage,
            "narrativeMomentum": self.narrative_momentum,
            "wordCount": self.word_count,
        }


@dataclass
class BibleResult:
    """Story bible outcome. Validation errors never block it."""

    bible: GeneratedStoryBible
    canon: StoryCanon
    validation: CanonValidationResult
    parsed: bool = True


# ---------------------------------------------------------------------------
# Per-request state
# ---------------------------------------------------------------------------


@dataclass
class _ChapterAttempt:
    number: int
    draft: ChapterDraft
    content: str
    validation: ProseValidation | None = None


@dataclass
class _ChapterRun:
    state: GenerationState = GenerationState.DRAFTING
    attempt: int = 0
    feedback: str | None = None
    current: _ChapterAttempt | None = None
    best: _ChapterAttempt | None = None
    errors: list[str] = field(default_factory=list)

    def consider(self, attempt: _ChapterAttempt) -> None:
        assert attempt.validation is not None
        if self.best is None or (
            self.best.validation is not None
            and attempt.validation.score > self.best.validation.score
        ):
            self.best = attempt


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class GenerationOrchestrator:
    """Drive chapter, page and story-bible generation.

    The completion service is injected; nothing here selects or caches a
    provider. Independent requests may run concurrently on one instance
    since all mutable state is per request.
    """

    def __init__(
        self,
        service: TextCompletionService,
        assembler: ContextAssembler | None = None,
        config: GenerationConfig | None = None,
        rubric: ProseRubric = DEFAULT_RUBRIC,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            service: Text-completion backend.
            assembler: Prompt builder bound to the story canon. Only story
                bible generation works without one.
            config: Attempt limits, timeouts and sampling settings.
            rubric: Prose validator thresholds.
        """
        self._service = service
        self._assembler = assembler
        self._config = config or GenerationConfig()
        self._rubric = rubric

    @property
    def config(self) -> GenerationConfig:
        return self._config

    def _require_assembler(self) -> ContextAssembler:
        if self._assembler is None:
            raise GenerationError("Chapter and page generation need a ContextAssembler")
        return self._assembler

    # -- completion call -----------------------------------------------------

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        budget: ProviderBudget,
    ) -> str:
        """One completion call bounded by the configured timeout.

        Raises:
            GenerationFailedError: When provider failures exceed the budget.
        """
        return await complete_within(
            self._service,
            system_prompt,
            user_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=self._config.timeout_seconds,
            budget=budget,
        )

    # -- chapters --------------------------------------------------------------

    async def generate_chapter(self, request: ChapterRequest) -> ChapterResult:
        """Generate one chapter, regenerating on prose failures.

        Args:
            request: Chapter inputs from the canon store.

        Returns:
            The first accepted attempt, or the best-scoring one with
            ``exhausted=True`` after ``max_attempts`` or once the provider
            fails beyond its retry budget.

        Raises:
            GenerationFailedError: If no attempt produced parseable content
                before attempts ran out or the provider failed.
        """
        with generation_scope(
            "chapter",
            volume=request.volume.volume_number,
            chapter=request.chapter.chapter_number,
        ):
            return await self._generate_chapter(request)

    async def _generate_chapter(self, request: ChapterRequest) -> ChapterResult:
        prompt = self._require_assembler().build_chapter_prompt(request)
        run = _ChapterRun()
        budget = ProviderBudget(retries=self._config.provider_retries)
        max_attempts = self._config.max_attempts
        chapter = request.chapter.chapter_number

        while not run.state.is_terminal:
            if run.state is GenerationState.DRAFTING:
                run.attempt += 1
                log.info("chapter_attempt", chapter=chapter, attempt=run.attempt)
                try:
                    raw = await self._complete(
                        prompt.system,
                        with_feedback(prompt.user, run.feedback),
                        max_tokens=self._config.chapter_max_tokens,
                        temperature=self._config.chapter_temperature,
                        budget=budget,
                    )
                except GenerationFailedError:
                    if run.best is None:
                        raise
                    # An earlier draft already passed parsing; fall back to it
                    run.attempt -= 1
                    run.state = GenerationState.EXHAUSTED
                    continue
                draft = self._parse_chapter(raw, run)
                if draft is None:
                    run.state = (
                        GenerationState.EXHAUSTED
                        if run.attempt >= max_attempts
                        else GenerationState.REGENERATION_REQUESTED
                    )
                    continue
                run.current = _ChapterAttempt(
                    number=run.attempt, draft=draft, content=format_prose(draft.content)
                )
                run.state = GenerationState.VALIDATING

            elif run.state is GenerationState.VALIDATING:
                assert run.current is not None
                validation = validate_prose(run.current.content, self._rubric)
                run.current.validation = validation
                run.consider(run.current)

                if not validation.should_regenerate:
                    run.state = GenerationState.ACCEPTED
                    continue

                log.warning(
                    "chapter_validation_failed",
                    chapter=chapter,
                    attempt=run.attempt,
                    score=validation.score,
                    issues=len(validation.issues),
                )
                run.feedback = prose_feedback(validation)
                run.state = (
                    GenerationState.EXHAUSTED
                    if run.attempt >= max_attempts
                    else GenerationState.REGENERATION_REQUESTED
                )

            elif run.state is GenerationState.REGENERATION_REQUESTED:
                log.info("chapter_regenerating", chapter=chapter, next_attempt=run.attempt + 1)
                run.state = GenerationState.DRAFTING

        if run.state is GenerationState.ACCEPTED:
            assert run.current is not None
            log.info(
                "chapter_accepted",
                chapter=chapter,
                attempts=run.attempt,
                score=run.current.validation.score if run.current.validation else None,
            )
            return self._chapter_result(run.current, run.attempt, exhausted=False)

        if run.best is None:
            raise GenerationFailedError(
                f"No parseable chapter after {run.attempt} attempts",
                attempts=run.attempt,
                last_errors=run.errors,
            )

        log.warning(
            "chapter_attempts_exhausted",
            chapter=chapter,
            attempts=run.attempt,
            best_attempt=run.best.number,
            best_score=run.best.validation.score if run.best.validation else None,
        )
        return self._chapter_result(run.best, run.attempt, exhausted=True)

    def _parse_chapter(self, raw: str, run: _ChapterRun) -> ChapterDraft | None:
        """Parse a chapter response; on failure record feedback and return None."""
        parsed = parse_with_repair(raw)
        if isinstance(parsed, Fatal):
            reason = parsed.reason
        else:
            if isinstance(parsed, RepairedOk):
                log.info("chapter_json_repaired", repairs=list(parsed.repairs))
            try:
                return ChapterDraft.model_validate(parsed.value)
            except ValidationError as e:
                reason = f"Response JSON has the wrong shape: {e.error_count()} error(s)"

        log.warning("chapter_json_invalid", attempt=run.attempt, reason=reason)
        run.errors.append(reason)
        run.feedback = invalid_json_feedback(reason)
        return None

    @staticmethod
    def _chapter_result(
        attempt: _ChapterAttempt, attempts: int, *, exhausted: bool
    ) -> ChapterResult:
        assert attempt.validation is not None
        return ChapterResult(
            content=attempt.content,
            summary=attempt.draft.summary,
            state_delta=attempt.draft.state_delta,
            prose_validation=attempt.validation,
            attempts=attempts,
            exhausted=exhausted,
        )

    # -- pages -------------------------------------------------------------------

    async def generate_page(
        self,
        request: PageRequest,
        existing: Page | None = None,
    ) -> PageResult:
        """Generate one page of a chapter.

        Args:
            request: Page inputs, including earlier pages of the chapter.
            existing: The page being replaced, if any.

        Returns:
            The formatted page.

        Raises:
            PageLockedError: If ``existing`` is locked.
            MalformedOutputError: If the response JSON is unusable after repair.
            WordCountViolation: If the page is outside the word band.
            GenerationFailedError: If the provider failed beyond its retry budget.
        """
        with generation_scope(
            "page",
            volume=request.volume.volume_number,
            chapter=request.chapter.chapter_number,
            page=request.page_number,
        ):
            return await self._generate_page(request, existing)

    async def _generate_page(self, request: PageRequest, existing: Page | None) -> PageResult:
        ensure_regenerable(existing)
        prompt = self._require_assembler().build_page_prompt(request)
        budget = ProviderBudget(retries=self._config.provider_retries)

        raw = await self._complete(
            prompt.system,
            prompt.user,
            max_tokens=self._config.page_max_tokens,
            temperature=self._config.page_temperature,
            budget=budget,
        )

        parsed = parse_with_repair(raw)
        if isinstance(parsed, Fatal):
            log.error("page_json_invalid", page=request.page_number, reason=parsed.reason)
            raise MalformedOutputError(parsed.reason, raw)
        try:
            draft = PageDraft.model_validate(parsed.value)
        except ValidationError as e:
            raise MalformedOutputError(f"Response JSON has the wrong shape: {e}", raw) from e

        content = format_prose(draft.content)
        word_count = count_words(content)
        minimum, maximum = self._config.min_page_words, self._config.max_page_words
        if not minimum <= word_count <= maximum:
            log.error(
                "page_word_count_violation",
                page=request.page_number,
                word_count=word_count,
                minimum=minimum,
                maximum=maximum,
            )
            raise WordCountViolation(word_count, minimum, maximum)

        log.info("page_accepted", page=request.page_number, word_count=word_count)
        return PageResult(
            page_number=request.page_number,
            content=content,
            beat_coverage=draft.beat_coverage or f"Page {request.page_number} beats",
            narrative_momentum=draft.narrative_momentum or "Continues to next page",
            word_count=word_count,
        )

    # -- story bible ---------------------------------------------------------------

    async def generate_story_bible(self, canon_input: StoryCanonInput) -> BibleResult:
        """Generate and lock a story bible from the writer's canon input.

        Parse and validation failures are logged, never raised: the result
        is a best-effort bible the writer can edit.

        Raises:
            GenerationFailedError: If the provider failed beyond its retry budget.
        """
        prompt = build_bible_prompt(canon_input)
        budget = ProviderBudget(retries=self._config.provider_retries)
        raw = await self._complete(
            prompt.system,
            prompt.user,
            max_tokens=self._config.bible_max_tokens,
            temperature=self._config.bible_temperature,
            budget=budget,
        )

        parsed = parse_with_repair(raw)
        bible: GeneratedStoryBible | None = None
        if isinstance(parsed, Fatal):
            log.error("bible_json_invalid", reason=parsed.reason)
        else:
            try:
                bible = GeneratedStoryBible.model_validate(parsed.value)
            except ValidationError as e:
                log.error("bible_shape_invalid", error=str(e))

        parsed_ok = bible is not None
        if bible is None:
            bible = GeneratedStoryBible()

        validation = validate_generated_bible(bible, canon_input)
        return BibleResult(
            bible=bible,
            canon=bible_to_canon(bible, canon_input),
            validation=validation,
            parsed=parsed_ok,
        )
