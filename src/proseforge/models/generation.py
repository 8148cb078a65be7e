"""Schemas for generation-call JSON responses.

The model is asked for camelCase keys; aliases map them onto snake_case
attributes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proseforge.models.structure import StateDelta, stringify_items


class ChapterDraft(BaseModel):
    """Parsed chapter-generation response."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(min_length=1)
    summary: str = ""
    state_delta: StateDelta = Field(default_factory=StateDelta, alias="stateDelta")


class PageDraft(BaseModel):
    """Parsed page-generation response.

    ``word_count`` is whatever the model claimed; the orchestrator counts
    words itself and ignores it.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(min_length=1)
    beat_coverage: str = Field(default="", alias="beatCoverage")
    narrative_momentum: str = Field(default="", alias="narrativeMomentum")
    word_count: int | None = Field(default=None, alias="wordCount")


class CanonComplianceVerdict(BaseModel):
    """Parsed canon-compliance check response."""

    passed: bool = True
    violations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Outlines
# ---------------------------------------------------------------------------


class StructureChapterDraft(BaseModel):
    """One chapter of a parsed act/chapter structure."""

    model_config = ConfigDict(populate_by_name=True)

    chapter_number: int | None = Field(default=None, alias="chapterNumber")
    title: str = ""
    summary: str = ""
    plot_beats: list[str] = Field(default_factory=list, alias="plotBeats")
    emotional_intent: str = Field(default="", alias="emotionalIntent")
    character_focus: list[str] = Field(default_factory=list, alias="characterFocus")
    pacing_hint: str = Field(default="", alias="pacingHint")
    raw_outline_text: str = Field(default="", alias="rawOutlineText")

    coerce_string_lists = field_validator("plot_beats", "character_focus", mode="before")(
        stringify_items
    )


class StructureActDraft(BaseModel):
    """One act of a parsed structure.

    Purpose and pacing are kept as free text here; unknown values are
    mapped onto the allowed ones when the act is converted.
    """

    model_config = ConfigDict(populate_by_name=True)

    act_number: int | None = Field(default=None, alias="actNumber")
    title: str = ""
    narrative_purpose: str = Field(default="", alias="narrativePurpose")
    emotional_pressure: int = Field(default=5, alias="emotionalPressure")
    pacing: str = ""
    target_chapter_count: int | None = Field(default=None, alias="targetChapterCount")
    chapters: list[StructureChapterDraft] = Field(default_factory=list)


class StoryStructureDraft(BaseModel):
    """Parsed structure response: acts holding chapters."""

    acts: list[StructureActDraft] = Field(min_length=1)


class OutlineChapterDraft(BaseModel):
    """One chapter of a canon-only outline response."""

    model_config = ConfigDict(populate_by_name=True)

    number: int | None = None
    title: str = ""
    summary: str = ""
    beats: list[str] = Field(default_factory=list)
    emotional_goal: str = Field(default="", alias="emotionalGoal")
    character_arcs: list[str] = Field(default_factory=list, alias="characterArcs")
    conflict: str = ""
    relationship_movement: str = Field(default="", alias="relationshipMovement")
    hook_for_next: str = Field(default="", alias="hookForNext")

    coerce_string_lists = field_validator("beats", "character_arcs", mode="before")(stringify_items)


class OutlineDraft(BaseModel):
    """Parsed canon-only outline response."""

    chapters: list[OutlineChapterDraft] = Field(min_length=1)
