"""Book structure and narrative memory models.

Volumes own chapters, chapters own pages. Memory records are derived caches
of narrative state that feed later prompts; the generated chapters and
pages themselves remain the source of truth.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

NarrativePurpose = Literal["setup", "rising-tension", "fracture", "crisis", "resolution", "payoff"]
Pacing = Literal["slow", "medium", "fast"]


def stringify_items(value: Any) -> Any:
    if isinstance(value, list):
        return [item if isinstance(item, str) else str(item) for item in value]
    return value


def _stringify_values(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): v if isinstance(v, str) else str(v) for k, v in value.items()}
    return value


# ---------------------------------------------------------------------------
# State delta
# ---------------------------------------------------------------------------


class StateDelta(BaseModel):
    """What a generated chapter changed in the story state.

    Accepts both camelCase keys (as written by the model) and snake_case.
    """

    model_config = ConfigDict(populate_by_name=True)

    character_states: dict[str, str] = Field(default_factory=dict, alias="characterStates")
    world_changes: list[str] = Field(default_factory=list, alias="worldChanges")
    plot_progression: list[str] = Field(default_factory=list, alias="plotProgression")
    emotional_state: str = Field(default="", alias="emotionalState")
    unresolved_threads: list[str] = Field(default_factory=list, alias="unresolvedThreads")

    coerce_string_lists = field_validator(
        "world_changes", "plot_progression", "unresolved_threads", mode="before"
    )(stringify_items)
    coerce_character_states = field_validator("character_states", mode="before")(
        _stringify_values
    )


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


class Volume(BaseModel):
    """Top-level narrative arc."""

    volume_number: int = Field(ge=1)
    title: str = ""
    theme: str = ""
    emotional_promise: str = ""
    relationship_state_start: str = ""
    relationship_state_end: str = ""
    major_turning_point: str = ""
    target_chapter_count: int | None = None
    outline: str = ""
    is_complete: bool = False


class ActContext(BaseModel):
    """Narrative-stage metadata for the chapter being written.

    Acts are labels on chapters rather than containers; this carries the
    pacing and purpose the prompt should honor.
    """

    act_number: int = Field(default=1, ge=1)
    title: str = ""
    narrative_purpose: NarrativePurpose = "setup"
    pacing: Pacing = "medium"
    emotional_pressure: int = Field(default=5, ge=1, le=10)
    character_development_focus: str = ""


class ChapterOutline(BaseModel):
    """Binding outline metadata for a chapter."""

    title: str = ""
    summary: str = ""
    plot_beats: list[str] = Field(default_factory=list)
    emotional_intent: str = ""
    character_focus: list[str] = Field(default_factory=list)
    pacing_hint: str = ""
    raw_outline_text: str = ""


class Chapter(BaseModel):
    """A chapter within a volume.

    ``(volume_number, chapter_number)`` identifies a chapter uniquely.
    """

    volume_number: int = Field(default=1, ge=1)
    chapter_number: int = Field(ge=1)
    global_chapter_number: int | None = None
    title: str = ""
    target_word_count: int = 2000
    target_page_count: int = Field(default=3, ge=1)
    outline: str = ""
    act_tag: str | None = None
    summary: str = ""
    hook_to_next: str = ""
    emotional_beat: str = ""
    relationship_shift: str = ""
    scene_goal: str = ""
    state_delta: StateDelta | None = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.volume_number, self.chapter_number)


class Page(BaseModel):
    """The atomic generation unit within a chapter."""

    page_number: int = Field(ge=1)
    content: str = ""
    word_count: int = 0
    beat_coverage: str = ""
    narrative_momentum: str = ""
    locked: bool = False


class StructureContext(BaseModel):
    """Where a page sits in the book, for end-of-arc rules."""

    current_volume_number: int = 1
    total_volumes: int | None = None
    current_act_number: int | None = None
    total_acts_in_volume: int | None = None
    total_chapters_in_volume: int | None = None
    is_last_chapter: bool = False
    is_last_act: bool = False
    is_last_volume: bool = False


# ---------------------------------------------------------------------------
# Memory caches
# ---------------------------------------------------------------------------


class VolumeMemory(BaseModel):
    """Long-term arc tracking for a volume."""

    unresolved_arcs: list[str] = Field(default_factory=list)
    character_progression: dict[str, str] = Field(default_factory=dict)
    relationship_evolution: str = ""
    thematic_threads: list[str] = Field(default_factory=list)
    promises_made: list[str] = Field(default_factory=list)
    promises_fulfilled: list[str] = Field(default_factory=list)


class ActMemory(BaseModel):
    """Mid-term tension tracking for the current act."""

    current_tension_level: int = Field(default=5, ge=0, le=10)
    emotional_direction: str = ""
    active_conflicts: list[str] = Field(default_factory=list)
    proximity_events: list[str] = Field(default_factory=list)
    misunderstandings: list[str] = Field(default_factory=list)
