"""Story canon models.

Two shapes live here: the raw material a writer supplies
(:class:`StoryCanonInput`) and the structured, lockable canon that every
generation reads (:class:`StoryCanon`). :class:`GeneratedStoryBible` is the
JSON contract for the bible-generation call that bridges the two.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Characters
# ---------------------------------------------------------------------------


class CharacterRecord(BaseModel):
    """Canonical name record parsed from a character roster line."""

    model_config = ConfigDict(frozen=True)

    full_name: str = Field(min_length=1)
    short_name: str = Field(min_length=1)
    description: str | None = None


# ---------------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------------


class CanonMetadata(BaseModel):
    """Book-level settings supplied alongside the canon text."""

    title: str = ""
    genre: str = ""
    pov: str = ""
    tone: str = ""
    target_word_count: int | None = None


class StoryCanonInput(BaseModel):
    """Everything the writer typed before the bible was generated."""

    core_whitepaper: str = ""
    characters_input: str = ""
    settings_input: str = ""
    story_outline: str = ""
    metadata: CanonMetadata = Field(default_factory=CanonMetadata)
    constraints: str = ""


# ---------------------------------------------------------------------------
# Generated bible (LLM output schema)
# ---------------------------------------------------------------------------


class CharacterProfile(BaseModel):
    full_name: str = ""
    short_name: str = ""
    personality: str = ""
    traits: list[str] = Field(default_factory=list)
    relationships: str = ""
    arc: str = ""


class WorldSetting(BaseModel):
    location: str = ""
    description: str = ""
    atmosphere: str = ""
    social_rules: str = ""


class Faction(BaseModel):
    name: str
    description: str = ""
    goals: str = ""
    members: str = ""


class TimelineEvent(BaseModel):
    period: str = ""
    event: str = ""


class NarrativeIntent(BaseModel):
    pacing: str = ""
    emotional_journey: str = ""
    structure: str = ""


def _stringify_items(value: Any) -> Any:
    """Coerce list items to strings; models occasionally emit objects."""
    if isinstance(value, list):
        return [item if isinstance(item, str) else str(item) for item in value]
    return value


class GeneratedStoryBible(BaseModel):
    """Structured bible as returned by the bible-generation call.

    Every field has a default so that a partial answer still parses; the
    structural checks in :mod:`proseforge.canon.bible` report what is missing.
    """

    core_premise: str = ""
    themes: list[str] = Field(default_factory=list)
    character_profiles: list[CharacterProfile] = Field(default_factory=list)
    world_settings: list[WorldSetting] = Field(default_factory=list)
    world_rules: list[str] = Field(default_factory=list)
    factions: list[Faction] = Field(default_factory=list)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    hard_constraints: list[str] = Field(default_factory=list)
    soft_guidelines: list[str] = Field(default_factory=list)
    narrative_intent: NarrativeIntent = Field(default_factory=NarrativeIntent)
    technology_magic_rules: list[str] = Field(default_factory=list)

    coerce_string_lists = field_validator(
        "themes",
        "world_rules",
        "hard_constraints",
        "soft_guidelines",
        "technology_magic_rules",
        mode="before",
    )(_stringify_items)


# ---------------------------------------------------------------------------
# Locked canon
# ---------------------------------------------------------------------------


class StoryCanon(BaseModel):
    """Authoritative world and character specification for a book.

    Once ``locked`` is set, generation treats every field as binding. The
    model is frozen; it is read-only input to each generation request.
    """

    model_config = ConfigDict(frozen=True)

    whitepaper: str = ""
    characters: list[CharacterRecord] = Field(default_factory=list)
    settings: str = ""
    core_premise: str = ""
    world_rules: list[str] = Field(default_factory=list)
    technology_magic_rules: list[str] = Field(default_factory=list)
    hard_constraints: list[str] = Field(default_factory=list)
    soft_guidelines: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    factions: list[Faction] = Field(default_factory=list)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    character_profiles: list[CharacterProfile] = Field(default_factory=list)
    world_settings: list[WorldSetting] = Field(default_factory=list)
    metadata: CanonMetadata = Field(default_factory=CanonMetadata)
    locked: bool = False
