"""Pydantic models for canon, book structure, and generation output."""

from proseforge.models.canon import (
    CanonMetadata,
    CharacterProfile,
    CharacterRecord,
    Faction,
    GeneratedStoryBible,
    NarrativeIntent,
    StoryCanon,
    StoryCanonInput,
    TimelineEvent,
    WorldSetting,
)
from proseforge.models.generation import (
    CanonComplianceVerdict,
    ChapterDraft,
    OutlineChapterDraft,
    OutlineDraft,
    PageDraft,
    StoryStructureDraft,
    StructureActDraft,
    StructureChapterDraft,
)
from proseforge.models.structure import (
    ActContext,
    ActMemory,
    Chapter,
    ChapterOutline,
    NarrativePurpose,
    Pacing,
    Page,
    StateDelta,
    StructureContext,
    Volume,
    VolumeMemory,
)

__all__ = [
    "ActContext",
    "ActMemory",
    "CanonComplianceVerdict",
    "CanonMetadata",
    "Chapter",
    "ChapterDraft",
    "ChapterOutline",
    "CharacterProfile",
    "CharacterRecord",
    "Faction",
    "GeneratedStoryBible",
    "NarrativeIntent",
    "NarrativePurpose",
    "OutlineChapterDraft",
    "OutlineDraft",
    "Pacing",
    "Page",
    "PageDraft",
    "StateDelta",
    "StoryCanon",
    "StoryCanonInput",
    "StoryStructureDraft",
    "StructureActDraft",
    "StructureChapterDraft",
    "StructureContext",
    "TimelineEvent",
    "Volume",
    "VolumeMemory",
    "WorldSetting",
]
