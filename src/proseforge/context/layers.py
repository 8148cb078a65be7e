"""The four memory layers of a generation prompt.

Global (canon), volume, act and local continuity. Each formatter is pure
and returns prompt text; empty sections render as "None" rather than being
dropped, so the generator sees that the slot exists.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from proseforge.canon.characters import format_character_canon
from proseforge.config import MAX_CONTINUITY_WINDOW

if TYPE_CHECKING:
    from proseforge.models.canon import StoryCanon
    from proseforge.models.structure import (
        ActContext,
        ActMemory,
        Chapter,
        Page,
        Volume,
        VolumeMemory,
    )

RULE = "=" * 61
PAGE_TAIL_CHARS = 500


def _banner(title: str) -> list[str]:
    return [RULE, title, RULE, ""]


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1)) or "None"


def _joined(items: list[str], sep: str = "; ") -> str:
    return sep.join(items) or "None"


def format_global_layer(canon: StoryCanon) -> str:
    """Layer 1: the locked story canon."""
    lines = _banner("LAYER 1: GLOBAL MEMORY (STORY CANON - AUTHORITATIVE)")

    if canon.core_premise:
        lines.extend(["PREMISE:", canon.core_premise, ""])

    character_block = format_character_canon(canon.characters)
    if character_block:
        lines.extend([character_block, ""])

    lines.extend(["WORLD RULES (MUST OBEY):", _numbered(canon.world_rules), ""])
    lines.append("LORE TIMELINE:")
    lines.append("\n".join(f"- {e.period}: {e.event}" for e in canon.timeline) or "None")
    lines.append("")
    lines.append("FACTIONS:")
    lines.append(
        "\n".join(f"- {f.name}: {f.description}\n  Goals: {f.goals}" for f in canon.factions)
        or "None"
    )
    lines.append("")
    lines.extend(
        [
            "TECHNOLOGY/MAGIC RULES (MUST OBEY):",
            _numbered(canon.technology_magic_rules),
            "",
            "THEMES & TONE:",
            _joined(canon.themes, ", "),
            "",
            "HARD CONSTRAINTS (ABSOLUTE - MUST NOT BE VIOLATED):",
            _numbered(canon.hard_constraints),
            "",
            "SOFT GUIDELINES (FOLLOW WHEN POSSIBLE):",
            _numbered(canon.soft_guidelines),
            "",
            "Apply all of the above implicitly. Never name or quote these sections in the prose.",
            RULE,
        ]
    )
    return "\n".join(lines)


def format_volume_layer(volume: Volume, memory: VolumeMemory | None = None) -> str:
    """Layer 2: the volume arc and its progress cache."""
    lines = _banner("LAYER 2: VOLUME MEMORY (LONG-TERM ARC)")
    lines.extend(
        [
            f'VOLUME {volume.volume_number}: "{volume.title}"',
            "",
            f"Theme: {volume.theme or 'Not specified'}",
            f"Emotional Promise: {volume.emotional_promise or 'Not specified'}",
            "Relationship Arc: "
            f"{volume.relationship_state_start or 'Unknown'} -> "
            f"{volume.relationship_state_end or 'Unknown'}",
            f"Major Turning Point: {volume.major_turning_point or 'Not specified'}",
        ]
    )
    if memory is not None:
        lines.extend(
            [
                "",
                "VOLUME PROGRESS TRACKING:",
                f"Unresolved Arcs: {_joined(memory.unresolved_arcs)}",
                f"Character Progression: {json.dumps(memory.character_progression)}",
                f"Relationship Evolution: {memory.relationship_evolution or 'Not tracked'}",
                f"Thematic Threads: {_joined(memory.thematic_threads)}",
                f"Promises Made: {_joined(memory.promises_made)}",
                f"Promises Fulfilled: {_joined(memory.promises_fulfilled)}",
            ]
        )
    lines.append(RULE)
    return "\n".join(lines)


def format_act_layer(act: ActContext, memory: ActMemory | None = None) -> str:
    """Layer 3: act purpose, pacing and tension cache."""
    lines = _banner("LAYER 3: ACT MEMORY (MID-TERM TENSION)")
    lines.extend(
        [
            f"ACT {act.act_number}: {act.title or act.narrative_purpose}",
            "",
            f"Narrative Purpose: {act.narrative_purpose}",
            f"Pacing: {act.pacing}",
            f"Emotional Pressure: {act.emotional_pressure}/10",
            f"Character Development Focus: {act.character_development_focus or 'General'}",
        ]
    )
    if memory is not None:
        lines.extend(
            [
                "",
                "ACT TENSION TRACKING:",
                f"Current Tension Level: {memory.current_tension_level}/10",
                f"Emotional Direction: {memory.emotional_direction or 'Not specified'}",
                f"Active Conflicts: {_joined(memory.active_conflicts)}",
                f"Proximity Events: {_joined(memory.proximity_events)}",
                f"Misunderstandings: {_joined(memory.misunderstandings)}",
            ]
        )
    lines.append(RULE)
    return "\n".join(lines)


def format_chapter_local_layer(previous_chapters: list[Chapter]) -> str:
    """Layer 4 for chapters: the previous chapter's state plus one line per earlier chapter."""
    lines = _banner("LAYER 4: LOCAL MEMORY (CHAPTER-TO-CHAPTER CONTINUITY)")

    if not previous_chapters:
        lines.append("This is the first chapter. There is no prior chapter to continue from.")
        lines.append(RULE)
        return "\n".join(lines)

    last = previous_chapters[-1]
    delta = last.state_delta
    lines.extend(
        [
            "IMMEDIATE CONTEXT (PREVIOUS CHAPTER):",
            f"Chapter {last.chapter_number} Summary: {last.summary or 'Not recorded'}",
            f"Emotional State: {(delta.emotional_state if delta else '') or 'Not specified'}",
            f"Unresolved Threads: {_joined(delta.unresolved_threads if delta else [])}",
            f"Character States: {json.dumps(delta.character_states if delta else {})}",
            f"Hook to This Chapter: {last.hook_to_next or 'None'}",
            "",
            "STRUCTURAL MEMORY (PREVIOUS CHAPTERS):",
            *(f"Ch {ch.chapter_number}: {ch.summary}" for ch in previous_chapters),
            "",
            "Pick up the unresolved threads above. Do not contradict any recorded state.",
            RULE,
        ]
    )
    return "\n".join(lines)


def format_page_local_layer(previous_pages: list[Page], window: int) -> str:
    """Layer 4 for pages: verbatim text of the last ``window`` pages.

    Args:
        previous_pages: Earlier pages of the same chapter, in page order.
        window: Maximum number of prior pages to include verbatim. Clamped
            to 0..MAX_CONTINUITY_WINDOW.

    Returns:
        Continuity block ending with the continue-exactly contract.
    """
    lines = _banner("LAYER 4: LOCAL MEMORY (PAGE-TO-PAGE CONTINUITY)")

    if not previous_pages:
        lines.append(
            "This is the first page of the chapter. Open inside a scene already in motion."
        )
        lines.append(RULE)
        return "\n".join(lines)

    window = min(max(window, 0), MAX_CONTINUITY_WINDOW)
    cut = max(len(previous_pages) - window, 0)
    omitted, recent = previous_pages[:cut], previous_pages[cut:]
    if omitted:
        lines.append(
            f"(Pages {omitted[0].page_number}-{omitted[-1].page_number} omitted; "
            "their beats are listed under beat coverage.)"
        )
        lines.append("")

    for page in recent:
        lines.extend([f"--- PAGE {page.page_number} (VERBATIM) ---", page.content.strip(), ""])

    last = previous_pages[-1]
    coverage = [p.beat_coverage for p in previous_pages if p.beat_coverage]
    lines.extend(
        [
            "LAST PAGE ENDED WITH:",
            last.content[-PAGE_TAIL_CHARS:].strip(),
            "",
            f"Beat coverage so far: {_joined(coverage, ', ')}",
            f"Momentum handed over: {last.narrative_momentum or 'Not recorded'}",
            "",
            "CONTINUE EXACTLY WHERE THE LAST PAGE LEFT OFF.",
            "No time jumps. No scene skips. Do not repeat or re-describe what already happened.",
            RULE,
        ]
    )
    return "\n".join(lines)
