"""Continuity and structure rules stated to the generator.

These blocks encode the book-level contract: only the very end of the book
may resolve the overarching conflict, outlines are binding, and the volume
outline bounds what the text may know about.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from proseforge.models.structure import ActContext, ChapterOutline

PACING_GUIDANCE: dict[str, str] = {
    "setup": "Introduce dynamics, establish baseline, subtle foreshadowing",
    "rising-tension": "Build misunderstandings, proximity events, emotional awareness",
    "fracture": "Confrontation, revelation, relationship strain",
    "crisis": "Peak emotional conflict, hard choices, vulnerability",
    "resolution": "Reconciliation, clarity, emotional payoff",
    "payoff": "Deliver on volume promises, satisfying closure for this volume only",
}

PACING_SPEED: dict[str, str] = {
    "slow": "character moments, emotional depth",
    "medium": "balanced scene and dialogue",
    "fast": "action and revelation",
}

FORBIDDEN_ENDING_LANGUAGE = ('"happily ever after"', '"The End"', "epilogue-style summaries")

_OPEN_ENDING_RULES = (
    "End with narrative momentum and tension left unresolved",
    "Do NOT resolve the climax or provide emotional closure",
    "Do NOT use conclusive language or wrap up the scene",
    "Stop at a natural micro-beat boundary that pulls toward what comes next",
)

_ARC_GUARD_RULES = (
    "Do NOT resolve volume-level conflicts",
    "Do NOT resolve act-level arcs",
    "Do NOT resolve relationship turning points prematurely",
)


def _forbidden_language_rule() -> str:
    return f"Never use {', '.join(FORBIDDEN_ENDING_LANGUAGE)}"


def ending_policy(
    unit: str,
    *,
    is_final_unit: bool,
    is_last_chapter: bool,
    is_last_volume: bool,
) -> str:
    """State how the unit being written may (or may not) end.

    Args:
        unit: "page" or "chapter".
        is_final_unit: This is the last page of its chapter, or for a
            chapter, the last chapter of its volume.
        is_last_chapter: The chapter is the last in its volume.
        is_last_volume: The volume is the last in the book.

    Returns:
        Policy block text.
    """
    label = unit.upper()
    terminal = is_final_unit and is_last_chapter and is_last_volume

    if terminal:
        return "\n".join(
            [
                f"THIS IS THE FINAL {label} OF THE BOOK",
                "You MAY resolve the overarching conflict and deliver the story's payoff.",
                "Resolve only what earlier chapters set up; introduce no new arcs.",
            ]
        )

    if not is_final_unit:
        return "\n".join(
            [
                f"THIS IS NOT THE FINAL {label}",
                *(f"- {rule}" for rule in _OPEN_ENDING_RULES),
                *(f"- {rule}" for rule in _ARC_GUARD_RULES),
                f"- {_forbidden_language_rule()}",
            ]
        )

    if unit == "page":
        scope = "this chapter"
        still_open = ("volume-level conflicts", "act-level arcs", "the book's overarching conflict")
    else:
        scope = "this volume"
        still_open = ("the book's overarching conflict",)

    return "\n".join(
        [
            f"THIS IS THE FINAL {label} OF {scope.upper()}",
            f"You MAY resolve the climax of {scope} and deliver its emotional payoff.",
            "BUT STILL FORBIDDEN:",
            *(f"- Resolving {item}" for item in still_open),
            f"- {_forbidden_language_rule()}",
            "- End on a hook that leaves the larger story open",
        ]
    )


def outline_enforcement(outline: ChapterOutline, act: ActContext | None = None) -> str:
    """Binding chapter-outline block: every beat appears, none are invented."""
    beats = "\n".join(f"{i}. {beat}" for i, beat in enumerate(outline.plot_beats, start=1))
    pacing = outline.pacing_hint or (act.pacing if act else "medium")
    return "\n".join(
        [
            "CRITICAL: OUTLINE BEAT ENFORCEMENT",
            "This chapter MUST strictly follow the outline. DO NOT deviate from these beats.",
            "",
            "ORIGINAL OUTLINE TEXT:",
            outline.raw_outline_text or "Not provided",
            "",
            "REQUIRED PLOT BEATS (MUST ALL APPEAR IN ORDER):",
            beats or "Not specified",
            "",
            "EMOTIONAL INTENT (REQUIRED):",
            outline.emotional_intent or "Not specified",
            "",
            "CHARACTER FOCUS (MUST FEATURE):",
            ", ".join(outline.character_focus) or "Not specified",
            "",
            f"PACING REQUIREMENT: {pacing} ({PACING_SPEED.get(pacing, pacing)})",
            "",
            "EXPANSION RULES:",
            "- EXPAND each beat into full scenes with dialogue, interiority and sensory detail",
            "- DO NOT skip or summarize any beat",
            "- DO NOT add beats that are not in the outline",
            "- DO NOT rush through scenes",
        ]
    )


def volume_outline_boundary(volume_outline: str) -> str:
    """Hard boundary block for the volume outline."""
    if not volume_outline.strip():
        return ""
    return "\n".join(
        [
            "VOLUME OUTLINE (BINDING BOUNDARY)",
            volume_outline.strip(),
            "",
            "Follow the volume outline strictly. Write nothing that implies knowledge of",
            "arcs, reveals or events beyond it.",
        ]
    )


def page_beat_plan(page_number: int, total_pages: int) -> str:
    """Which part of the chapter outline this page should cover."""
    plan: list[str] = []
    if page_number == 1:
        plan.append("- Page 1: Opening beats")
    if page_number == 2 and total_pages >= 3:
        plan.append("- Page 2: Escalation beats")
    if page_number == 3 and total_pages >= 4:
        plan.append("- Page 3: Turning beat")
    if page_number == total_pages - 1 and total_pages >= 4:
        plan.append(f"- Page {total_pages - 1}: Pre-climax tension")
    if page_number == total_pages:
        plan.append(f"- Page {total_pages}: Climax (final page only)")
    if not plan:
        plan.append(f"- Page {page_number}: Advance the next 1-2 micro-beats in outline order")
    return "\n".join(plan)
