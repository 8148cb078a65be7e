"""Fold a chapter's state delta into the narrative memory caches.

The caches only feed later prompts. Both functions return new objects and
leave their inputs untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from proseforge.models.structure import ActMemory, VolumeMemory

if TYPE_CHECKING:
    from proseforge.models.structure import StateDelta


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(item.strip())
    return result


def merge_state_delta(volume_memory: VolumeMemory | None, state_delta: StateDelta) -> VolumeMemory:
    """Merge a chapter's state delta into the volume cache.

    Arcs previously unresolved that the delta no longer lists move to
    ``promises_fulfilled``; newly opened ones are added to ``promises_made``.
    Character states overwrite earlier entries.

    Args:
        volume_memory: Current cache, or None for the first chapter.
        state_delta: Delta produced with the accepted chapter.

    Returns:
        Updated VolumeMemory.
    """
    memory = volume_memory or VolumeMemory()
    still_open = _dedupe(state_delta.unresolved_threads)
    open_keys = {arc.lower() for arc in still_open}

    resolved = [arc for arc in memory.unresolved_arcs if arc.strip().lower() not in open_keys]
    if not state_delta.unresolved_threads:
        # An empty list says nothing about resolution
        resolved = []
        still_open = list(memory.unresolved_arcs)

    known = {arc.strip().lower() for arc in memory.unresolved_arcs}
    opened = [arc for arc in still_open if arc.lower() not in known]

    progression = dict(memory.character_progression)
    progression.update(state_delta.character_states)

    return memory.model_copy(
        update={
            "unresolved_arcs": still_open,
            "character_progression": progression,
            "promises_made": _dedupe([*memory.promises_made, *opened]),
            "promises_fulfilled": _dedupe([*memory.promises_fulfilled, *resolved]),
        }
    )


def update_act_memory(
    act_memory: ActMemory | None,
    state_delta: StateDelta,
    tension_level: int | None = None,
) -> ActMemory:
    """Record the latest tension and emotional direction for the act.

    Args:
        act_memory: Current cache, or None.
        state_delta: Delta produced with the accepted chapter.
        tension_level: New tension (0-10); unchanged when None.

    Returns:
        Updated ActMemory.
    """
    memory = act_memory or ActMemory()
    level = memory.current_tension_level if tension_level is None else tension_level
    return memory.model_copy(
        update={
            "current_tension_level": min(10, max(0, level)),
            "emotional_direction": state_delta.emotional_state or memory.emotional_direction,
            "active_conflicts": _dedupe(
                [*memory.active_conflicts, *state_delta.unresolved_threads]
            ),
        }
    )
