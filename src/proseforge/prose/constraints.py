"""House-style constraints injected into every prose-generation prompt.

The validator enforces these rules after the fact; stating them up front
keeps regenerations rare.
"""

from __future__ import annotations

# (heading, rules) in prompt order
PROSE_CONSTRAINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "CANON SANITATION (ABSOLUTE)",
        (
            'NEVER mention "Story Bible", "World Rules", "Lore Timeline",'
            " or any internal structures",
            'NEVER use phrases like "According to the rules..." or "As stated in the canon..."',
            "Apply world rules IMPLICITLY - never quote or name them",
            "NO parenthetical canon labels or meta-explanations",
        ),
    ),
    (
        "SCENE-BASED PROSE (REQUIRED)",
        (
            "Write in SCENES, not summaries",
            'Show action happening NOW, not "they talked about X"',
            "Use sensory details, physical movement, and character interiority",
            "NO synopsis-style writing",
        ),
    ),
    (
        "PARAGRAPH RHYTHM (STRICT)",
        (
            "Paragraphs: 1-3 sentences average",
            "Frequent line breaks for white space",
            "Vary sentence length for rhythm",
            "Dialogue always starts a new paragraph",
        ),
    ),
    (
        "OPENING SCENE RULE (HARD CONSTRAINT)",
        (
            "NEVER start with: waking up, morning routines, exposition dumps",
            "START with: motion, conversation, social pressure, or immediate sensory input",
            "Drop the reader into an active scene",
        ),
    ),
    (
        "SHOW DON'T TELL",
        (
            "Prefer implication over explanation",
            "Use dialogue and action to reveal information",
            "Blend internal monologue with action",
            'Avoid phrases like "had always been", "everyone knew", "it was known"',
        ),
    ),
    (
        "EMOTIONAL DEPTH",
        (
            "Include character thoughts and feelings",
            "Show physical reactions to emotions",
            "Vary emotional tone throughout the text",
            "Avoid flat, reportorial narration",
        ),
    ),
)


def get_prose_quality_prompt() -> str:
    """Render the prose constraints as a numbered prompt block."""
    lines = ["CRITICAL PROSE CONSTRAINTS (FIRST-CLASS REQUIREMENTS):", ""]
    for number, (heading, rules) in enumerate(PROSE_CONSTRAINTS, start=1):
        lines.append(f"{number}. {heading}:")
        lines.extend(f"   - {rule}" for rule in rules)
        lines.append("")
    lines.append(
        "These are REQUIREMENTS, not suggestions. "
        "Violating them will trigger automatic regeneration."
    )
    return "\n".join(lines)
