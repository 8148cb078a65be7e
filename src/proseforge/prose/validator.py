"""Deterministic prose quality gate.

:func:`validate_prose` runs six checks in a fixed order and turns them into
a 0-100 score plus a regenerate/accept verdict:

1. canon leakage (hard reject, score 0, remaining checks skipped)
2. opening
3. paragraph rhythm and paragraph density
4. synopsis-style telling
5. scene elements (sensory, interiority, movement)
6. exposition density

Each sub-check is also exposed on its own so it can be tested and tuned in
isolation. Weights and pattern banks come from :mod:`proseforge.prose.patterns`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from proseforge.prose.patterns import (
    BAD_OPENING_PATTERNS,
    CANON_LEAKAGE_PATTERNS,
    DEFAULT_RUBRIC,
    EXPOSITION_ALTERNATION,
    OPENING_EXPOSITION_PATTERN,
    SCENE_ELEMENTS,
    SYNOPSIS_PATTERNS,
    ProseRubric,
    Severity,
)

_ROUGH_SENTENCE_SPLIT = re.compile(r"[.!?]+")

LEAKAGE_REGENERATION_REASON = "Chapter contains references to Story Bible internal structures"

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class ProseCheck:
    """A single deduction recorded by the validator."""

    name: str
    severity: Severity
    message: str
    deduction: int


@dataclass
class ProseValidation:
    """Outcome of :func:`validate_prose`.

    Attributes:
        is_valid: Score reached the pass mark.
        score: 0-100, floored at 0.
        issues: Problems that count toward regeneration.
        warnings: Softer notes; they still cost points.
        should_regenerate: Score below the pass mark or too many issues.
        regeneration_reason: Human-readable reason when regenerating.
        checks: Every deduction applied, in check order.
    """

    is_valid: bool
    score: int
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    should_regenerate: bool = False
    regeneration_reason: str | None = None
    checks: list[ProseCheck] = field(default_factory=list)

    def deduction_for(self, *names: str) -> int:
        """Total points lost to the named checks."""
        return sum(c.deduction for c in self.checks if c.name in names)

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing summary (score, issues, warnings)."""
        return {"score": self.score, "issues": list(self.issues), "warnings": list(self.warnings)}


@dataclass
class LeakageResult:
    has_leakage: bool
    matches: list[str] = field(default_factory=list)


@dataclass
class OpeningResult:
    is_valid: bool
    reason: str | None = None


@dataclass
class ParagraphAnalysis:
    average_sentences_per_paragraph: float
    longest_paragraph_sentences: int
    has_white_space: bool
    paragraph_count: int


@dataclass
class SynopsisResult:
    score: int
    matches: int


@dataclass
class SceneElementsResult:
    has_sensory_details: bool
    has_interiority: bool
    has_movement: bool
    score: int
    ratios: dict[str, float] = field(default_factory=dict)

    def present(self, name: str) -> bool:
        return {
            "sensory": self.has_sensory_details,
            "interiority": self.has_interiority,
            "movement": self.has_movement,
        }[name]


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def _count(pattern: re.Pattern[str], text: str) -> int:
    return sum(1 for _ in pattern.finditer(text))


def detect_canon_leakage(text: str) -> LeakageResult:
    """Find phrases that expose the canon scaffolding inside the prose.

    Returns:
        LeakageResult with the first match of each offending pattern.
    """
    matches = []
    for pattern in CANON_LEAKAGE_PATTERNS:
        found = pattern.search(text)
        if found:
            matches.append(found.group(0))
    return LeakageResult(has_leakage=bool(matches), matches=matches)


def validate_opening(text: str, rubric: ProseRubric = DEFAULT_RUBRIC) -> OpeningResult:
    """Reject cliché and exposition-first openings.

    Only the first paragraph (up to the first blank line) is inspected.

    Returns:
        OpeningResult; ``reason`` names the violated rule when invalid.
    """
    first_paragraph = text.lstrip().split("\n\n")[0]

    for pattern in BAD_OPENING_PATTERNS:
        if pattern.search(first_paragraph):
            return OpeningResult(
                is_valid=False,
                reason=(
                    "Opening violates scene-based rule: starts with "
                    f'"{first_paragraph[:50]}..."'
                ),
            )

    if _count(OPENING_EXPOSITION_PATTERN, first_paragraph) > rubric.opening_exposition_max:
        return OpeningResult(
            is_valid=False,
            reason="Opening contains too much exposition instead of immediate scene",
        )

    return OpeningResult(is_valid=True)


def analyze_paragraphs(text: str, rubric: ProseRubric = DEFAULT_RUBRIC) -> ParagraphAnalysis:
    """Measure paragraph rhythm.

    Sentences are counted roughly: pieces between runs of terminal
    punctuation that are longer than ``rubric.min_sentence_chars``.
    """
    paragraphs = [p for p in text.split("\n\n") if p.strip()]

    total_sentences = 0
    longest = 0
    for paragraph in paragraphs:
        count = sum(
            1
            for piece in _ROUGH_SENTENCE_SPLIT.split(paragraph)
            if len(piece.strip()) > rubric.min_sentence_chars
        )
        total_sentences += count
        longest = max(longest, count)

    average = total_sentences / len(paragraphs) if paragraphs else 0.0
    return ParagraphAnalysis(
        average_sentences_per_paragraph=average,
        longest_paragraph_sentences=longest,
        has_white_space=len(paragraphs) >= len(text) / rubric.chars_per_paragraph,
        paragraph_count=len(paragraphs),
    )


def detect_synopsis_writing(text: str, rubric: ProseRubric = DEFAULT_RUBRIC) -> SynopsisResult:
    """Score telling-not-showing on a 0 (scene) to 100 (synopsis) scale.

    Each telling phrase counts once; each paragraph longer than
    ``rubric.long_paragraph_chars`` counts double.
    """
    matches = sum(_count(pattern, text) for pattern in SYNOPSIS_PATTERNS)
    long_paragraphs = sum(1 for p in text.split("\n\n") if len(p) > rubric.long_paragraph_chars)
    matches += long_paragraphs * rubric.long_paragraph_synopsis_weight
    return SynopsisResult(
        score=min(100, matches * rubric.synopsis_points_per_match),
        matches=matches,
    )


def check_scene_elements(text: str) -> SceneElementsResult:
    """Measure sensory, interiority and movement words per 100 words."""
    per_hundred = max(len(text.split()), 1) / 100

    ratios: dict[str, float] = {}
    present: dict[str, bool] = {}
    score = 0
    for element in SCENE_ELEMENTS:
        hits = sum(_count(pattern, text) for pattern in element.patterns)
        ratios[element.name] = hits / per_hundred
        present[element.name] = ratios[element.name] > element.min_ratio
        if present[element.name]:
            score += element.score_weight

    return SceneElementsResult(
        has_sensory_details=present["sensory"],
        has_interiority=present["interiority"],
        has_movement=present["movement"],
        score=score,
        ratios=ratios,
    )


def count_exposition(text: str) -> int:
    """Count exposition phrases across the whole text."""
    return _count(EXPOSITION_ALTERNATION, text)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def validate_prose(text: str, rubric: ProseRubric = DEFAULT_RUBRIC) -> ProseValidation:
    """Score generated chapter or page prose.

    Args:
        text: Full generated text.
        rubric: Thresholds and deductions to apply.

    Returns:
        ProseValidation with score, issues, warnings and verdict.
    """
    leakage = detect_canon_leakage(text)
    if leakage.has_leakage:
        message = f"CANON LEAKAGE DETECTED: {', '.join(leakage.matches)}"
        return ProseValidation(
            is_valid=False,
            score=0,
            issues=[message],
            should_regenerate=True,
            regeneration_reason=LEAKAGE_REGENERATION_REASON,
            checks=[ProseCheck("canon_leakage", "issue", message, 100)],
        )

    checks: list[ProseCheck] = []

    def deduct(name: str, severity: Severity, message: str, points: int) -> None:
        checks.append(ProseCheck(name, severity, message, points))

    opening = validate_opening(text, rubric)
    if not opening.is_valid:
        deduct("opening", "issue", f"Bad opening: {opening.reason}", rubric.bad_opening_deduction)

    paragraphs = analyze_paragraphs(text, rubric)
    if paragraphs.average_sentences_per_paragraph > rubric.max_average_sentences:
        deduct(
            "paragraph_rhythm",
            "issue",
            f"Paragraphs too long (avg {paragraphs.average_sentences_per_paragraph:.1f} "
            "sentences, target: 1-3)",
            rubric.average_sentences_deduction,
        )
    if paragraphs.longest_paragraph_sentences > rubric.max_paragraph_sentences:
        deduct(
            "paragraph_rhythm",
            "issue",
            f"Unbroken paragraph detected ({paragraphs.longest_paragraph_sentences} sentences)",
            rubric.long_paragraph_deduction,
        )
    if not paragraphs.has_white_space:
        deduct(
            "paragraph_density",
            "issue",
            "Insufficient white space / paragraph breaks",
            rubric.white_space_deduction,
        )

    synopsis = detect_synopsis_writing(text, rubric)
    if synopsis.score > rubric.synopsis_issue_above:
        deduct(
            "synopsis",
            "issue",
            f"Synopsis-style writing detected (score: {synopsis.score}/100)",
            rubric.synopsis_issue_deduction,
        )
    elif synopsis.score > rubric.synopsis_warning_above:
        deduct(
            "synopsis",
            "warning",
            f"Some telling instead of showing (score: {synopsis.score}/100)",
            rubric.synopsis_warning_deduction,
        )

    scene = check_scene_elements(text)
    for element in SCENE_ELEMENTS:
        if not scene.present(element.name):
            deduct(element.name, element.severity, element.message, element.deduction)

    exposition = count_exposition(text)
    if exposition > rubric.exposition_max:
        deduct(
            "exposition",
            "issue",
            f"Exposition-heavy ({exposition} exposition phrases)",
            rubric.exposition_deduction,
        )

    raw_score = 100 - sum(c.deduction for c in checks)
    score = max(0, raw_score)
    issues = [c.message for c in checks if c.severity == "issue"]
    warnings = [c.message for c in checks if c.severity == "warning"]
    should_regenerate = raw_score < rubric.pass_score or len(issues) > rubric.max_issues

    return ProseValidation(
        is_valid=raw_score >= rubric.pass_score,
        score=score,
        issues=issues,
        warnings=warnings,
        should_regenerate=should_regenerate,
        regeneration_reason=(
            f"Prose quality below threshold (score: {score}/100)" if should_regenerate else None
        ),
        checks=checks,
    )
