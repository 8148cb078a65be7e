"""Pattern tables and scoring weights for prose quality checks.

Everything the validator scores against lives here as data: compiled
pattern banks plus a :class:`ProseRubric` of thresholds and deductions.
Tuning the house style means editing this module, not the validator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

Severity = Literal["issue", "warning"]


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# ---------------------------------------------------------------------------
# Canon leakage: prose naming its own generation scaffolding
# ---------------------------------------------------------------------------

CANON_LEAKAGE_PATTERNS = _compile(
    r"story bible",
    r"world rules",
    r"lore timeline",
    r"according to (the )?(canon|rules|bible)",
    r"as stated in (the )?(story bible|world rules|canon)",
    r"\(.*?(canon|bible|rule|constraint).*?\)",
    r"the (established|canonical) (rules|lore|world)",
    r"per (the )?(story bible|world rules)",
    r"as (per|defined in) (the )?(canon|bible)",
)

# ---------------------------------------------------------------------------
# Openings
# ---------------------------------------------------------------------------

BAD_OPENING_PATTERNS = _compile(
    r"^(I|He|She|They) woke",
    r"^(The|A) (sun|morning|dawn) (rose|broke|came)",
    r"^(I|He|She|They) (opened|rubbed) (my|his|her|their) eyes",
    r"^Another (day|morning)",
    r"^(I|He|She|They) (stretched|yawned)",
    r"^The alarm",
    r"^(I|He|She|They) got (out of bed|up)",
    r"^It was (a|another) (typical|normal|ordinary) (day|morning)",
)

OPENING_EXPOSITION_PATTERN = re.compile(
    r"had always been|for many years|in this world", re.IGNORECASE
)

# ---------------------------------------------------------------------------
# Telling instead of showing
# ---------------------------------------------------------------------------

EXPOSITION_PATTERNS = _compile(
    r"had always been",
    r"for (many|several) (years|months|weeks)",
    r"in (this|that|the) world",
    r"everyone knew (that)?",
    r"it was (well )?known (that)?",
)

# Counted as one alternation so overlapping phrases are not double-counted
EXPOSITION_ALTERNATION = re.compile(
    "|".join(p.pattern for p in EXPOSITION_PATTERNS), re.IGNORECASE
)

SYNOPSIS_PATTERNS = _compile(
    r"they (talked|discussed|argued) (about|for)",
    r"after (a while|some time|a few (minutes|hours))",
    r"eventually",
    r"over the (next|following) (few )?(days|weeks|hours)",
)

# ---------------------------------------------------------------------------
# Scene elements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SceneElement:
    """One scene ingredient measured as hits per 100 words.

    Attributes:
        name: Element key ("sensory", "interiority", "movement").
        patterns: Word banks whose hits are summed.
        min_ratio: Hits per 100 words must exceed this to count as present.
        score_weight: Points toward the 0-100 scene score when present.
        deduction: Points lost from the prose score when missing.
        severity: Whether a miss is an issue or only a warning.
        message: Text recorded when missing.
    """

    name: str
    patterns: tuple[re.Pattern[str], ...]
    min_ratio: float
    score_weight: int
    deduction: int
    severity: Severity
    message: str


SCENE_ELEMENTS: tuple[SceneElement, ...] = (
    SceneElement(
        name="sensory",
        patterns=_compile(
            r"\b(saw|heard|felt|smelled|tasted|touched)\b",
            r"\b(sound|sight|scent|smell|taste|texture)\b",
            r"\b(warm|cold|hot|cool|soft|hard|rough|smooth)\b",
            r"\b(bright|dark|dim|shadowy|glowing)\b",
        ),
        min_ratio=1.0,
        score_weight=33,
        deduction=15,
        severity="issue",
        message="Missing sensory details",
    ),
    SceneElement(
        name="interiority",
        patterns=_compile(
            r"\bthought\b",
            r"\bfelt\b",
            r"\bwondered\b",
            r"\brealized\b",
            r"\bknew\b",
        ),
        min_ratio=0.5,
        score_weight=33,
        deduction=5,
        severity="warning",
        message="Limited character interiority",
    ),
    SceneElement(
        name="movement",
        patterns=_compile(
            r"\b(walked|ran|moved|stepped|turned|reached|grabbed|pulled|pushed)\b",
            r"\b(stood|sat|leaned|bent|crouched|knelt)\b",
        ),
        min_ratio=1.0,
        score_weight=34,
        deduction=10,
        severity="issue",
        message="Missing physical movement/action",
    ),
)

# ---------------------------------------------------------------------------
# Rubric
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProseRubric:
    """Thresholds and deductions applied by the prose validator."""

    bad_opening_deduction: int = 30
    opening_exposition_max: int = 2

    max_average_sentences: float = 4.0
    average_sentences_deduction: int = 20
    max_paragraph_sentences: int = 8
    long_paragraph_deduction: int = 15
    min_sentence_chars: int = 10
    chars_per_paragraph: int = 500
    white_space_deduction: int = 10

    long_paragraph_chars: int = 800
    long_paragraph_synopsis_weight: int = 2
    synopsis_points_per_match: int = 10
    synopsis_issue_above: int = 30
    synopsis_issue_deduction: int = 20
    synopsis_warning_above: int = 15
    synopsis_warning_deduction: int = 10

    exposition_max: int = 10
    exposition_deduction: int = 15

    pass_score: int = 60
    max_issues: int = 3


DEFAULT_RUBRIC = ProseRubric()
