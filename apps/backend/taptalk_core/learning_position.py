"""Learning position estimate for conversation difficulty.

NOTE: the score is a heuristic composite of assessment sub-scores and practice
volume. It is not a statistical percentile; a real percentile needs
cohort-level aggregation. Do not present it as a standardized-test equivalent.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, field_validator


SUBSCORE_WEIGHTS: dict[str, float] = {
    "grammar": 0.25,
    "vocabulary": 0.30,
    "fluency": 0.25,
    "comprehension": 0.20,
}

GRADE_SCORES: dict[str, int] = {
    "K": 25,
    "1-2": 35,
    "3-4": 45,
    "5-6": 52,
    "7-8": 60,
    "9-10": 68,
    "11-12": 76,
    "College": 84,
}
MISSING_GRADE_SCORE = 45
UNKNOWN_GRADE_SCORE = 50

CONSISTENCY_RATE_PER_SESSION = 0.25
CONSISTENCY_BONUS_CAP = 10.0
SCORE_MIN = 10
SCORE_MAX = 100

PREFERENCE_DIFFICULTY: dict[str, int] = {"easy": 2, "medium": 3, "hard": 4}


class Band(str, Enum):
    ADVANCED = "Advanced"
    INTERMEDIATE_HIGH = "Intermediate-High"
    INTERMEDIATE = "Intermediate"
    ELEMENTARY = "Elementary"
    BEGINNER = "Beginner"


# inclusive lower bounds, highest first
BAND_CUTOFFS: tuple[tuple[int, Band], ...] = (
    (85, Band.ADVANCED),
    (70, Band.INTERMEDIATE_HIGH),
    (50, Band.INTERMEDIATE),
    (30, Band.ELEMENTARY),
)


class LevelDetails(BaseModel):
    """Assessment sub-scores, each on a 0-100 scale."""

    grammar: float = 0.0
    vocabulary: float = 0.0
    fluency: float = 0.0
    comprehension: float = 0.0

    @field_validator("grammar", "vocabulary", "fluency", "comprehension", mode="before")
    @classmethod
    def _clamp_subscore(cls, raw: object) -> float:
        if raw is None:
            return 0.0
        try:
            value = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(value):
            return 0.0
        return max(0.0, min(100.0, value))

    def weighted_score(self) -> float:
        return (
            self.grammar * SUBSCORE_WEIGHTS["grammar"]
            + self.vocabulary * SUBSCORE_WEIGHTS["vocabulary"]
            + self.fluency * SUBSCORE_WEIGHTS["fluency"]
            + self.comprehension * SUBSCORE_WEIGHTS["comprehension"]
        )


class LearningPosition(BaseModel):
    composite_score: int
    band: Band
    target_difficulty: int


def score_from_grade(grade: str | None) -> int:
    """Map a coarse grade label (`K`, `1-2`, ..., `College`) to a base score."""
    if grade is None or not str(grade).strip():
        return MISSING_GRADE_SCORE
    label = str(grade).strip()
    if label in GRADE_SCORES:
        return GRADE_SCORES[label]
    folded = label.casefold()
    for key, score in GRADE_SCORES.items():
        if key.casefold() == folded:
            return score
    return UNKNOWN_GRADE_SCORE


def consistency_bonus(session_count: float | None) -> float:
    try:
        sessions = float(session_count or 0)
    except (TypeError, ValueError):
        sessions = 0.0
    if math.isnan(sessions) or sessions < 0:
        sessions = 0.0
    return min(CONSISTENCY_BONUS_CAP, sessions * CONSISTENCY_RATE_PER_SESSION)


def band_for_score(score: int) -> Band:
    for cutoff, band in BAND_CUTOFFS:
        if score >= cutoff:
            return band
    return Band.BEGINNER


def difficulty_for(score: int, preference: str | None = None) -> int:
    """Explicit easy/medium/hard wins; anything else derives from the score."""
    if isinstance(preference, str):
        chosen = PREFERENCE_DIFFICULTY.get(preference.strip().lower())
        if chosen is not None:
            return chosen
    if score >= 85:
        return 4
    if score >= 60:
        return 3
    return 2


def _coerce_details(level_details: LevelDetails | Mapping[str, Any] | None) -> LevelDetails | None:
    if level_details is None or isinstance(level_details, LevelDetails):
        return level_details
    if isinstance(level_details, Mapping):
        if not level_details:
            return None
        return LevelDetails.model_validate(dict(level_details))
    return None


def estimate_learning_position(
    level_details: LevelDetails | Mapping[str, Any] | None = None,
    current_level: str | None = None,
    session_count: int | None = 0,
    difficulty_preference: str | None = None,
) -> LearningPosition:
    """Combine sub-scores (or the grade fallback) and practice volume.

    >>> estimate_learning_position(None, "9-10", 40).composite_score
    78
    """
    details = _coerce_details(level_details)
    base = details.weighted_score() if details is not None else float(score_from_grade(current_level))
    raw = base + consistency_bonus(session_count)
    composite = max(SCORE_MIN, min(SCORE_MAX, int(math.floor(raw + 0.5))))
    return LearningPosition(
        composite_score=composite,
        band=band_for_score(composite),
        target_difficulty=difficulty_for(composite, difficulty_preference),
    )
