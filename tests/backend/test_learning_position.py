from __future__ import annotations

import pytest

from taptalk_core.learning_position import (
    Band,
    LevelDetails,
    estimate_learning_position,
    score_from_grade,
)

EVEN_80 = {"grammar": 80, "vocabulary": 80, "fluency": 80, "comprehension": 80}


def test_even_subscores_without_sessions() -> None:
    position = estimate_learning_position(EVEN_80, session_count=0)

    assert position.composite_score == 80
    assert position.band == Band.INTERMEDIATE_HIGH
    assert position.band == "Intermediate-High"
    assert position.target_difficulty == 3


def test_explicit_preference_overrides_derived_difficulty() -> None:
    assert estimate_learning_position(EVEN_80, difficulty_preference="hard").target_difficulty == 4
    assert estimate_learning_position(EVEN_80, difficulty_preference="easy").target_difficulty == 2
    assert estimate_learning_position(EVEN_80, difficulty_preference="adaptive").target_difficulty == 3
    assert estimate_learning_position(EVEN_80, difficulty_preference="extreme").target_difficulty == 3


def test_vocabulary_carries_the_largest_weight() -> None:
    vocab_heavy = estimate_learning_position(
        LevelDetails(grammar=50, vocabulary=90, fluency=50, comprehension=50)
    )
    grammar_heavy = estimate_learning_position(
        LevelDetails(grammar=90, vocabulary=50, fluency=50, comprehension=50)
    )

    assert vocab_heavy.composite_score == 62
    assert grammar_heavy.composite_score == 60


def test_grade_fallback_with_capped_consistency_bonus() -> None:
    position = estimate_learning_position(None, current_level="9-10", session_count=40)

    assert position.composite_score == 78
    assert position.band == Band.INTERMEDIATE_HIGH
    assert estimate_learning_position(None, "9-10", 4000).composite_score == 78


@pytest.mark.parametrize(
    ("grade", "expected"),
    [("K", 25), ("1-2", 35), ("College", 84), ("college", 84), (" 7-8 ", 60), ("PhD", 50), (None, 45), ("", 45)],
)
def test_score_from_grade(grade, expected: int) -> None:
    assert score_from_grade(grade) == expected


def test_empty_subscores_fall_back_to_grade() -> None:
    assert estimate_learning_position({}, current_level="K").composite_score == 25


def test_composite_rounds_half_up() -> None:
    # 45 + 6 * 0.25 = 46.5
    assert estimate_learning_position(None, "3-4", 6).composite_score == 47


@pytest.mark.parametrize(
    ("details", "sessions", "expected_score", "expected_band", "expected_difficulty"),
    [
        ({"grammar": 0, "vocabulary": 0, "fluency": 0, "comprehension": 0}, 0, 10, Band.BEGINNER, 2),
        ({"grammar": 100, "vocabulary": 100, "fluency": 100, "comprehension": 100}, 40, 100, Band.ADVANCED, 4),
        ({"grammar": 85, "vocabulary": 85, "fluency": 85, "comprehension": 85}, 0, 85, Band.ADVANCED, 4),
        ({"grammar": 70, "vocabulary": 70, "fluency": 70, "comprehension": 70}, 0, 70, Band.INTERMEDIATE_HIGH, 3),
        ({"grammar": 60, "vocabulary": 60, "fluency": 60, "comprehension": 60}, 0, 60, Band.INTERMEDIATE, 3),
        ({"grammar": 50, "vocabulary": 50, "fluency": 50, "comprehension": 50}, 0, 50, Band.INTERMEDIATE, 2),
        ({"grammar": 30, "vocabulary": 30, "fluency": 30, "comprehension": 30}, 0, 30, Band.ELEMENTARY, 2),
        ({"grammar": 29, "vocabulary": 29, "fluency": 29, "comprehension": 29}, 0, 29, Band.BEGINNER, 2),
    ],
)
def test_band_and_difficulty_cut_points(
    details, sessions, expected_score, expected_band, expected_difficulty
) -> None:
    position = estimate_learning_position(details, session_count=sessions)

    assert position.composite_score == expected_score
    assert position.band == expected_band
    assert position.target_difficulty == expected_difficulty


def test_out_of_domain_inputs_are_coerced() -> None:
    details = LevelDetails(grammar=-20, vocabulary=150, fluency=None, comprehension="88")

    assert details.grammar == 0.0
    assert details.vocabulary == 100.0
    assert details.fluency == 0.0
    assert details.comprehension == 88.0

    negative_sessions = estimate_learning_position(None, "7-8", session_count=-12)
    assert negative_sessions.composite_score == 60
