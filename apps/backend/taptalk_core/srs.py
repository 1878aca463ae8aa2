"""Spaced-repetition scheduling for learned vocabulary items.

Two schedulers share this module:

- an SM-2 variant (`calculate_sm2`) that grows intervals by a per-item ease
  factor;
- a fixed ladder (`calculate_simple_interval`) for learners who prefer a
  predictable progression.

Quality ratings:

- 0 - complete failure, no recall
- 1 - incorrect, but recognised when shown
- 2 - incorrect, but the answer seemed easy once shown
- 3 - correct with serious difficulty
- 4 - correct with some hesitation
- 5 - perfect response

The scheduler is stateless: callers pass the stored fields in and persist the
returned record themselves.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_INTERVAL_DAYS = 180
SIMPLE_INTERVALS: tuple[int, ...] = (1, 3, 7, 14, 30, 60, 90, 180)
PASSING_QUALITY = 3


class ReviewStatus(str, Enum):
    ACTIVE = "active"
    MASTERED = "mastered"
    DIFFICULT = "difficult"


def review_status(repetitions: int, ease_factor: float, interval_days: int) -> ReviewStatus:
    """Classify an item from its scheduling fields.

    Always recomputed from the stored values; never persisted as the source
    of truth.
    """
    if repetitions >= 5 and interval_days >= 30:
        return ReviewStatus.MASTERED
    if ease_factor < 1.8 or (repetitions > 3 and interval_days <= 3):
        return ReviewStatus.DIFFICULT
    return ReviewStatus.ACTIVE


@dataclass(frozen=True)
class ReviewRecord:
    repetitions: int
    ease_factor: float
    interval_days: int
    next_review_at: datetime

    @property
    def status(self) -> ReviewStatus:
        return review_status(self.repetitions, self.ease_factor, self.interval_days)


@dataclass(frozen=True)
class LadderResult:
    interval_days: int
    next_review_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_quality(quality: float) -> int:
    try:
        value = float(quality)
    except (TypeError, ValueError):
        return 0
    if math.isnan(value):
        return 0
    return int(max(0.0, min(5.0, value)))


def _coerce_ease(ease_factor: float | None) -> float:
    if ease_factor is None:
        return DEFAULT_EASE_FACTOR
    try:
        value = float(ease_factor)
    except (TypeError, ValueError):
        return DEFAULT_EASE_FACTOR
    if not math.isfinite(value):
        return DEFAULT_EASE_FACTOR
    return max(MIN_EASE_FACTOR, value)


def _coerce_count(value: int | None, minimum: int, maximum: int | None = None) -> int:
    try:
        number = float(value or 0)
    except (TypeError, ValueError, OverflowError):
        return minimum
    if not math.isfinite(number):
        return minimum
    count = max(minimum, int(number))
    if maximum is not None:
        count = min(count, maximum)
    return count


def calculate_sm2(
    quality: int,
    repetitions: int,
    ease_factor: float = DEFAULT_EASE_FACTOR,
    interval_days: int = 1,
    *,
    now: datetime | None = None,
) -> ReviewRecord:
    """Apply one SM-2 review step.

    A failed recall (quality < 3) resets repetitions and the interval but
    leaves the ease factor untouched. A successful recall grows the interval
    (1 day, 3 days, then ``interval * ease``) and adjusts the ease factor by
    ``0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)``, floored at 1.3.
    """
    q = _clamp_quality(quality)
    reps = _coerce_count(repetitions, 0)
    ease = _coerce_ease(ease_factor)
    interval = _coerce_count(interval_days, 1, MAX_INTERVAL_DAYS)

    if q < PASSING_QUALITY:
        new_repetitions = 0
        new_interval = 1
        new_ease = ease
    else:
        new_repetitions = reps + 1
        if new_repetitions == 1:
            new_interval = 1
        elif new_repetitions == 2:
            new_interval = 3
        else:
            new_interval = _round_half_up(min(interval * ease, MAX_INTERVAL_DAYS))
        miss = 5 - q
        new_ease = max(MIN_EASE_FACTOR, ease + (0.1 - miss * (0.08 + miss * 0.02)))

    new_interval = max(1, min(new_interval, MAX_INTERVAL_DAYS))
    reviewed_at = now or _utcnow()
    return ReviewRecord(
        repetitions=new_repetitions,
        ease_factor=new_ease,
        interval_days=new_interval,
        next_review_at=reviewed_at + timedelta(days=new_interval),
    )


def calculate_simple_interval(
    quality: int,
    current_interval: int,
    *,
    now: datetime | None = None,
) -> LadderResult:
    """Move one rung along the fixed 1→3→7→14→30→60→90→180 day ladder.

    Off-ladder intervals advance from the first rung at or above them;
    intervals beyond the last rung stay at 180 days.
    """
    q = _clamp_quality(quality)
    current = _coerce_count(current_interval, 1, MAX_INTERVAL_DAYS)
    last_index = len(SIMPLE_INTERVALS) - 1

    if q < PASSING_QUALITY:
        new_interval = SIMPLE_INTERVALS[0]
    else:
        rung = next(
            (index for index, days in enumerate(SIMPLE_INTERVALS) if days >= current),
            last_index,
        )
        new_interval = SIMPLE_INTERVALS[min(rung + 1, last_index)]

    reviewed_at = now or _utcnow()
    return LadderResult(
        interval_days=new_interval,
        next_review_at=reviewed_at + timedelta(days=new_interval),
    )


_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_next_review(
    next_review_at: datetime,
    language: str = "en",
    *,
    now: datetime | None = None,
) -> str:
    """Render a short "when is the next review" label in English or Korean."""
    current = now or _utcnow()
    if next_review_at.tzinfo is None and current.tzinfo is not None:
        next_review_at = next_review_at.replace(tzinfo=current.tzinfo)
    elif next_review_at.tzinfo is not None and current.tzinfo is None:
        current = current.replace(tzinfo=next_review_at.tzinfo)
    diff_days = math.ceil((next_review_at - current).total_seconds() / 86400)
    korean = language == "ko"

    if diff_days <= 0:
        return "오늘 복습" if korean else "Review today"
    if diff_days == 1:
        return "내일 복습" if korean else "Review tomorrow"
    if diff_days <= 7:
        return f"{diff_days}일 후 복습" if korean else f"Review in {diff_days} days"
    if korean:
        return f"{next_review_at.month}월 {next_review_at.day}일 복습"
    return f"Review on {_MONTH_ABBR[next_review_at.month - 1]} {next_review_at.day}"


class ReviewScheduler:
    """Clock-bound facade over the scheduling functions.

    The clock is injected so tests can pin "now"; the scheduler itself keeps
    no per-item state.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def schedule(
        self,
        quality: int,
        repetitions: int,
        ease_factor: float = DEFAULT_EASE_FACTOR,
        interval_days: int = 1,
    ) -> ReviewRecord:
        return calculate_sm2(quality, repetitions, ease_factor, interval_days, now=self._clock())

    def schedule_simple(self, quality: int, current_interval: int) -> LadderResult:
        return calculate_simple_interval(quality, current_interval, now=self._clock())

    def describe(self, record: ReviewRecord, language: str = "en") -> str:
        return format_next_review(record.next_review_at, language, now=self._clock())
