from datetime import datetime, timedelta
from typing import Optional

from ..config import (
    DEFAULT_CONFIDENCE,
    FAST_LEARNER_MULTIPLIER,
    FAST_LEARNER_VELOCITY,
    MAX_EASE_DELTA,
    MAX_EASE_FACTOR,
    MAX_INTERVAL_DAYS,
    MAX_INTERVAL_MULTIPLIER,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_INTERVAL_MULTIPLIER,
    MIN_QUALITY,
    SLOW_LEARNER_MULTIPLIER,
    SLOW_LEARNER_VELOCITY,
    SUCCESS_QUALITY,
)
from ..utils.rounding import clamp, round_half_up
from .enums import DifficultyTrend, MasteryCategory
from .errors import InvalidArgument
from .types import CardState, LearningPattern, MasteryProfile, ScheduledReview


def validate_quality(quality) -> int:
    # bool is an int subclass; True must not pass as quality 1
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidArgument(f"quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidArgument(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
    return quality


def due_after(now: datetime, interval_days: int) -> datetime:
    return now + timedelta(days=interval_days)


def review(quality: int, state: CardState, now: datetime) -> CardState:
    """Plain SM-2 step. The ease factor has a floor here but no ceiling."""
    validate_quality(quality)

    if quality < SUCCESS_QUALITY:
        return CardState(
            repetition=0,
            ease_factor=state.ease_factor,
            interval=1,
            due_date=due_after(now, 1),
        )

    repetition = state.repetition + 1
    if repetition == 1:
        interval = 1
    elif repetition == 2:
        interval = 6
    else:
        interval = min(round_half_up(state.interval * state.ease_factor), MAX_INTERVAL_DAYS)

    miss = MAX_QUALITY - quality
    ease_factor = max(MIN_EASE_FACTOR, state.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))

    return CardState(
        repetition=repetition,
        ease_factor=ease_factor,
        interval=interval,
        due_date=due_after(now, interval),
    )


class NoAdjuster:
    name = "none"

    def adjust(self, quality: int, state: CardState):
        return state.ease_factor, state.interval, DEFAULT_CONFIDENCE


class MasteryAdjuster:
    name = "mastery"

    def __init__(self, profile: MasteryProfile):
        self.profile = profile

    def deltas(self, quality: int):
        p = self.profile
        ease_delta = 0.0
        multiplier = 1.0

        if p.mastery_level >= 0.8:
            ease_delta += 0.10
            multiplier *= 1.2
        elif p.mastery_level <= 0.3:
            ease_delta -= 0.05
            multiplier *= 0.8

        if p.difficulty_trend == DifficultyTrend.IMPROVING:
            ease_delta += 0.05
            multiplier *= 1.1
        elif p.difficulty_trend == DifficultyTrend.DECLINING:
            ease_delta -= 0.10
            multiplier *= 0.85

        if p.mastery_category == MasteryCategory.EXPERT:
            ease_delta += 0.15
            multiplier *= 1.3
        elif p.mastery_category == MasteryCategory.BEGINNER:
            ease_delta -= 0.05
            multiplier *= 0.9

        if quality == MAX_QUALITY and p.mastery_level > 0.7:
            ease_delta += 0.05
            multiplier *= 1.1

        return (
            clamp(ease_delta, -MAX_EASE_DELTA, MAX_EASE_DELTA),
            clamp(multiplier, MIN_INTERVAL_MULTIPLIER, MAX_INTERVAL_MULTIPLIER),
        )

    def adjust(self, quality: int, state: CardState):
        ease_delta, multiplier = self.deltas(quality)
        ease_factor = clamp(state.ease_factor + ease_delta, MIN_EASE_FACTOR, MAX_EASE_FACTOR)
        interval = max(1, round_half_up(state.interval * multiplier))
        return ease_factor, interval, max(DEFAULT_CONFIDENCE, self.profile.confidence_level)


class PatternAdjuster:
    name = "pattern"

    def __init__(self, pattern: LearningPattern):
        self.pattern = pattern

    def adjust(self, quality: int, state: CardState):
        velocity = self.pattern.learning_velocity
        interval = state.interval
        if velocity > FAST_LEARNER_VELOCITY:
            interval = round_half_up(interval * FAST_LEARNER_MULTIPLIER)
        elif velocity < SLOW_LEARNER_VELOCITY:
            interval = max(1, round_half_up(interval * SLOW_LEARNER_MULTIPLIER))
        return state.ease_factor, interval, DEFAULT_CONFIDENCE


def select_adjuster(mastery: Optional[MasteryProfile], pattern: Optional[LearningPattern]):
    # Mastery data, when present, always wins over the aggregate pattern.
    if mastery is not None:
        return MasteryAdjuster(mastery)
    if pattern is not None:
        return PatternAdjuster(pattern)
    return NoAdjuster()


def schedule_review(
    quality: int,
    before: CardState,
    now: datetime,
    mastery: Optional[MasteryProfile] = None,
    pattern: Optional[LearningPattern] = None,
) -> ScheduledReview:
    """
    SM-2 followed by at most one personalization layer.

    Adjusters only run on successful reviews. The final ease factor is kept
    inside [MIN_EASE_FACTOR, MAX_EASE_FACTOR] whichever path was taken, and the
    interval never exceeds MAX_INTERVAL_DAYS.
    """
    base = review(quality, before, now)

    adjuster = select_adjuster(mastery, pattern) if quality >= SUCCESS_QUALITY else NoAdjuster()
    ease_factor, interval, confidence = adjuster.adjust(quality, base)
    interval = min(interval, MAX_INTERVAL_DAYS)

    after = CardState(
        repetition=base.repetition,
        ease_factor=clamp(ease_factor, MIN_EASE_FACTOR, MAX_EASE_FACTOR),
        interval=interval,
        due_date=due_after(now, interval),
    )
    return ScheduledReview(
        before=before,
        after=after,
        quality=quality,
        confidence=confidence,
        adjuster=adjuster.name,
    )
