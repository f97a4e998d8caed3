"""
Plain data carried between the store and the scheduling functions.

Nothing here touches Django; repositories convert ORM rows into these.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..config import DEFAULT_EASE_FACTOR, DEFAULT_INTERVAL, DEFAULT_REPETITION
from .enums import DifficultyTier, DifficultyTrend, MasteryCategory, TimeSlot


@dataclass(frozen=True)
class CardState:
    repetition: int = DEFAULT_REPETITION
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    due_date: Optional[datetime] = None  # None until the first review

    @classmethod
    def from_fields(cls, repetition, ease_factor, interval, due_date):
        """Build a state from nullable columns, defaulting whatever is missing."""
        return cls(
            repetition=DEFAULT_REPETITION if repetition is None else repetition,
            ease_factor=DEFAULT_EASE_FACTOR if ease_factor is None else ease_factor,
            interval=DEFAULT_INTERVAL if interval is None else interval,
            due_date=due_date,
        )


@dataclass(frozen=True)
class ScheduledReview:
    before: CardState
    after: CardState
    quality: int
    confidence: float
    adjuster: str

    @property
    def was_successful(self) -> bool:
        return self.quality >= 3


@dataclass(frozen=True)
class MasteryProfile:
    mastery_level: float
    confidence_level: float
    learning_velocity: float = 0.0
    difficulty_trend: DifficultyTrend = DifficultyTrend.STABLE
    mastery_category: MasteryCategory = MasteryCategory.INTERMEDIATE


@dataclass(frozen=True)
class SlotPerformance:
    success_rate: float = 0.0
    review_count: int = 0
    average_response_time: float = 0.0


@dataclass(frozen=True)
class TierPerformance:
    success_rate: float = 0.0
    average_interval: float = 0.0


@dataclass(frozen=True)
class RetentionPoint:
    interval: float
    retention_rate: float


@dataclass(frozen=True)
class LearningPattern:
    average_success_rate: float
    learning_velocity: float
    time_of_day_performance: dict = field(default_factory=dict)
    difficulty_patterns: dict = field(default_factory=dict)
    personal_ease_factor_bias: float = 0.0
    retention_curve: tuple = ()
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        # Every slot and tier is always present; absent ones count as "no data".
        slots = {s: self.time_of_day_performance.get(s, SlotPerformance()) for s in TimeSlot}
        tiers = {t: self.difficulty_patterns.get(t, TierPerformance()) for t in DifficultyTier}
        object.__setattr__(self, "time_of_day_performance", slots)
        object.__setattr__(self, "difficulty_patterns", tiers)

    def slot(self, slot: TimeSlot) -> SlotPerformance:
        return self.time_of_day_performance[slot]

    @classmethod
    def from_json(cls, *, average_success_rate, learning_velocity, time_of_day_performance,
                  difficulty_patterns, personal_ease_factor_bias=0.0, retention_curve=(),
                  last_updated=None):
        """
        Parse the stored JSON shape (camelCase inner keys). Unknown slot/tier keys
        are ignored; any other malformed value raises ValueError.
        """
        known_slots = {s.value for s in TimeSlot}
        known_tiers = {t.value for t in DifficultyTier}
        try:
            slots = {
                TimeSlot(key): SlotPerformance(
                    success_rate=float(value.get("successRate", 0.0)),
                    review_count=int(value.get("reviewCount", 0)),
                    average_response_time=float(value.get("averageResponseTime", 0.0)),
                )
                for key, value in (time_of_day_performance or {}).items()
                if key in known_slots
            }
            tiers = {
                DifficultyTier(key): TierPerformance(
                    success_rate=float(value.get("successRate", 0.0)),
                    average_interval=float(value.get("averageInterval", 0.0)),
                )
                for key, value in (difficulty_patterns or {}).items()
                if key in known_tiers
            }
            curve = tuple(
                RetentionPoint(float(p["interval"]), float(p["retentionRate"]))
                for p in (retention_curve or ())
            )
            return cls(
                average_success_rate=float(average_success_rate),
                learning_velocity=float(learning_velocity),
                time_of_day_performance=slots,
                difficulty_patterns=tiers,
                personal_ease_factor_bias=float(personal_ease_factor_bias),
                retention_curve=curve,
                last_updated=last_updated,
            )
        except (TypeError, KeyError, AttributeError) as exc:
            raise ValueError(f"malformed learning pattern: {exc!r}") from exc


@dataclass(frozen=True)
class ReviewSample:
    """The slice of a review log row the retention estimator needs."""

    review_date: datetime
    was_successful: bool
    ease_factor_before: float


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: Optional[date] = None
    streak_start_date: Optional[date] = None
    timezone: str = "UTC"
    milestones_reached: frozenset = frozenset()
    last_milestone: Optional[int] = None
    total_study_days: int = 0
