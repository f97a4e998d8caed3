"""
Time-of-day study recommendations.

Everything here is a pure function of a LearningPattern plus card counts; the
service layer supplies the counts and the caller-local clock.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..config import MAX_SESSION_MINUTES, MIN_SESSION_MINUTES
from ..utils.rounding import clamp, round_half_up
from .enums import SLOT_LABELS, SLOT_START_HOURS, EnergyLevel, Priority, TimeSlot, slot_for_hour
from .types import LearningPattern, SlotPerformance

MINUTES_PER_DAY = 24 * 60

OPTIMAL_SUCCESS_RATE = 0.75
OPTIMAL_MIN_REVIEWS = 5
NEXT_SLOT_SUCCESS_RATE = 0.7
RANKED_MIN_REVIEWS = 3
RANKED_SLOTS = 3
WAIT_CONFIDENCE = 0.6
MAX_SLOT_CONFIDENCE = 0.95


@dataclass(frozen=True)
class SessionSize:
    duration: int  # minutes
    expected_cards: int


@dataclass(frozen=True)
class ImmediateRecommendation:
    action: str
    reasoning: str
    estimated_duration: int
    expected_cards: int
    confidence: float


@dataclass(frozen=True)
class TodayRecommendation:
    current_time_slot: TimeSlot
    due_cards_count: int
    new_cards_available: int
    energy_level: EnergyLevel
    is_optimal_time: bool
    next_optimal_time: Optional[TimeSlot] = None
    immediate: Optional[ImmediateRecommendation] = None


@dataclass(frozen=True)
class SlotRecommendation:
    time_slot: TimeSlot
    start_time: str  # HH:MM
    duration: int
    expected_cards: int
    confidence: float
    reasoning: str
    priority: Priority


@dataclass(frozen=True)
class DailySchedule:
    date: date
    recommendations: tuple
    total_estimated_cards: int
    estimated_study_time: int
    optimal_time_slot: TimeSlot


def session_size(learning_velocity: float, available_cards: int, success_rate: float) -> SessionSize:
    """Size a session from cards-per-minute, bounded to a focused 15-45 minutes."""
    adjusted_rate = learning_velocity / MINUTES_PER_DAY * success_rate

    if adjusted_rate > 0:
        raw = available_cards / adjusted_rate
    else:
        raw = math.inf if available_cards > 0 else 0.0

    duration = round_half_up(clamp(raw, MIN_SESSION_MINUTES, MAX_SESSION_MINUTES))
    expected = round_half_up(adjusted_rate * duration) if adjusted_rate > 0 else 0
    return SessionSize(duration=duration, expected_cards=max(0, min(expected, available_cards)))


def energy_level(success_rate: float) -> EnergyLevel:
    if success_rate > 0.8:
        return EnergyLevel.HIGH
    if success_rate < 0.6:
        return EnergyLevel.LOW
    return EnergyLevel.MEDIUM


def study_priority(performance: SlotPerformance, due_count: int, is_top_slot: bool) -> Priority:
    strong = performance.success_rate >= 0.8
    if is_top_slot and due_count > 10 and strong:
        return Priority.HIGH
    if strong and performance.review_count >= 10 and due_count >= 5:
        return Priority.HIGH
    if due_count < 5 or performance.success_rate < 0.6:
        return Priority.LOW
    return Priority.MEDIUM


def is_optimal(performance: SlotPerformance) -> bool:
    return performance.success_rate > OPTIMAL_SUCCESS_RATE and performance.review_count >= OPTIMAL_MIN_REVIEWS


def next_optimal_slot(pattern: LearningPattern, current_hour: int) -> Optional[TimeSlot]:
    candidates = [
        slot
        for slot, perf in pattern.time_of_day_performance.items()
        if SLOT_START_HOURS[slot] > current_hour
        and perf.success_rate > NEXT_SLOT_SUCCESS_RATE
        and perf.review_count >= RANKED_MIN_REVIEWS
    ]
    candidates.sort(key=lambda s: pattern.slot(s).success_rate, reverse=True)
    return candidates[0] if candidates else None


def today_recommendation(
    pattern: Optional[LearningPattern],
    due_count: int,
    new_count: int,
    now_local: datetime,
) -> TodayRecommendation:
    current_slot = slot_for_hour(now_local.hour)

    if pattern is None:
        return TodayRecommendation(
            current_time_slot=current_slot,
            due_cards_count=due_count,
            new_cards_available=new_count,
            energy_level=EnergyLevel.MEDIUM,
            is_optimal_time=False,
        )

    current = pattern.slot(current_slot)
    optimal = is_optimal(current)
    next_slot = next_optimal_slot(pattern, now_local.hour)

    immediate = None
    if due_count > 0 and optimal:
        size = session_size(pattern.learning_velocity, due_count, current.success_rate)
        immediate = ImmediateRecommendation(
            action="Start studying now",
            reasoning=(
                f"This is your optimal study time with "
                f"{round_half_up(current.success_rate * 100)}% success rate"
            ),
            estimated_duration=size.duration,
            expected_cards=size.expected_cards,
            confidence=current.success_rate,
        )
    elif due_count > 0 and next_slot is not None:
        immediate = ImmediateRecommendation(
            action="Wait for optimal time",
            reasoning=f"Consider waiting until {SLOT_LABELS[next_slot]} for better performance",
            estimated_duration=0,
            expected_cards=0,
            confidence=WAIT_CONFIDENCE,
        )

    return TodayRecommendation(
        current_time_slot=current_slot,
        due_cards_count=due_count,
        new_cards_available=new_count,
        energy_level=energy_level(current.success_rate),
        is_optimal_time=optimal,
        next_optimal_time=next_slot,
        immediate=immediate,
    )


def ranked_slots(pattern: LearningPattern):
    """Best-performing slots with enough history, best first."""
    ranked = [
        (slot, perf)
        for slot, perf in pattern.time_of_day_performance.items()
        if perf.review_count >= RANKED_MIN_REVIEWS
    ]
    ranked.sort(key=lambda item: item[1].success_rate, reverse=True)
    return ranked[:RANKED_SLOTS]


def _reasoning(slot: TimeSlot, perf: SlotPerformance) -> str:
    text = (
        f"Based on your {round_half_up(perf.success_rate * 100)}% success rate "
        f"during {SLOT_LABELS[slot].lower()}"
    )
    if perf.review_count >= 10:
        text += f" ({perf.review_count} previous sessions)"
    return text


def daily_schedule(pattern: LearningPattern, day: date, due_count: int) -> DailySchedule:
    ranked = ranked_slots(pattern)
    top_slot = ranked[0][0] if ranked else None

    recommendations = []
    for slot, perf in ranked:
        size = session_size(pattern.learning_velocity, due_count, perf.success_rate)
        if size.expected_cards == 0:
            continue
        recommendations.append(
            SlotRecommendation(
                time_slot=slot,
                start_time=f"{SLOT_START_HOURS[slot]:02d}:00",
                duration=size.duration,
                expected_cards=size.expected_cards,
                confidence=min(MAX_SLOT_CONFIDENCE, perf.success_rate * (perf.review_count / 20)),
                reasoning=_reasoning(slot, perf),
                priority=study_priority(perf, due_count, slot == top_slot),
            )
        )

    return DailySchedule(
        date=day,
        recommendations=tuple(recommendations),
        total_estimated_cards=sum(r.expected_cards for r in recommendations),
        estimated_study_time=sum(r.duration for r in recommendations),
        optimal_time_slot=recommendations[0].time_slot if recommendations else TimeSlot.MORNING,
    )


def weekly_recommendation(pattern: Optional[LearningPattern], per_day_due_counts):
    """``per_day_due_counts`` is an ordered iterable of (date, due_count)."""
    if pattern is None:
        return []
    return [daily_schedule(pattern, day, due_count) for day, due_count in per_day_due_counts]
