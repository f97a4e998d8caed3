from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from ..config import STREAK_MILESTONES
from ..utils.rounding import round_half_up
from .enums import StreakEvent
from .types import StreakState


@dataclass(frozen=True)
class StreakUpdate:
    state: StreakState
    event: Optional[StreakEvent]
    is_new_milestone: bool = False
    milestone: Optional[int] = None
    broken_streak: Optional[int] = None  # length of the streak that just ended
    days_missed: int = 0

    @property
    def changed(self) -> bool:
        return self.event is not None

    @property
    def current_streak(self) -> int:
        return self.state.current_streak

    @property
    def longest_streak(self) -> int:
        return self.state.longest_streak


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def advance(state: StreakState, study_date: date, timezone: str, milestones=STREAK_MILESTONES) -> StreakUpdate:
    """
    Apply one study day to a streak.

    A day that was already counted (or lies before the last counted day)
    leaves the state untouched and produces no event.
    """
    broken_streak = None
    days_missed = 0

    if state.last_study_date is None:
        gap = None
    else:
        gap = days_between(state.last_study_date, study_date)
        if gap <= 0:
            return StreakUpdate(state=state, event=None)

    if gap == 1:
        current = state.current_streak + 1
        start = state.streak_start_date or study_date
        event = StreakEvent.CONTINUED
    else:
        if state.current_streak > 0:
            broken_streak = state.current_streak
            days_missed = gap - 1 if gap is not None else 0
        current = 1
        start = study_date
        event = StreakEvent.STARTED

    reached = set(state.milestones_reached)
    milestone = None
    if current in milestones and current not in reached:
        reached.add(current)
        milestone = current

    new_state = replace(
        state,
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_study_date=study_date,
        streak_start_date=start,
        timezone=timezone,
        milestones_reached=frozenset(reached),
        last_milestone=milestone if milestone is not None else state.last_milestone,
        total_study_days=state.total_study_days + 1,
    )
    return StreakUpdate(
        state=new_state,
        event=event,
        is_new_milestone=milestone is not None,
        milestone=milestone,
        broken_streak=broken_streak,
        days_missed=days_missed,
    )


@dataclass(frozen=True)
class StreakStats:
    total_active_streaks: int = 0
    average_streak_length: int = 0
    longest_active_streak: int = 0
    total_milestones_reached: int = 0


def streak_stats(rows) -> StreakStats:
    """Aggregate ``(current_streak, milestones_reached)`` pairs across users."""
    active = []
    milestones = 0
    for current, reached in rows:
        milestones += len(reached or ())
        if current > 0:
            active.append(current)

    if not active:
        return StreakStats(total_milestones_reached=milestones)
    return StreakStats(
        total_active_streaks=len(active),
        average_streak_length=round_half_up(sum(active) / len(active)),
        longest_active_streak=max(active),
        total_milestones_reached=milestones,
    )
