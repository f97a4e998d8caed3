from enum import Enum


class StudyMode(str, Enum):
    BASIC = "basic"
    SPACED_REPETITION = "spaced-repetition"
    ADAPTIVE = "adaptive-spaced-repetition"


class TimeSlot(str, Enum):
    EARLY_MORNING = "early_morning"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    LATE_NIGHT = "late_night"


class DifficultyTier(str, Enum):
    EASY = "easyCards"
    MEDIUM = "mediumCards"
    HARD = "hardCards"


class DifficultyTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class MasteryCategory(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class StreakEvent(str, Enum):
    STARTED = "started"
    CONTINUED = "continued"
    BROKEN = "broken"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EnergyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HitType(str, Enum):
    HIT = "hit"
    MISS = "miss"
    EXPIRED = "expired"


# Representative start hour per slot, used for display and "later today" checks.
SLOT_START_HOURS = {
    TimeSlot.EARLY_MORNING: 7,
    TimeSlot.MORNING: 10,
    TimeSlot.AFTERNOON: 14,
    TimeSlot.EVENING: 18,
    TimeSlot.NIGHT: 20,
    TimeSlot.LATE_NIGHT: 1,
}

SLOT_LABELS = {
    TimeSlot.EARLY_MORNING: "Early Morning (5-9 AM)",
    TimeSlot.MORNING: "Morning (9 AM-1 PM)",
    TimeSlot.AFTERNOON: "Afternoon (1-5 PM)",
    TimeSlot.EVENING: "Evening (5-9 PM)",
    TimeSlot.NIGHT: "Night (9 PM-12 AM)",
    TimeSlot.LATE_NIGHT: "Late Night (12-5 AM)",
}


def slot_for_hour(hour: int) -> TimeSlot:
    if not 0 <= hour <= 23:
        raise ValueError(f"hour out of range: {hour}")
    if hour < 5:
        return TimeSlot.LATE_NIGHT
    if hour < 9:
        return TimeSlot.EARLY_MORNING
    if hour < 13:
        return TimeSlot.MORNING
    if hour < 17:
        return TimeSlot.AFTERNOON
    if hour < 21:
        return TimeSlot.EVENING
    return TimeSlot.NIGHT
