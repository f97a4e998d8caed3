import logging
from datetime import date, datetime, timedelta, timezone as dt_tz

import pytest
from django.urls import reverse

from scheduler.data.models import LearningPattern as LearningPatternRow
from scheduler.domain.enums import EnergyLevel, Priority, TimeSlot, slot_for_hour
from scheduler.domain.errors import InvalidArgument
from scheduler.domain.recommendations import (
    SessionSize,
    daily_schedule,
    energy_level,
    session_size,
    today_recommendation,
    weekly_recommendation,
)
from scheduler.domain.types import LearningPattern, SlotPerformance
from scheduler.services.recommendations import get_study_recommendations, get_today_study_recommendations

logger = logging.getLogger(__name__)

CARDS_PER_MINUTE = 24 * 60  # learning_velocity of one card per minute at 100% success


def local_time(hour):
    return datetime(2024, 4, 2, hour, 15, tzinfo=dt_tz.utc)


def pattern(slots, velocity=CARDS_PER_MINUTE):
    return LearningPattern(
        average_success_rate=0.8,
        learning_velocity=velocity,
        time_of_day_performance={slot: SlotPerformance(rate, count) for slot, (rate, count) in slots.items()},
    )


# Slots and sizing

@pytest.mark.parametrize("hour,slot", [
    (0, TimeSlot.LATE_NIGHT), (4, TimeSlot.LATE_NIGHT), (5, TimeSlot.EARLY_MORNING),
    (9, TimeSlot.MORNING), (13, TimeSlot.AFTERNOON), (17, TimeSlot.EVENING),
    (21, TimeSlot.NIGHT), (23, TimeSlot.NIGHT),
])
def test_slot_for_hour(hour, slot):
    assert slot_for_hour(hour) == slot


def test_session_size_bounds():
    assert session_size(CARDS_PER_MINUTE, 30, 1.0) == SessionSize(30, 30)
    assert session_size(CARDS_PER_MINUTE, 500, 1.0) == SessionSize(45, 45)
    assert session_size(CARDS_PER_MINUTE, 3, 1.0) == SessionSize(15, 3)
    logger.info("✓ Passed: sessions stay within 15-45 minutes")


def test_session_size_without_velocity():
    size = session_size(0.0, 12, 0.9)
    assert (size.duration, size.expected_cards) == (45, 0)
    assert session_size(CARDS_PER_MINUTE, 0, 0.9).expected_cards == 0


def test_energy_level():
    assert energy_level(0.85) == EnergyLevel.HIGH
    assert energy_level(0.7) == EnergyLevel.MEDIUM
    assert energy_level(0.4) == EnergyLevel.LOW


# Today

def test_today_without_pattern_uses_defaults():
    rec = today_recommendation(None, 7, 3, local_time(15))
    assert rec.current_time_slot == TimeSlot.AFTERNOON
    assert (rec.due_cards_count, rec.new_cards_available) == (7, 3)
    assert rec.energy_level == EnergyLevel.MEDIUM
    assert rec.is_optimal_time is False
    assert rec.immediate is None


def test_today_in_optimal_slot_starts_now():
    p = pattern({TimeSlot.MORNING: (0.9, 12)})
    rec = today_recommendation(p, 20, 0, local_time(10))

    assert rec.is_optimal_time
    assert rec.energy_level == EnergyLevel.HIGH
    assert rec.immediate.action == "Start studying now"
    assert "90% success rate" in rec.immediate.reasoning
    assert (rec.immediate.estimated_duration, rec.immediate.expected_cards) == (22, 20)
    logger.info("✓ Passed: optimal slot → start now")


def test_today_suggests_waiting_for_better_slot():
    p = pattern({TimeSlot.EARLY_MORNING: (0.5, 10), TimeSlot.MORNING: (0.9, 12)})
    rec = today_recommendation(p, 20, 0, local_time(7))

    assert not rec.is_optimal_time
    assert rec.energy_level == EnergyLevel.LOW
    assert rec.next_optimal_time == TimeSlot.MORNING
    assert rec.immediate.action == "Wait for optimal time"
    assert "Morning (9 AM-1 PM)" in rec.immediate.reasoning
    assert rec.immediate.confidence == 0.6


def test_today_nothing_due_has_no_immediate_action():
    p = pattern({TimeSlot.MORNING: (0.9, 12)})
    assert today_recommendation(p, 0, 5, local_time(10)).immediate is None


# Weekly

def test_daily_schedule_ranks_top_three_slots():
    p = pattern({
        TimeSlot.MORNING: (0.9, 12),
        TimeSlot.AFTERNOON: (0.8, 3),
        TimeSlot.EVENING: (0.7, 4),
        TimeSlot.NIGHT: (0.95, 2),  # not enough history
        TimeSlot.LATE_NIGHT: (0.6, 8),
    })
    day = daily_schedule(p, date(2024, 4, 2), 20)

    assert [r.time_slot for r in day.recommendations] == [TimeSlot.MORNING, TimeSlot.AFTERNOON, TimeSlot.EVENING]
    assert [r.duration for r in day.recommendations] == [22, 25, 29]
    assert [r.priority for r in day.recommendations] == [Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM]
    morning = day.recommendations[0]
    assert morning.start_time == "10:00"
    assert morning.confidence == pytest.approx(0.54)
    assert morning.reasoning.endswith("(12 previous sessions)")
    assert day.total_estimated_cards == 60
    assert day.estimated_study_time == 76
    assert day.optimal_time_slot == TimeSlot.MORNING
    logger.info("✓ Passed: top-3 slots with sizes 22/25/29 minutes")


def test_daily_schedule_skips_empty_sessions():
    p = pattern({TimeSlot.MORNING: (0.9, 12)})
    day = daily_schedule(p, date(2024, 4, 2), 0)
    assert day.recommendations == ()
    assert day.optimal_time_slot == TimeSlot.MORNING
    assert day.total_estimated_cards == 0


def test_weekly_without_pattern_is_empty():
    assert weekly_recommendation(None, [(date(2024, 4, 2), 10)]) == []


# Services

@pytest.mark.django_db
def test_today_service_without_pattern(client, user_id, make_card):
    make_card(due_in_days=-1)
    make_card()
    make_card()

    rec = get_today_study_recommendations(user_id, "America/New_York")
    assert (rec.due_cards_count, rec.new_cards_available) == (1, 2)
    assert rec.immediate is None

    url = reverse("recommendations-today", kwargs={"user_id": str(user_id)})
    data = client.get(url, {"timezone": "America/New_York"}).json()
    assert data["due_cards_count"] == 1
    assert data["energy_level"] == "medium"


@pytest.mark.django_db
def test_study_recommendations_carry_backlog_forward(user_id, make_card, make_pattern):
    make_pattern(velocity=10 * CARDS_PER_MINUTE, slots={"morning": (0.9, 12)})
    make_card(due_in_days=-1)
    make_card(due_in_days=1)
    make_card(due_in_days=20)

    days = get_study_recommendations(user_id, days_ahead=3, tz_name="UTC")

    assert [d.date for d in days] == [days[0].date + timedelta(days=i) for i in range(3)]
    assert [d.total_estimated_cards for d in days] == [1, 2, 2]
    logger.info("✓ Passed: per-day due counts 1 → 2 → 2")


@pytest.mark.django_db
def test_study_recommendations_without_pattern(user_id):
    assert get_study_recommendations(user_id, 7, "UTC") == []


@pytest.mark.django_db
@pytest.mark.parametrize("days_ahead", [0, 31])
def test_study_recommendations_days_ahead_bounds(user_id, days_ahead):
    with pytest.raises(InvalidArgument):
        get_study_recommendations(user_id, days_ahead, "UTC")


@pytest.mark.django_db
def test_recommendations_api(client, user_id, make_pattern, make_card):
    make_pattern(velocity=CARDS_PER_MINUTE, slots={"evening": (0.85, 20)})
    make_card(due_in_days=-1)

    url = reverse("recommendations", kwargs={"user_id": str(user_id)})
    data = client.get(url, {"days_ahead": 2}, HTTP_X_TIMEZONE="Asia/Tokyo").json()

    assert data["timezone"] == "Asia/Tokyo"
    assert len(data["days"]) == 2
    first = data["days"][0]["recommendations"][0]
    assert first["time_slot"] == "evening"
    assert first["start_time"] == "18:00"

    assert client.get(url, {"days_ahead": 45}).status_code == 400


def test_pattern_from_json_rejects_malformed_values():
    with pytest.raises(ValueError):
        LearningPattern.from_json(
            average_success_rate=0.8,
            learning_velocity=1.0,
            time_of_day_performance={"morning": {"successRate": None}},
            difficulty_patterns={},
        )
    with pytest.raises(ValueError):
        LearningPattern.from_json(
            average_success_rate=None,
            learning_velocity=1.0,
            time_of_day_performance={},
            difficulty_patterns={},
        )


@pytest.mark.django_db
def test_today_service_ignores_malformed_pattern(user_id, make_card, make_pattern):
    LearningPatternRow.objects.filter(pk=make_pattern(slots={"morning": (0.9, 12)}).pk).update(
        time_of_day_performance={"morning": {"successRate": None}},
    )
    make_card(due_in_days=-1)

    rec = get_today_study_recommendations(user_id, "UTC")

    assert rec.due_cards_count == 1
    assert rec.energy_level == EnergyLevel.MEDIUM
    assert rec.immediate is None
    assert get_study_recommendations(user_id, 3, "UTC") == []
