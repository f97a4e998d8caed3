import logging
from datetime import datetime, timedelta, timezone as dt_tz

import pytest
from django.urls import reverse

from scheduler.data.models import StatisticsCacheEntry
from scheduler.domain.errors import NO_DATA, InvalidArgument
from scheduler.domain.retention import retention_rate
from scheduler.domain.types import ReviewSample
from scheduler.services.cache import CacheKeys
from scheduler.services.reviews import review_card
from scheduler.services.statistics import get_retention_rate, get_spaced_repetition_insights

logger = logging.getLogger(__name__)

NOW = datetime(2024, 6, 15, 12, tzinfo=dt_tz.utc)


def sample(days_ago, ok, ease=2.5):
    return ReviewSample(review_date=NOW - timedelta(days=days_ago), was_successful=ok, ease_factor_before=ease)


# Pure estimator

def test_no_reviews_is_no_data():
    assert retention_rate([], NOW) is NO_DATA
    assert not NO_DATA


def test_simple_rate_below_weighting_threshold():
    rate = retention_rate([sample(1, True), sample(2, True), sample(3, False)], NOW)
    assert rate == 66.7
    logger.info("✓ Passed: 2 of 3 → 66.7%")


def test_alternating_outcomes_example():
    outcomes = [True, False, True, False, True]
    assert retention_rate([sample(i + 1, ok) for i, ok in enumerate(outcomes)], NOW) == 60.0


def test_weighted_rate_penalizes_misses_on_hard_cards():
    reviews = [sample(1, True, 2.5) for _ in range(5)] + [sample(1, False, 1.3) for _ in range(5)]
    assert retention_rate(reviews, NOW) == 34.2
    logger.info("✓ Passed: weighted retention 34.2%")


def test_window_excludes_old_reviews():
    reviews = [sample(40, False), sample(31, False), sample(5, True)]
    assert retention_rate(reviews, NOW, window_days=30) == 100.0
    assert retention_rate([sample(40, True)], NOW, window_days=30) is NO_DATA


def test_window_must_be_positive():
    with pytest.raises(InvalidArgument):
        retention_rate([sample(1, True)], NOW, window_days=0)


# Service / API

@pytest.mark.django_db
def test_retention_rate_from_reviews_is_cached(user_id, make_card):
    for quality in (4, 5, 1):
        review_card(user_id, make_card().pk, quality)

    assert get_retention_rate(user_id) == 66.7
    entry = StatisticsCacheEntry.objects.get(cache_key=CacheKeys.retention_rate(user_id, 30))
    assert entry.data == {"retention_rate": 66.7}


@pytest.mark.django_db
def test_retention_no_data_round_trips_through_cache(user_id):
    assert get_retention_rate(user_id) is NO_DATA
    assert get_retention_rate(user_id) is NO_DATA


@pytest.mark.django_db
def test_review_invalidates_cached_retention(user_id, make_card):
    card = make_card()
    review_card(user_id, card.pk, 5)
    assert get_retention_rate(user_id) == 100.0

    review_card(user_id, card.pk, 0)
    assert get_retention_rate(user_id) == 50.0
    logger.info("✓ Passed: a review drops the stale retention entry")


@pytest.mark.django_db
def test_retention_api(client, user_id, make_card):
    url = reverse("retention", kwargs={"user_id": str(user_id)})

    empty = client.get(url).json()
    assert empty == {"user_id": str(user_id), "window_days": 30, "has_data": False, "retention_rate": None}

    review_card(user_id, make_card().pk, 4)
    data = client.get(url, {"window_days": 7}).json()
    assert data["has_data"] is True
    assert data["retention_rate"] == 100.0

    assert client.get(url, {"window_days": 0}).status_code == 400


@pytest.mark.django_db
def test_spaced_repetition_insights(client, user_id, make_card):
    make_card(due_in_days=-2, repetition=3, interval=10)
    make_card(due_in_days=2.5, repetition=1, interval=1)
    make_card(due_in_days=40, repetition=4, interval=40)
    make_card()
    make_card()

    data = get_spaced_repetition_insights(user_id)

    assert data["total_due_cards"] == 1
    assert data["total_new_cards"] == 2
    assert data["average_interval"] == 17.0
    assert len(data["upcoming_reviews"]) == 7
    assert sum(day["count"] for day in data["upcoming_reviews"]) == 1
    assert data["retention_rate"] is None

    api = client.get(reverse("insights", kwargs={"user_id": str(user_id)})).json()
    assert api == data
