from collections import Counter
from datetime import timedelta, timezone as dt_tz

import structlog
from django.utils import timezone

from ..config import CACHE_TTL, RETENTION_WINDOW_DAYS, UPCOMING_REVIEW_DAYS
from ..data import repos
from ..domain.errors import NO_DATA
from ..domain.retention import retention_rate, window_start
from ..utils.rounding import round_to_tenth
from ..utils.time import end_of_local_day
from .cache import CacheKeys, StatisticsCache

logger = structlog.get_logger()


def get_retention_rate(user_id, window_days=RETENTION_WINDOW_DAYS, cache=None):
    """Percent of successful reviews in the window, or NO_DATA if there were none."""
    now = timezone.now()
    cutoff = window_start(now, window_days)

    def compute():
        with repos.store_errors():
            samples = repos.review_samples_since(user_id, cutoff)
        rate = retention_rate(samples, now, window_days)
        return {"retention_rate": rate if rate is not NO_DATA else None}

    data = (cache or StatisticsCache()).get_or_compute(
        user_id,
        CacheKeys.retention_rate(user_id, window_days),
        compute,
        CACHE_TTL["retention_rate"],
    )
    value = data.get("retention_rate")
    return NO_DATA if value is None else value


def _insights(user_id, now, cache):
    with repos.store_errors():
        rows = repos.card_schedule_rows(user_id)

    today = now.astimezone(dt_tz.utc).date()
    end_of_today = end_of_local_day(today, dt_tz.utc)

    scheduled = [r for r in rows if r["due_date"] is not None]
    new = [r for r in rows if r["due_date"] is None and not (r["repetition"] or 0) > 0]
    learned = [r["interval"] for r in rows if (r["repetition"] or 0) > 0 and r["interval"] is not None]

    upcoming = Counter(
        r["due_date"].astimezone(dt_tz.utc).date()
        for r in scheduled
        if r["due_date"] > end_of_today
    )
    upcoming_reviews = []
    for offset in range(1, UPCOMING_REVIEW_DAYS + 1):
        day = today + timedelta(days=offset)
        upcoming_reviews.append({"date": day.isoformat(), "count": upcoming.get(day, 0)})

    rate = get_retention_rate(user_id, RETENTION_WINDOW_DAYS, cache)
    return {
        "total_due_cards": sum(1 for r in scheduled if r["due_date"] <= now),
        "total_new_cards": len(new),
        "cards_to_review_today": sum(1 for r in scheduled if r["due_date"] <= end_of_today),
        "average_interval": round_to_tenth(sum(learned) / len(learned)) if learned else None,
        "upcoming_reviews": upcoming_reviews,
        "retention_rate": rate if rate is not NO_DATA else None,
    }


def get_spaced_repetition_insights(user_id, cache=None):
    """
    Deck-wide snapshot of what is due now, today and over the next week.

    Days are UTC calendar days. The whole payload is cached per user and
    dropped whenever one of the user's cards is reviewed.
    """
    cache = cache or StatisticsCache()
    now = timezone.now()
    data = cache.get_or_compute(
        user_id,
        CacheKeys.spaced_rep_insights(user_id),
        lambda: _insights(user_id, now, cache),
        CACHE_TTL["spaced_rep_insights"],
    )
    logger.info("insights_served", user_id=str(user_id), total_due_cards=data["total_due_cards"])
    return data
