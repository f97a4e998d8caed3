from datetime import timedelta

import structlog
from django.db import transaction
from django.utils import timezone

from ..config import MAX_DAYS_AHEAD
from ..data import repos
from ..domain.errors import InvalidArgument
from ..domain.recommendations import today_recommendation, weekly_recommendation
from ..utils.time import end_of_local_day, local_today, resolve_timezone

logger = structlog.get_logger()


def _pattern(user_id):
    with repos.store_errors(), transaction.atomic():
        return repos.get_learning_pattern(user_id)


def get_today_study_recommendations(user_id, tz_name="UTC"):
    tz = resolve_timezone(tz_name)
    now = timezone.now()

    pattern = _pattern(user_id)
    with repos.store_errors():
        due_count = repos.count_due(user_id, now)
        new_count = repos.count_new(user_id)

    recommendation = today_recommendation(pattern, due_count, new_count, now.astimezone(tz))
    logger.info("today_recommendation_built",
        user_id=str(user_id),
        timezone=tz_name,
        has_pattern=pattern is not None,
        time_slot=recommendation.current_time_slot.value,
        is_optimal_time=recommendation.is_optimal_time,
    )
    return recommendation


def get_study_recommendations(user_id, days_ahead=7, tz_name="UTC"):
    """
    One DailySchedule per upcoming local day, starting today.

    Each day's due count is the number of cards due by the end of that day in
    the caller's timezone, so backlog carries forward.
    """
    if not 1 <= days_ahead <= MAX_DAYS_AHEAD:
        raise InvalidArgument(f"days_ahead must be between 1 and {MAX_DAYS_AHEAD}")
    tz = resolve_timezone(tz_name)
    today = local_today(timezone.now(), tz)

    pattern = _pattern(user_id)
    if pattern is None:
        logger.info("study_recommendations_skipped", user_id=str(user_id), reason="no_learning_pattern")
        return []

    days = [today + timedelta(days=i) for i in range(days_ahead)]
    with repos.store_errors():
        per_day = [(day, repos.count_due(user_id, end_of_local_day(day, tz))) for day in days]

    schedules = weekly_recommendation(pattern, per_day)
    logger.info("study_recommendations_built",
        user_id=str(user_id),
        days_ahead=days_ahead,
        total_estimated_cards=sum(s.total_estimated_cards for s in schedules),
    )
    return schedules
