import structlog
from django.db import transaction
from django.utils import timezone

from ..config import LEADERBOARD_SIZE
from ..data import repos
from ..domain.errors import InvalidArgument
from ..domain.streaks import advance, streak_stats
from ..domain.types import StreakState
from ..utils.time import local_today, parse_study_date, resolve_timezone

logger = structlog.get_logger()

LEADERBOARD_FIELDS = {
    "current": "current_streak",
    "longest": "longest_streak",
}


def update_streak(user_id, tz_name, study_date=None):
    """
    Count a completed study session toward the user's daily streak.

    ``study_date`` is the caller-local calendar date; it defaults to today in
    ``tz_name``. The streak row is locked for the whole read-modify-write so
    two sessions finishing at once cannot both increment the same day.
    """
    tz = resolve_timezone(tz_name)
    day = parse_study_date(study_date) if study_date is not None else local_today(timezone.now(), tz)

    with repos.store_errors(), transaction.atomic():
        row = repos.get_or_create_streak_for_update(user_id, tz_name)
        previous = repos.streak_state(row)
        update = advance(previous, day, tz_name)
        if update.changed:
            repos.save_streak_state(row, update.state)

    if update.broken_streak:
        logger.info("streak_broken",
            user_id=str(user_id),
            previous_streak=update.broken_streak,
            days_missed=update.days_missed,
        )
    if not update.changed and previous.last_study_date and day < previous.last_study_date:
        logger.warning("streak_backdated_ignored",
            user_id=str(user_id),
            study_date=day.isoformat(),
            last_study_date=previous.last_study_date.isoformat(),
        )
    logger.info("streak_updated",
        user_id=str(user_id),
        study_date=day.isoformat(),
        streak_event=update.event.value if update.event else None,
        current_streak=update.current_streak,
        milestone=update.milestone,
    )
    return update


def get_current_streak(user_id):
    with repos.store_errors():
        return repos.get_streak(user_id) or StreakState()


def get_streak_leaderboard(kind="current", limit=LEADERBOARD_SIZE):
    if kind not in LEADERBOARD_FIELDS:
        raise InvalidArgument(f"leaderboard type must be one of {sorted(LEADERBOARD_FIELDS)}")
    if limit < 1:
        raise InvalidArgument("limit must be >= 1")
    with repos.store_errors():
        return repos.streak_leaderboard(LEADERBOARD_FIELDS[kind], limit)


def get_streak_stats():
    with repos.store_errors():
        rows = repos.streak_summary_rows()
    return streak_stats(rows)
