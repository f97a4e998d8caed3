from datetime import datetime, timedelta

from ..config import RETENTION_WINDOW_DAYS, WEIGHTED_RETENTION_MIN_REVIEWS
from ..utils.rounding import clamp, round_to_tenth
from .errors import NO_DATA, InvalidArgument


def window_start(now: datetime, window_days: int) -> datetime:
    if window_days < 1:
        raise InvalidArgument(f"window_days must be >= 1, got {window_days}")
    return now - timedelta(days=window_days)


def retention_rate(reviews, now: datetime, window_days: int = RETENTION_WINDOW_DAYS):
    """
    Percentage of successful reviews within the window, or NO_DATA.

    With enough reviews each one is weighted by 1 / ease factor before the
    review, so misses on hard cards count for more.
    """
    cutoff = window_start(now, window_days)
    recent = [r for r in reviews if r.review_date >= cutoff]
    if not recent:
        return NO_DATA

    if len(recent) >= WEIGHTED_RETENTION_MIN_REVIEWS:
        total = sum(1 / r.ease_factor_before for r in recent)
        success = sum(1 / r.ease_factor_before for r in recent if r.was_successful)
        rate = success / total * 100
    else:
        rate = sum(1 for r in recent if r.was_successful) / len(recent) * 100

    return clamp(round_to_tenth(rate), 0.0, 100.0)
