from datetime import date, datetime, time, timedelta, timezone as dt_tz
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..domain.errors import InvalidArgument


def resolve_timezone(name):
    if not name or not isinstance(name, str):
        raise InvalidArgument("timezone must be a non-empty IANA name")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidArgument(f"unknown timezone: {name}") from exc


def to_local_iso(dt_utc, tz):
    return dt_utc.astimezone(tz).isoformat() if dt_utc is not None else None


def to_utc_iso(dt):
    return dt.astimezone(dt_tz.utc).isoformat() if dt is not None else None


def local_today(now_utc, tz) -> date:
    return now_utc.astimezone(tz).date()


def parse_study_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"study date must be YYYY-MM-DD, got {value!r}") from exc


def end_of_local_day(day: date, tz) -> datetime:
    """Last representable instant of ``day`` in ``tz``, as an aware UTC datetime."""
    next_midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (next_midnight - timedelta(microseconds=1)).astimezone(dt_tz.utc)
