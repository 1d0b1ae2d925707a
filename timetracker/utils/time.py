"""Time arithmetic: durations, display formatting and the stored-time convention.

Instants are stored "local clock as if UTC": the wall-clock fields the user
saw are written into the UTC fields of the stored value. Every read path
takes calendar and clock fields straight from the stored value and never
re-localizes it.
"""
import math
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


ONE_MINUTE = timedelta(minutes=1)


def local_to_utc_preserving_clock(local: datetime) -> datetime:
    """
    Convert a wall-clock local datetime into a stored instant.

    The UTC fields of the result equal the wall-clock fields of the input,
    whatever offset the input carries.

    Args:
        local: Naive wall-clock datetime or aware local datetime

    Returns:
        Aware UTC datetime with the same year/month/day/hour/minute/second

    Example:
        >>> from datetime import timezone, timedelta
        >>> brt = timezone(timedelta(hours=-3))
        >>> local_to_utc_preserving_clock(datetime(2025, 3, 10, 9, 30, tzinfo=brt))
        datetime.datetime(2025, 3, 10, 9, 30, tzinfo=datetime.timezone.utc)
    """
    return local.replace(tzinfo=timezone.utc)


def to_stored(local: datetime) -> datetime:
    """
    Convert an incoming local datetime to the naive value written to MongoDB.

    BSON dates come back naive, so the core compares naive values only.
    """
    return local_to_utc_preserving_clock(local).replace(tzinfo=None)


def as_naive(instant: datetime) -> datetime:
    """Normalize an already-stored instant (aware UTC or naive) to naive."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def wall_clock_now(tz_name: str) -> datetime:
    """
    Current wall-clock time of ``tz_name`` in the stored convention.

    Args:
        tz_name: IANA timezone name, e.g. "America/Sao_Paulo"

    Returns:
        Naive datetime holding the local clock fields
    """
    return to_stored(datetime.now(ZoneInfo(tz_name)))


def duration_minutes(started: datetime, ended: datetime) -> int:
    """
    Whole minutes between two instants, truncating leftover seconds.

    Callers validate ``ended > started`` first; totals are always the sum of
    these per-entry values.

    Example:
        >>> duration_minutes(datetime(2025, 1, 1, 9), datetime(2025, 1, 1, 10, 30, 59))
        90
    """
    elapsed = as_naive(ended) - as_naive(started)
    if elapsed < timedelta(0):
        raise ValueError("ended must not be before started")
    return elapsed // ONE_MINUTE


def format_minutes(total_minutes: int) -> str:
    """
    Format a minute count for display.

    Examples:
        >>> format_minutes(0)
        '0h'
        >>> format_minutes(45)
        '45m'
        >>> format_minutes(125)
        '2h05m'
    """
    if total_minutes < 0:
        raise ValueError("total_minutes must not be negative")
    if total_minutes == 0:
        return "0h"

    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h{minutes:02d}m"


def format_hours_decimal(hours: float) -> str:
    """
    Format fractional hours with the same rules as ``format_minutes``.

    Minutes are rounded half up; a rounding that reaches 60 carries into
    the hour.

    Examples:
        >>> format_hours_decimal(1.5)
        '1h30m'
        >>> format_hours_decimal(1.9999)
        '2h00m'
    """
    if hours < 0:
        raise ValueError("hours must not be negative")

    whole_hours = math.floor(hours)
    minutes = math.floor((hours - whole_hours) * 60 + 0.5)
    return format_minutes(whole_hours * 60 + minutes)


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural} atrás"


def relative_label(last_activity: datetime, now: datetime) -> str:
    """
    Relative "last activity" label shown next to projects and users.

    Args:
        last_activity: Stored instant of the latest activity
        now: Current instant in the same convention

    Returns:
        "Agora mesmo", "N hora(s) atrás", "N dia(s) atrás" or
        "N semana(s) atrás"

    Examples:
        >>> now = datetime(2025, 1, 10, 12, 0)
        >>> relative_label(now - timedelta(minutes=61), now)
        '1 hora atrás'
        >>> relative_label(now - timedelta(days=15), now)
        '2 semanas atrás'
    """
    elapsed = as_naive(now) - as_naive(last_activity)
    hours = elapsed // timedelta(hours=1)
    days = elapsed // timedelta(days=1)

    if hours < 1:
        return "Agora mesmo"
    if hours < 24:
        return _plural(hours, "hora", "horas")
    if days < 7:
        return _plural(days, "dia", "dias")
    return _plural(days // 7, "semana", "semanas")


def start_of_day(instant: datetime) -> datetime:
    """Midnight of the instant's calendar day."""
    return datetime.combine(as_naive(instant).date(), datetime.min.time())


def start_of_week(instant: datetime) -> datetime:
    """
    Monday 00:00 of the instant's week.

    Example:
        >>> start_of_week(datetime(2025, 1, 8, 15, 0))  # a Wednesday
        datetime.datetime(2025, 1, 6, 0, 0)
    """
    today = start_of_day(instant)
    return today - timedelta(days=today.weekday())


def start_of_month(instant: datetime) -> datetime:
    """First day of the instant's month at 00:00."""
    return start_of_day(instant).replace(day=1)


def entry_date(instant: datetime) -> date:
    """Calendar date of a stored instant, taken from its UTC fields."""
    return as_naive(instant).date()


def format_entry_timestamp(instant: datetime) -> str:
    """
    Render a stored instant as "DD/MM/YYYY HH:MM".

    Example:
        >>> format_entry_timestamp(datetime(2025, 3, 10, 9, 5))
        '10/03/2025 09:05'
    """
    return as_naive(instant).strftime("%d/%m/%Y %H:%M")
