"""Aggregation engine - pure transformations over fetched time entries.

Nothing here touches the database. Open entries (running timers) never
contribute minutes to a total, but they do count as activity and as entries.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from timetracker.errors import ValidationError
from timetracker.models.summary import (
    DashboardStats,
    DateRange,
    DateRangePreset,
    DaySummary,
    OrganizationProjects,
    PeriodComparison,
    PeriodTotal,
    ProjectSummary,
    Trend,
    UserSummary,
)
from timetracker.models.time_entry import ProjectRef, TimeEntry
from timetracker.utils.time import (
    as_naive,
    duration_minutes,
    entry_date,
    format_minutes,
    relative_label,
    start_of_day,
    start_of_month,
    start_of_week,
)


ONE_DAY = timedelta(days=1)


def entry_minutes(entry: TimeEntry) -> int:
    """Floored minutes of a closed entry, 0 for a running one."""
    if entry.ended_at is None:
        return 0
    return duration_minutes(entry.started_at, entry.ended_at)


def total_minutes(
    entries: Iterable[TimeEntry],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> int:
    """
    Sum of per-entry minutes for entries started in ``[start, end)``.

    Args:
        entries: Time entries
        start: Inclusive lower bound on started_at (None = open)
        end: Exclusive upper bound on started_at (None = open)

    Returns:
        Total minutes of the closed entries in the window
    """
    start = as_naive(start) if start is not None else None
    end = as_naive(end) if end is not None else None

    total = 0
    for entry in entries:
        started = as_naive(entry.started_at)
        if start is not None and started < start:
            continue
        if end is not None and started >= end:
            continue
        total += entry_minutes(entry)
    return total


def resolve_date_range(
    preset: DateRangePreset,
    now: datetime,
    custom_start: Optional[datetime] = None,
    custom_end: Optional[datetime] = None,
) -> DateRange:
    """
    Turn a preset into a concrete range relative to ``now``.

    Args:
        preset: Preset name
        now: Current instant (stored convention)
        custom_start: Start day for the custom preset
        custom_end: Optional end day for the custom preset (inclusive)

    Returns:
        Resolved DateRange

    Raises:
        ValidationError: Custom range without a start, or ending before it,
            or explicit bounds given with another preset
    """
    now = as_naive(now)
    preset = DateRangePreset(preset)

    if preset != DateRangePreset.CUSTOM and (custom_start is not None or custom_end is not None):
        raise ValidationError(
            "Explicit start/end require the custom preset",
            code="range_requires_custom_preset",
        )

    if preset == DateRangePreset.ALL:
        return DateRange()
    if preset == DateRangePreset.TODAY:
        return DateRange(start=now, end=now, calendar_days=True)
    if preset == DateRangePreset.YESTERDAY:
        yesterday = now - ONE_DAY
        return DateRange(start=yesterday, end=yesterday, calendar_days=True)
    if preset == DateRangePreset.CURRENT_WEEK:
        return DateRange(start=start_of_week(now), end=now)
    if preset == DateRangePreset.LAST_WEEK:
        monday = start_of_week(now)
        return DateRange(start=monday - 7 * ONE_DAY, end=monday - ONE_DAY, calendar_days=True)
    if preset == DateRangePreset.LAST_7_DAYS:
        return DateRange(start=now - 7 * ONE_DAY, end=now)
    if preset == DateRangePreset.LAST_15_DAYS:
        return DateRange(start=now - 15 * ONE_DAY, end=now)
    if preset == DateRangePreset.CURRENT_MONTH:
        return DateRange(start=start_of_month(now), end=now)

    # Custom range compares calendar days so the end day is fully included
    if custom_start is None:
        raise ValidationError(
            "A custom range needs a start date",
            code="missing_range_start",
        )
    start = as_naive(custom_start)
    end = as_naive(custom_end) if custom_end is not None else None
    if end is not None and end.date() < start.date():
        raise ValidationError(
            "The range end must not be before its start",
            code="invalid_range",
        )
    return DateRange(start=start, end=end, calendar_days=True)


def filter_entries(
    entries: Iterable[TimeEntry],
    date_range: Optional[DateRange] = None,
    user_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> list[TimeEntry]:
    """Entries matching the date range (on started_at) and entity filters."""
    filtered = []
    for entry in entries:
        if user_id is not None and entry.user_id != user_id:
            continue
        if project_id is not None and entry.project_id != project_id:
            continue
        if date_range is not None and not date_range.contains(as_naive(entry.started_at)):
            continue
        filtered.append(entry)
    return filtered


def _by_start_desc(entries: Iterable[TimeEntry]) -> list[TimeEntry]:
    return sorted(entries, key=lambda entry: as_naive(entry.started_at), reverse=True)


def group_by_day(entries: Iterable[TimeEntry]) -> list[DaySummary]:
    """
    Group entries by the calendar date of started_at, newest day first.

    Entries inside a day are ordered newest first.
    """
    days = defaultdict(list)
    for entry in entries:
        days[entry_date(entry.started_at)].append(entry)

    summaries = []
    for day in sorted(days, reverse=True):
        day_entries = _by_start_desc(days[day])
        minutes = total_minutes(day_entries)
        summaries.append(
            DaySummary(
                date=day,
                entries=day_entries,
                total_minutes=minutes,
                total_display=format_minutes(minutes),
            )
        )
    return summaries


def _project_summary(project_id: str, entries: list[TimeEntry], now: datetime) -> ProjectSummary:
    project = getattr(entries[0], "project", None)
    minutes = total_minutes(entries)
    last_activity = max(as_naive(entry.started_at) for entry in entries)

    return ProjectSummary(
        id=project_id,
        name=project.name if project else project_id,
        is_finished=project.is_finished if project else False,
        organization_id=project.organization_id if project else None,
        total_minutes=minutes,
        total_display=format_minutes(minutes),
        last_activity_instant=last_activity,
        last_activity_label=relative_label(last_activity, now),
    )


def group_by_project(entries: Iterable[TimeEntry], now: datetime) -> list[ProjectSummary]:
    """
    One summary per project, largest total first.

    Ties keep the most recently active project first.
    """
    projects = defaultdict(list)
    for entry in entries:
        projects[entry.project_id].append(entry)

    summaries = [
        _project_summary(project_id, project_entries, now)
        for project_id, project_entries in projects.items()
    ]
    summaries.sort(key=lambda summary: summary.last_activity_instant, reverse=True)
    summaries.sort(key=lambda summary: summary.total_minutes, reverse=True)
    return summaries


def active_projects(summaries: Iterable[ProjectSummary]) -> list[ProjectSummary]:
    """Drop finished projects, whatever time they hold."""
    return [summary for summary in summaries if not summary.is_finished]


def group_by_user(entries: Iterable[TimeEntry], now: datetime) -> list[UserSummary]:
    """One summary per user, largest total first; entry_count includes running entries."""
    users = defaultdict(list)
    for entry in entries:
        users[entry.user_id].append(entry)

    summaries = []
    for user_id, user_entries in users.items():
        minutes = total_minutes(user_entries)
        last_activity = max(as_naive(entry.started_at) for entry in user_entries)
        summaries.append(
            UserSummary(
                user_id=user_id,
                user_email=getattr(user_entries[0], "user_email", None),
                total_minutes=minutes,
                total_display=format_minutes(minutes),
                entry_count=len(user_entries),
                last_activity_instant=last_activity,
                last_activity_label=relative_label(last_activity, now),
            )
        )

    summaries.sort(key=lambda summary: summary.last_activity_instant, reverse=True)
    summaries.sort(key=lambda summary: summary.total_minutes, reverse=True)
    return summaries


def group_by_organization(
    entries: Iterable[TimeEntry],
    now: datetime,
) -> list[OrganizationProjects]:
    """
    Project summaries per organization, most recently active first.

    Entries without a joined project or organization are skipped.
    """
    organizations = {}
    grouped = defaultdict(lambda: defaultdict(list))
    for entry in entries:
        organization = getattr(entry, "organization", None)
        if getattr(entry, "project", None) is None or organization is None:
            continue
        organizations[organization.id] = organization.name
        grouped[organization.id][entry.project_id].append(entry)

    result = []
    for organization_id, projects in grouped.items():
        summaries = [
            _project_summary(project_id, project_entries, now)
            for project_id, project_entries in projects.items()
        ]
        summaries.sort(key=lambda summary: summary.last_activity_instant, reverse=True)
        result.append(
            OrganizationProjects(
                organization_id=organization_id,
                organization_name=organizations[organization_id],
                projects=summaries,
            )
        )

    result.sort(key=lambda group: group.projects[0].last_activity_instant, reverse=True)
    return result


def period_total(minutes: int) -> PeriodTotal:
    return PeriodTotal(total_minutes=minutes, total_display=format_minutes(minutes))


def compare_periods(current: int, previous: int, suffix: str) -> PeriodComparison:
    """
    Compare two window totals by absolute difference.

    Example:
        >>> compare_periods(150, 60, "vs ontem").change
        '+1h30m vs ontem'
    """
    difference = current - previous
    if difference > 0:
        trend = Trend.POSITIVE
        change = f"+{format_minutes(difference)} {suffix}"
    elif difference < 0:
        trend = Trend.NEGATIVE
        change = f"-{format_minutes(-difference)} {suffix}"
    else:
        trend = Trend.NEUTRAL
        change = f"{format_minutes(0)} {suffix}"

    return PeriodComparison(
        total_minutes=current,
        total_display=format_minutes(current),
        previous_minutes=previous,
        difference_minutes=difference,
        trend=trend,
        change=change,
    )


def _next_month(month_start: datetime) -> datetime:
    return (month_start + 32 * ONE_DAY).replace(day=1)


def dashboard(
    entries: Iterable[TimeEntry],
    now: datetime,
    projects: Optional[Iterable[ProjectRef]] = None,
) -> DashboardStats:
    """
    Home dashboard numbers of one user's entries.

    Windows are half-open: today and yesterday by calendar day, weeks from
    Monday 00:00, the month from its first day. Active counts use
    ``projects`` when given, otherwise the projects joined onto the entries.
    """
    entries = list(entries)
    today = start_of_day(now)
    monday = start_of_week(now)
    month = start_of_month(now)

    today_minutes = total_minutes(entries, today, today + ONE_DAY)
    yesterday_minutes = total_minutes(entries, today - ONE_DAY, today)
    week_minutes = total_minutes(entries, monday, monday + 7 * ONE_DAY)
    last_week_minutes = total_minutes(entries, monday - 7 * ONE_DAY, monday)
    month_minutes = total_minutes(entries, month, _next_month(month))

    if projects is None:
        projects = [getattr(entry, "project", None) for entry in entries]

    active = set()
    active_organizations = set()
    for project in projects:
        if project is None or project.is_finished:
            continue
        active.add(project.id)
        active_organizations.add(project.organization_id)

    return DashboardStats(
        today=compare_periods(today_minutes, yesterday_minutes, "vs ontem"),
        this_week=compare_periods(week_minutes, last_week_minutes, "vs semana passada"),
        current_month=period_total(month_minutes),
        active_projects=len(active),
        active_organizations=len(active_organizations),
    )
