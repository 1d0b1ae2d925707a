"""Aggregation output models (derived, never persisted)."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, SerializeAsAny

from timetracker.models.time_entry import TimeEntry


class DateRangePreset(str, Enum):
    """Date-range filters offered by the summary views."""

    ALL = "all"
    TODAY = "today"
    YESTERDAY = "yesterday"
    CURRENT_WEEK = "current_week"
    LAST_WEEK = "last_week"
    LAST_7_DAYS = "last7days"
    LAST_15_DAYS = "last15days"
    CURRENT_MONTH = "current_month"
    CUSTOM = "custom"


class DateRange(BaseModel):
    """
    Resolved date range.

    With ``calendar_days`` set, membership compares calendar dates only and
    both ends are inclusive; otherwise ``start <= started_at <= end``.
    A missing bound is open.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    calendar_days: bool = False

    def contains(self, instant: datetime) -> bool:
        if self.calendar_days:
            day = instant.date()
            if self.start is not None and day < self.start.date():
                return False
            if self.end is not None and day > self.end.date():
                return False
            return True

        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True


class SummaryScope(BaseModel):
    """Entity filters of a summary request."""

    organization_id: Optional[str] = None
    project_id: Optional[str] = None
    user_id: Optional[str] = None


class DaySummary(BaseModel):
    """Entries of one calendar day."""

    date: date
    entries: list[SerializeAsAny[TimeEntry]]
    total_minutes: int
    total_display: str


class ProjectSummary(BaseModel):
    """Totals of one project."""

    id: str
    name: str
    is_finished: bool
    organization_id: Optional[str] = None
    total_minutes: int
    total_display: str
    last_activity_instant: datetime
    last_activity_label: str


class UserSummary(BaseModel):
    """Totals of one user."""

    user_id: str
    user_email: Optional[str] = None
    total_minutes: int
    total_display: str
    entry_count: int
    last_activity_instant: datetime
    last_activity_label: str


class OrganizationProjects(BaseModel):
    """Project summaries of one organization."""

    organization_id: str
    organization_name: str
    projects: list[ProjectSummary]


class PeriodTotal(BaseModel):
    """Total of a time window."""

    total_minutes: int
    total_display: str


class Trend(str, Enum):
    """Direction of a period comparison."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class PeriodComparison(PeriodTotal):
    """Total of a window compared with the previous window."""

    previous_minutes: int
    difference_minutes: int
    trend: Trend
    change: str


class DashboardStats(BaseModel):
    """Home dashboard numbers of one user."""

    today: PeriodComparison
    this_week: PeriodComparison
    current_month: PeriodTotal
    active_projects: int
    active_organizations: int


class DailyReport(BaseModel):
    days: list[DaySummary]
    total_minutes: int
    total_display: str


class ProjectReport(BaseModel):
    projects: list[ProjectSummary]
    total_minutes: int
    total_display: str


class UserReport(BaseModel):
    users: list[UserSummary]
    total_minutes: int
    total_display: str
