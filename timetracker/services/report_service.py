"""Report service - permission-checked summaries over time entries."""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from timetracker.config import settings
from timetracker.errors import NotFoundError, PermissionDenied
from timetracker.models.summary import (
    DailyReport,
    DashboardStats,
    DateRange,
    DateRangePreset,
    OrganizationProjects,
    ProjectReport,
    SummaryScope,
    UserReport,
)
from timetracker.models.time_entry import OrganizationRef, ProjectRef, TimeEntryWithDetails
from timetracker.models.user import Caller
from timetracker.services import aggregation, permissions
from timetracker.services.organization_service import fetch_organization_role
from timetracker.services.permissions import Capability
from timetracker.utils.ids import to_object_id, valid_object_ids
from timetracker.utils.time import (
    format_minutes,
    start_of_day,
    start_of_month,
    start_of_week,
    to_stored,
    wall_clock_now,
)


logger = logging.getLogger(__name__)


class ReportService:
    """Fetches time entries with their joins and feeds the aggregation engine."""

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.projects = db["projects"]
        self.organizations = db["organizations"]
        self.memberships = db["organization_users"]
        self.users = db["users"]
        self.clock = clock or (lambda: wall_clock_now(settings.display_timezone))

    async def fetch_time_entries(
        self,
        scope: SummaryScope,
        date_range: Optional[DateRange] = None,
    ) -> list[TimeEntryWithDetails]:
        """
        Fetch entries matching the scope, joined with project, organization and e-mail.

        No permission check happens here; callers authorize the scope first.

        Args:
            scope: Entity filters
            date_range: Optional range on started_at

        Returns:
            Entries sorted newest first
        """
        query = {}
        if scope.user_id:
            query["user_id"] = scope.user_id
        if scope.project_id:
            query["project_id"] = scope.project_id
        elif scope.organization_id:
            cursor = self.projects.find({"organization_id": scope.organization_id})
            project_ids = [str(doc["_id"]) for doc in await cursor.to_list(length=None)]
            if not project_ids:
                return []
            query["project_id"] = {"$in": project_ids}

        if date_range is not None and (date_range.start or date_range.end):
            bounds = {}
            if date_range.calendar_days:
                if date_range.start:
                    bounds["$gte"] = start_of_day(date_range.start)
                if date_range.end:
                    bounds["$lt"] = start_of_day(date_range.end) + timedelta(days=1)
            else:
                if date_range.start:
                    bounds["$gte"] = date_range.start
                if date_range.end:
                    bounds["$lte"] = date_range.end
            query["started_at"] = bounds

        cursor = self.time_entries.find(query).sort("started_at", -1)
        entry_docs = await cursor.to_list(length=None)
        if not entry_docs:
            return []

        project_ids = {doc["project_id"] for doc in entry_docs}
        cursor = self.projects.find({
            "_id": {"$in": valid_object_ids(project_ids)},
        })
        projects = {str(doc["_id"]): doc for doc in await cursor.to_list(length=None)}

        organization_ids = {doc["organization_id"] for doc in projects.values()}
        cursor = self.organizations.find({
            "_id": {"$in": valid_object_ids(organization_ids)},
        })
        organizations = {str(doc["_id"]): doc for doc in await cursor.to_list(length=None)}

        user_ids = {doc["user_id"] for doc in entry_docs}
        cursor = self.users.find({
            "_id": {"$in": valid_object_ids(user_ids)},
        })
        emails = {str(doc["_id"]): doc.get("email") for doc in await cursor.to_list(length=None)}

        return [
            self._doc_to_details(doc, projects, organizations, emails)
            for doc in entry_docs
        ]

    def _doc_to_project_ref(self, doc: dict) -> ProjectRef:
        return ProjectRef(
            id=str(doc["_id"]),
            name=doc["name"],
            is_finished=doc.get("is_finished", False),
            organization_id=doc["organization_id"],
        )

    def _doc_to_details(
        self,
        doc: dict,
        projects: dict,
        organizations: dict,
        emails: dict,
    ) -> TimeEntryWithDetails:
        project = projects.get(doc["project_id"])
        organization = organizations.get(project["organization_id"]) if project else None

        return TimeEntryWithDetails(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            project_id=doc["project_id"],
            started_at=doc["started_at"],
            ended_at=doc.get("ended_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
            project=self._doc_to_project_ref(project) if project else None,
            organization=OrganizationRef(
                id=str(organization["_id"]),
                name=organization["name"],
            ) if organization else None,
            user_email=emails.get(doc["user_id"]),
        )

    async def authorize_scope(self, caller: Caller, scope: SummaryScope) -> SummaryScope:
        """
        Check the caller may read the scope and return it normalized.

        Reading someone else's entries needs view_all_time_entries in the
        organization; without an organization scope only the caller's own
        entries are visible.

        Raises:
            NotFoundError: If the scoped project does not exist
            PermissionDenied: If the role does not allow the read
        """
        scope = scope.model_copy()

        if scope.project_id:
            project = await self.projects.find_one({"_id": to_object_id(scope.project_id, "Project")})
            if not project:
                raise NotFoundError("Project not found", code="project_not_found")
            if scope.organization_id and scope.organization_id != project["organization_id"]:
                raise NotFoundError("Project not found", code="project_not_found")
            scope.organization_id = project["organization_id"]

        if scope.organization_id:
            role = await fetch_organization_role(
                self.memberships, scope.organization_id, caller.user_id
            )
            if scope.user_id == caller.user_id:
                permissions.require(role, Capability.TRACK_OWN_TIME)
            else:
                permissions.require(role, Capability.VIEW_ALL_TIME_ENTRIES)
            return scope

        if scope.user_id not in (None, caller.user_id):
            logger.warning("Denied cross-organization read of %s by %s", scope.user_id, caller.user_id)
            raise PermissionDenied(
                "Other users' entries can only be read within an organization",
                code="organization_scope_required",
            )
        scope.user_id = caller.user_id
        return scope

    async def _entries(
        self,
        caller: Caller,
        scope: SummaryScope,
        preset: DateRangePreset,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> tuple[list[TimeEntryWithDetails], datetime]:
        now = self.clock()
        date_range = aggregation.resolve_date_range(
            preset,
            now,
            to_stored(start) if start is not None else None,
            to_stored(end) if end is not None else None,
        )
        scope = await self.authorize_scope(caller, scope)

        entries = await self.fetch_time_entries(scope, date_range)
        entries = aggregation.filter_entries(
            entries,
            date_range=date_range,
            user_id=scope.user_id,
            project_id=scope.project_id,
        )
        return entries, now

    async def get_daily_summary(
        self,
        caller: Caller,
        scope: SummaryScope,
        preset: DateRangePreset = DateRangePreset.ALL,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> DailyReport:
        """Entries grouped per day, newest day first."""
        entries, _ = await self._entries(caller, scope, preset, start, end)
        days = aggregation.group_by_day(entries)
        total = sum(day.total_minutes for day in days)
        return DailyReport(days=days, total_minutes=total, total_display=format_minutes(total))

    async def get_project_summary(
        self,
        caller: Caller,
        scope: SummaryScope,
        preset: DateRangePreset = DateRangePreset.ALL,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        active_only: bool = False,
    ) -> ProjectReport:
        """Per-project totals, largest first; finished projects dropped with active_only."""
        entries, now = await self._entries(caller, scope, preset, start, end)
        projects = aggregation.group_by_project(entries, now)
        if active_only:
            projects = aggregation.active_projects(projects)
        total = sum(project.total_minutes for project in projects)
        return ProjectReport(projects=projects, total_minutes=total, total_display=format_minutes(total))

    async def get_user_summary(
        self,
        caller: Caller,
        scope: SummaryScope,
        preset: DateRangePreset = DateRangePreset.ALL,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> UserReport:
        """Per-user totals, largest first."""
        entries, now = await self._entries(caller, scope, preset, start, end)
        users = aggregation.group_by_user(entries, now)
        total = sum(user.total_minutes for user in users)
        return UserReport(users=users, total_minutes=total, total_display=format_minutes(total))

    async def get_dashboard(self, caller: Caller) -> DashboardStats:
        """
        Caller's own today/week/month numbers.

        Only entries from the earliest compared period onwards are loaded;
        active project counts come from every project the caller has
        tracked time on.
        """
        now = self.clock()
        window = DateRange(start=min(start_of_week(now) - timedelta(days=7), start_of_month(now)))
        entries = await self.fetch_time_entries(SummaryScope(user_id=caller.user_id), window)

        project_ids = await self.time_entries.distinct("project_id", {"user_id": caller.user_id})
        cursor = self.projects.find({"_id": {"$in": valid_object_ids(project_ids)}})
        projects = [self._doc_to_project_ref(doc) for doc in await cursor.to_list(length=None)]

        return aggregation.dashboard(entries, now, projects=projects)

    async def get_organization_projects(
        self,
        caller: Caller,
        preset: DateRangePreset = DateRangePreset.ALL,
        active_only: bool = True,
    ) -> list[OrganizationProjects]:
        """Caller's own project summaries grouped per organization."""
        entries, now = await self._entries(caller, SummaryScope(), preset, None, None)
        groups = aggregation.group_by_organization(entries, now)
        if not active_only:
            return groups

        result = []
        for group in groups:
            projects = aggregation.active_projects(group.projects)
            if projects:
                result.append(group.model_copy(update={"projects": projects}))
        return result
