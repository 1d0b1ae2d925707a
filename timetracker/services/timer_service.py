"""Timer service - business logic for time tracking."""
import logging
from datetime import datetime
from typing import Callable, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from timetracker.config import settings
from timetracker.errors import ConflictError, NotFoundError, ValidationError
from timetracker.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from timetracker.models.user import Caller
from timetracker.services import permissions
from timetracker.services.organization_service import fetch_organization_role
from timetracker.services.permissions import Capability
from timetracker.utils.ids import to_object_id
from timetracker.utils.time import to_stored, wall_clock_now


logger = logging.getLogger(__name__)

TIMER_ALREADY_RUNNING = "A timer is already running. Stop it before starting a new one."


def validate_interval(started_at: datetime, ended_at: datetime) -> None:
    """
    Reject intervals that do not end strictly after they start.

    Raises:
        ValidationError: If ended_at <= started_at
    """
    if ended_at <= started_at:
        raise ValidationError(
            "End time must be after start time",
            code="invalid_interval",
        )


class TimerService:
    """Service for handling time tracking operations."""

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize service with database connection.

        Args:
            db: Database handle
            clock: Returns "now" in the stored convention; defaults to the
                configured display timezone's wall clock
        """
        self.db = db
        self.time_entries = db["time_entries"]
        self.projects = db["projects"]
        self.memberships = db["organization_users"]
        self.clock = clock or (lambda: wall_clock_now(settings.display_timezone))

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.
        """
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            project_id=doc["project_id"],
            started_at=doc["started_at"],
            ended_at=doc.get("ended_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def _trackable_project(self, caller: Caller, project_id: str) -> dict:
        """
        Load a project the caller may log new time against.

        Raises:
            NotFoundError: Unknown project
            PermissionDenied: Caller is not a member of its organization
            ValidationError: Project is finished
        """
        project = await self.projects.find_one({"_id": to_object_id(project_id, "Project")})
        if not project:
            raise NotFoundError("Project not found", code="project_not_found")

        role = await fetch_organization_role(
            self.memberships, project["organization_id"], caller.user_id
        )
        permissions.require(role, Capability.TRACK_OWN_TIME)

        if project.get("is_finished"):
            raise ValidationError(
                "Project is finished and accepts no new time entries",
                code="project_finished",
            )
        return project

    async def _own_entry(self, caller: Caller, entry_id: str) -> dict:
        existing = await self.time_entries.find_one({
            "_id": to_object_id(entry_id, "Time entry"),
            "user_id": caller.user_id,
        })
        if not existing:
            raise NotFoundError("Time entry not found", code="time_entry_not_found")
        return existing

    async def start_timer(self, caller: Caller, project_id: str) -> TimeEntry:
        """
        Start a new timer.

        Args:
            caller: Session context
            project_id: Project to log time against

        Returns:
            Created open time entry

        Raises:
            ConflictError: If a timer is already running for the caller
        """
        await self._trackable_project(caller, project_id)

        running = await self.time_entries.find_one({
            "user_id": caller.user_id,
            "running": True,
        })
        if running:
            logger.info("Timer start rejected for %s: already running", caller.user_id)
            raise ConflictError(TIMER_ALREADY_RUNNING, code="timer_already_running")

        now = self.clock()
        entry_doc = {
            "user_id": caller.user_id,
            "project_id": project_id,
            "started_at": now,
            "ended_at": None,
            "running": True,
            "created_at": now,
            "updated_at": now,
        }

        # The unique partial index settles concurrent starts
        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            logger.info("Timer start rejected for %s: lost concurrent start", caller.user_id)
            raise ConflictError(TIMER_ALREADY_RUNNING, code="timer_already_running")
        entry_doc["_id"] = result.inserted_id

        logger.info("Timer %s started by %s on project %s", result.inserted_id, caller.user_id, project_id)
        return self._doc_to_entry(entry_doc)

    async def stop_timer(self, caller: Caller) -> TimeEntry:
        """
        Stop the currently running timer.

        Returns:
            Closed time entry

        Raises:
            NotFoundError: If no timer is running
            ValidationError: If the clock is not past the start time
        """
        running = await self.time_entries.find_one({
            "user_id": caller.user_id,
            "running": True,
        })
        if not running:
            raise NotFoundError("No timer running", code="no_active_timer")

        now = self.clock()
        validate_interval(running["started_at"], now)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": running["_id"], "running": True},
            {"$set": {"ended_at": now, "running": False, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated_doc:
            raise NotFoundError("No timer running", code="no_active_timer")

        logger.info("Timer %s stopped by %s", running["_id"], caller.user_id)
        return self._doc_to_entry(updated_doc)

    async def get_active_timer(self, caller: Caller) -> Optional[TimeEntry]:
        """
        Get the currently running timer, if any.

        Returns:
            Current running time entry, or None
        """
        running = await self.time_entries.find_one({
            "user_id": caller.user_id,
            "running": True,
        })
        if not running:
            return None
        return self._doc_to_entry(running)

    async def get_entry(self, caller: Caller, entry_id: str) -> TimeEntry:
        """
        Get one of the caller's time entries.

        Raises:
            NotFoundError: If the entry does not exist or is someone else's
        """
        return self._doc_to_entry(await self._own_entry(caller, entry_id))

    async def list_entries(
        self,
        caller: Caller,
        project_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[TimeEntry]:
        """
        List the caller's time entries, newest first.

        Args:
            caller: Session context
            project_id: Optional project filter
            start_date: Optional lower bound on started_at (local time)
            end_date: Optional upper bound on started_at (local time)

        Returns:
            List of time entries
        """
        query = {"user_id": caller.user_id}

        if project_id:
            query["project_id"] = project_id

        if start_date or end_date:
            query["started_at"] = {}
            if start_date:
                query["started_at"]["$gte"] = to_stored(start_date)
            if end_date:
                query["started_at"]["$lte"] = to_stored(end_date)

        cursor = self.time_entries.find(query).sort("started_at", -1)
        entry_docs = await cursor.to_list(length=None)
        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def create_entry(self, caller: Caller, entry_create: TimeEntryCreate) -> TimeEntry:
        """
        Create a manual (closed) time entry.

        Raises:
            ValidationError: Bad interval or finished project
            NotFoundError: Unknown project
            PermissionDenied: Caller is not a member of the project's organization
        """
        started_at = to_stored(entry_create.started_at)
        ended_at = to_stored(entry_create.ended_at)
        validate_interval(started_at, ended_at)
        await self._trackable_project(caller, entry_create.project_id)

        now = self.clock()
        entry_doc = {
            "user_id": caller.user_id,
            "project_id": entry_create.project_id,
            "started_at": started_at,
            "ended_at": ended_at,
            "running": False,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        logger.info("Manual entry %s created by %s", result.inserted_id, caller.user_id)
        return self._doc_to_entry(entry_doc)

    async def update_entry(
        self,
        caller: Caller,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Move either bound of one of the caller's entries.

        Setting ended_at on a running entry closes it.

        Raises:
            NotFoundError: If the entry does not exist or is someone else's
            ValidationError: If the resulting interval is invalid
        """
        existing = await self._own_entry(caller, entry_id)

        update_doc = {"updated_at": self.clock()}
        if entry_update.started_at is not None:
            update_doc["started_at"] = to_stored(entry_update.started_at)
        if entry_update.ended_at is not None:
            update_doc["ended_at"] = to_stored(entry_update.ended_at)
            update_doc["running"] = False

        started_at = update_doc.get("started_at", existing["started_at"])
        ended_at = update_doc.get("ended_at", existing.get("ended_at"))
        if ended_at is not None:
            validate_interval(started_at, ended_at)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": existing["_id"], "user_id": caller.user_id},
            {"$set": update_doc},
            return_document=ReturnDocument.AFTER,
        )
        if not updated_doc:
            raise NotFoundError("Time entry not found", code="time_entry_not_found")

        logger.info("Entry %s updated by %s", entry_id, caller.user_id)
        return self._doc_to_entry(updated_doc)

    async def delete_entry(self, caller: Caller, entry_id: str) -> dict:
        """
        Delete one of the caller's time entries (hard delete).

        Returns:
            Dictionary with deleted_count
        """
        existing = await self._own_entry(caller, entry_id)

        result = await self.time_entries.delete_one({
            "_id": existing["_id"],
            "user_id": caller.user_id,
        })

        logger.info("Entry %s deleted by %s", entry_id, caller.user_id)
        return {"deleted_count": result.deleted_count}
