"""Project service - business logic for project management."""
import logging

from timetracker.errors import NotFoundError
from timetracker.models.project import Project, ProjectCreate, ProjectUpdate
from timetracker.models.user import Caller
from timetracker.services import permissions
from timetracker.services.organization_service import fetch_organization_role, utcnow
from timetracker.services.permissions import Capability
from timetracker.utils.ids import to_object_id


logger = logging.getLogger(__name__)


class ProjectService:
    """Service for handling project operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.projects = db["projects"]
        self.organizations = db["organizations"]
        self.memberships = db["organization_users"]
        self.time_entries = db["time_entries"]

    def _doc_to_project(self, doc: dict) -> Project:
        """
        Convert database document to Project model.
        """
        return Project(
            _id=str(doc["_id"]),
            organization_id=doc["organization_id"],
            name=doc["name"],
            is_finished=doc.get("is_finished", False),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def _require(self, caller: Caller, organization_id: str, capability: Capability) -> None:
        role = await fetch_organization_role(self.memberships, organization_id, caller.user_id)
        permissions.require(role, capability)

    async def _load(self, project_id: str) -> dict:
        doc = await self.projects.find_one({"_id": to_object_id(project_id, "Project")})
        if not doc:
            raise NotFoundError("Project not found", code="project_not_found")
        return doc

    async def create_project(
        self,
        caller: Caller,
        organization_id: str,
        project_create: ProjectCreate,
    ) -> Project:
        """
        Create a new project in an organization.

        Args:
            caller: Session context
            organization_id: Owning organization
            project_create: Project creation data

        Returns:
            Created project object

        Raises:
            NotFoundError: If the organization does not exist
            PermissionDenied: If the caller may not manage projects
        """
        organization = await self.organizations.find_one({
            "_id": to_object_id(organization_id, "Organization"),
        })
        if not organization:
            raise NotFoundError("Organization not found", code="organization_not_found")
        await self._require(caller, organization_id, Capability.MANAGE_PROJECTS)

        now = utcnow()
        project_doc = {
            "organization_id": organization_id,
            "name": project_create.name,
            "is_finished": False,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.projects.insert_one(project_doc)
        project_doc["_id"] = result.inserted_id

        logger.info("Project %s created in organization %s", result.inserted_id, organization_id)
        return self._doc_to_project(project_doc)

    async def list_projects(
        self,
        caller: Caller,
        organization_id: str,
        active_only: bool = False,
    ) -> list[Project]:
        """
        List the projects of an organization, sorted by name.

        Args:
            caller: Session context
            organization_id: Organization ID
            active_only: Leave finished projects out

        Returns:
            List of projects
        """
        await self._require(caller, organization_id, Capability.VIEW_ORGANIZATION)

        query = {"organization_id": organization_id}
        if active_only:
            query["is_finished"] = False

        cursor = self.projects.find(query).sort("name", 1)
        project_docs = await cursor.to_list(length=None)
        return [self._doc_to_project(doc) for doc in project_docs]

    async def get_project(self, caller: Caller, project_id: str) -> Project:
        """Get a project of an organization the caller belongs to."""
        doc = await self._load(project_id)
        await self._require(caller, doc["organization_id"], Capability.VIEW_ORGANIZATION)
        return self._doc_to_project(doc)

    async def _update(self, doc: dict, update_doc: dict) -> Project:
        update_doc["updated_at"] = utcnow()
        updated = await self.projects.find_one_and_update(
            {"_id": doc["_id"]},
            {"$set": update_doc},
            return_document=True,
        )
        return self._doc_to_project(updated)

    async def update_project(
        self,
        caller: Caller,
        project_id: str,
        project_update: ProjectUpdate,
    ) -> Project:
        """Rename a project (admin only)."""
        doc = await self._load(project_id)
        await self._require(caller, doc["organization_id"], Capability.MANAGE_PROJECTS)

        update_doc = {}
        if project_update.name is not None:
            update_doc["name"] = project_update.name
        return await self._update(doc, update_doc)

    async def set_finished(self, caller: Caller, project_id: str, is_finished: bool) -> Project:
        """
        Finish or reopen a project (admin only).

        A finished project keeps its entries but accepts no new ones.
        """
        doc = await self._load(project_id)
        await self._require(caller, doc["organization_id"], Capability.FINISH_PROJECTS)

        logger.info("Project %s %s", project_id, "finished" if is_finished else "reopened")
        return await self._update(doc, {"is_finished": is_finished})

    async def delete_project(self, caller: Caller, project_id: str) -> dict:
        """
        Delete a project and its time entries (admin only).

        Returns:
            Dictionary with deleted_count
        """
        doc = await self._load(project_id)
        await self._require(caller, doc["organization_id"], Capability.DELETE_PROJECTS)

        await self.time_entries.delete_many({"project_id": project_id})
        result = await self.projects.delete_one({"_id": doc["_id"]})

        logger.info("Project %s deleted by %s", project_id, caller.user_id)
        return {"deleted_count": result.deleted_count}
