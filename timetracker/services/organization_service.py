"""Organization service - organizations and their memberships."""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import DuplicateKeyError

from timetracker.errors import ConflictError, NotFoundError
from timetracker.models.organization import (
    MemberAdd,
    Organization,
    OrganizationCreate,
    OrganizationInvite,
    OrganizationUpdate,
    OrganizationUser,
    OrganizationWithRole,
    Role,
)
from timetracker.models.user import Caller
from timetracker.services import permissions
from timetracker.services.permissions import Capability
from timetracker.utils.auth import normalize_email
from timetracker.utils.ids import to_object_id, valid_object_ids


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp for created_at/updated_at bookkeeping."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def fetch_organization_role(
    memberships,
    organization_id: str,
    user_id: str,
) -> Optional[Role]:
    """
    Role of a user in an organization.

    Args:
        memberships: organization_users collection
        organization_id: Organization ID
        user_id: User ID

    Returns:
        Role, or None when the user is not a member
    """
    doc = await memberships.find_one({
        "organization_id": organization_id,
        "user_id": user_id,
    })
    if not doc:
        return None
    return Role(doc["role"])


class OrganizationService:
    """Service for organizations and memberships."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.organizations = db["organizations"]
        self.memberships = db["organization_users"]
        self.invites = db["organization_invites"]
        self.projects = db["projects"]
        self.time_entries = db["time_entries"]
        self.users = db["users"]

    def _doc_to_organization(self, doc: dict) -> Organization:
        return Organization(
            _id=str(doc["_id"]),
            name=doc["name"],
            created_by=doc["created_by"],
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_member(self, doc: dict, user: Optional[dict] = None) -> OrganizationUser:
        return OrganizationUser(
            _id=str(doc["_id"]),
            organization_id=doc["organization_id"],
            user_id=doc["user_id"],
            role=doc["role"],
            email=user.get("email") if user else None,
            full_name=user.get("full_name") if user else None,
            created_at=doc["created_at"],
        )

    async def get_role(self, organization_id: str, user_id: str) -> Optional[Role]:
        """Role of ``user_id`` in the organization, None for non-members."""
        return await fetch_organization_role(self.memberships, organization_id, user_id)

    async def _require(self, caller: Caller, organization_id: str, capability: Capability) -> Role:
        role = await self.get_role(organization_id, caller.user_id)
        permissions.require(role, capability)
        return role

    async def _load(self, organization_id: str) -> dict:
        doc = await self.organizations.find_one({
            "_id": to_object_id(organization_id, "Organization"),
        })
        if not doc:
            raise NotFoundError("Organization not found", code="organization_not_found")
        return doc

    async def create_organization(
        self,
        caller: Caller,
        organization_create: OrganizationCreate,
    ) -> Organization:
        """
        Create an organization and make its creator an admin.

        Args:
            caller: Session context
            organization_create: Organization data

        Returns:
            Created organization
        """
        now = utcnow()
        doc = {
            "name": organization_create.name,
            "created_by": caller.user_id,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.organizations.insert_one(doc)
        doc["_id"] = result.inserted_id

        await self.memberships.insert_one({
            "organization_id": str(result.inserted_id),
            "user_id": caller.user_id,
            "role": Role.ADMIN.value,
            "created_at": now,
        })

        logger.info("Organization %s created by %s", doc["_id"], caller.user_id)
        return self._doc_to_organization(doc)

    async def list_organizations(self, caller: Caller) -> list[OrganizationWithRole]:
        """Organizations the caller belongs to, with the caller's role."""
        cursor = self.memberships.find({"user_id": caller.user_id})
        membership_docs = await cursor.to_list(length=None)
        if not membership_docs:
            return []

        roles = {doc["organization_id"]: doc["role"] for doc in membership_docs}
        cursor = self.organizations.find({
            "_id": {"$in": valid_object_ids(roles)},
        }).sort("name", 1)
        organization_docs = await cursor.to_list(length=None)

        return [
            OrganizationWithRole(
                **self._doc_to_organization(doc).model_dump(by_alias=True),
                role=roles[str(doc["_id"])],
            )
            for doc in organization_docs
        ]

    async def get_organization(self, caller: Caller, organization_id: str) -> OrganizationWithRole:
        """
        Get an organization the caller belongs to.

        Raises:
            NotFoundError: If the organization does not exist
            PermissionDenied: If the caller is not a member
        """
        doc = await self._load(organization_id)
        role = await self._require(caller, organization_id, Capability.VIEW_ORGANIZATION)
        return OrganizationWithRole(
            **self._doc_to_organization(doc).model_dump(by_alias=True),
            role=role,
        )

    async def update_organization(
        self,
        caller: Caller,
        organization_id: str,
        organization_update: OrganizationUpdate,
    ) -> Organization:
        """Rename an organization (admin only)."""
        doc = await self._load(organization_id)
        await self._require(caller, organization_id, Capability.EDIT_ORGANIZATION)

        update_doc = {"updated_at": utcnow()}
        if organization_update.name is not None:
            update_doc["name"] = organization_update.name

        updated = await self.organizations.find_one_and_update(
            {"_id": doc["_id"]},
            {"$set": update_doc},
            return_document=True,
        )
        return self._doc_to_organization(updated)

    async def delete_organization(self, caller: Caller, organization_id: str) -> dict:
        """
        Delete an organization with its memberships, invites, projects and entries (admin only).

        Returns:
            Dictionary with deleted_count
        """
        doc = await self._load(organization_id)
        await self._require(caller, organization_id, Capability.EDIT_ORGANIZATION)

        cursor = self.projects.find({"organization_id": organization_id})
        project_ids = [str(project["_id"]) for project in await cursor.to_list(length=None)]
        if project_ids:
            await self.time_entries.delete_many({"project_id": {"$in": project_ids}})
        await self.projects.delete_many({"organization_id": organization_id})
        await self.memberships.delete_many({"organization_id": organization_id})
        await self.invites.delete_many({"organization_id": organization_id})
        result = await self.organizations.delete_one({"_id": doc["_id"]})

        logger.info("Organization %s deleted by %s", organization_id, caller.user_id)
        return {"deleted_count": result.deleted_count}

    async def list_members(self, caller: Caller, organization_id: str) -> list[OrganizationUser]:
        """Members of an organization with their e-mail, newest first."""
        await self._load(organization_id)
        await self._require(caller, organization_id, Capability.VIEW_ORGANIZATION)

        cursor = self.memberships.find({"organization_id": organization_id}).sort("created_at", -1)
        membership_docs = await cursor.to_list(length=None)

        user_ids = valid_object_ids(doc["user_id"] for doc in membership_docs)
        cursor = self.users.find({"_id": {"$in": user_ids}})
        users = {str(doc["_id"]): doc for doc in await cursor.to_list(length=None)}

        return [self._doc_to_member(doc, users.get(doc["user_id"])) for doc in membership_docs]

    async def add_member(
        self,
        caller: Caller,
        organization_id: str,
        member_add: MemberAdd,
    ) -> OrganizationUser | OrganizationInvite:
        """
        Add a user to the organization by e-mail (admin only).

        An e-mail without an account gets a pending invite instead; the
        membership is created when that e-mail registers or logs in.

        Returns:
            The new membership, or the pending invite

        Raises:
            ConflictError: If the user is already a member or already invited
        """
        await self._load(organization_id)
        await self._require(caller, organization_id, Capability.MANAGE_USERS)

        email = normalize_email(member_add.email)
        user = await self.users.find_one({"email": email})
        if not user:
            return await self._invite(caller, organization_id, email, member_add.role)

        user_id = str(user["_id"])
        if await self.get_role(organization_id, user_id) is not None:
            raise ConflictError("User is already a member", code="already_a_member")

        doc = {
            "organization_id": organization_id,
            "user_id": user_id,
            "role": member_add.role.value,
            "created_at": utcnow(),
        }
        try:
            result = await self.memberships.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError("User is already a member", code="already_a_member")
        doc["_id"] = result.inserted_id

        logger.info("User %s joined organization %s as %s", user_id, organization_id, member_add.role.value)
        return self._doc_to_member(doc, user)

    def _doc_to_invite(self, doc: dict) -> OrganizationInvite:
        return OrganizationInvite(
            _id=str(doc["_id"]),
            organization_id=doc["organization_id"],
            email=doc["email"],
            role=doc["role"],
            invited_by=doc["invited_by"],
            created_at=doc["created_at"],
        )

    async def _invite(self, caller: Caller, organization_id: str, email: str, role: Role) -> OrganizationInvite:
        doc = {
            "organization_id": organization_id,
            "email": email,
            "role": role.value,
            "invited_by": caller.user_id,
            "created_at": utcnow(),
        }
        try:
            result = await self.invites.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError("E-mail already invited", code="already_invited")
        doc["_id"] = result.inserted_id

        logger.info("Invited %s to organization %s as %s", email, organization_id, role.value)
        return self._doc_to_invite(doc)

    async def list_invites(self, caller: Caller, organization_id: str) -> list[OrganizationInvite]:
        """Pending invites of an organization, newest first (admin only)."""
        await self._load(organization_id)
        await self._require(caller, organization_id, Capability.MANAGE_USERS)

        cursor = self.invites.find({"organization_id": organization_id}).sort("created_at", -1)
        return [self._doc_to_invite(doc) for doc in await cursor.to_list(length=None)]

    async def revoke_invite(self, caller: Caller, organization_id: str, invite_id: str) -> dict:
        """
        Withdraw a pending invite (admin only).

        Raises:
            NotFoundError: If the invite does not exist in this organization
        """
        await self._require(caller, organization_id, Capability.MANAGE_USERS)

        result = await self.invites.delete_one({
            "_id": to_object_id(invite_id, "Invite"),
            "organization_id": organization_id,
        })
        if result.deleted_count == 0:
            raise NotFoundError("Invite not found", code="invite_not_found")
        return {"deleted_count": result.deleted_count}

    async def accept_pending_invites(self, user_id: str, email: str) -> int:
        """
        Turn every pending invite for ``email`` into a membership of ``user_id``.

        Invites for organizations the user already belongs to are dropped
        without touching the existing role.

        Returns:
            Number of memberships created
        """
        cursor = self.invites.find({"email": normalize_email(email)})
        invite_docs = await cursor.to_list(length=None)

        joined = 0
        for invite in invite_docs:
            organization_id = invite["organization_id"]
            if await self.get_role(organization_id, user_id) is None:
                try:
                    await self.memberships.insert_one({
                        "organization_id": organization_id,
                        "user_id": user_id,
                        "role": invite["role"],
                        "created_at": utcnow(),
                    })
                    joined += 1
                    logger.info("User %s joined organization %s from invite", user_id, organization_id)
                except DuplicateKeyError:
                    logger.info("User %s already in organization %s, invite dropped", user_id, organization_id)
            await self.invites.delete_one({"_id": invite["_id"]})
        return joined

    async def _load_member(self, organization_id: str, user_id: str) -> dict:
        doc = await self.memberships.find_one({
            "organization_id": organization_id,
            "user_id": user_id,
        })
        if not doc:
            raise NotFoundError("Member not found", code="member_not_found")
        return doc

    async def _keep_an_admin(self, organization_id: str, member: dict) -> None:
        """Refuse to demote or remove the organization's only admin."""
        if member["role"] != Role.ADMIN.value:
            return
        admins = await self.memberships.count_documents({
            "organization_id": organization_id,
            "role": Role.ADMIN.value,
        })
        if admins <= 1:
            raise ConflictError("An organization needs at least one admin", code="last_admin")

    async def change_role(
        self,
        caller: Caller,
        organization_id: str,
        user_id: str,
        role: Role,
    ) -> OrganizationUser:
        """
        Change a member's role (admin only).

        Raises:
            NotFoundError: If the user is not a member
            ConflictError: If this would demote the last admin
        """
        await self._require(caller, organization_id, Capability.MANAGE_USERS)

        member = await self._load_member(organization_id, user_id)
        if role != Role.ADMIN:
            await self._keep_an_admin(organization_id, member)

        updated = await self.memberships.find_one_and_update(
            {"_id": member["_id"]},
            {"$set": {"role": role.value}},
            return_document=True,
        )
        if not updated:
            raise NotFoundError("Member not found", code="member_not_found")
        return self._doc_to_member(updated)

    async def remove_member(self, caller: Caller, organization_id: str, user_id: str) -> dict:
        """
        Remove a member (admin only). Their time entries are kept.

        Raises:
            NotFoundError: If the user is not a member
            ConflictError: If this would remove the last admin
        """
        await self._require(caller, organization_id, Capability.MANAGE_USERS)

        member = await self._load_member(organization_id, user_id)
        await self._keep_an_admin(organization_id, member)

        result = await self.memberships.delete_one({"_id": member["_id"]})
        if result.deleted_count == 0:
            raise NotFoundError("Member not found", code="member_not_found")
        return {"deleted_count": result.deleted_count}
