"""Organization router - organizations, memberships and their projects."""
from fastapi import APIRouter, Depends, Query, status

from timetracker.database import get_database
from timetracker.models.organization import (
    MemberAdd,
    MemberRoleUpdate,
    Organization,
    OrganizationCreate,
    OrganizationInvite,
    OrganizationUpdate,
    OrganizationUser,
    OrganizationWithRole,
)
from timetracker.models.project import Project, ProjectCreate
from timetracker.models.user import Caller
from timetracker.routers.auth import get_current_caller
from timetracker.services.organization_service import OrganizationService
from timetracker.services.permissions import permission_flags
from timetracker.services.project_service import ProjectService


router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=Organization, status_code=status.HTTP_201_CREATED)
async def create_organization(
    organization: OrganizationCreate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Create an organization; the caller becomes its admin."""
    service = OrganizationService(db)
    return await service.create_organization(caller, organization)


@router.get("", response_model=list[OrganizationWithRole])
async def list_organizations(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """List the organizations the caller belongs to."""
    service = OrganizationService(db)
    return await service.list_organizations(caller)


@router.get("/{organization_id}", response_model=OrganizationWithRole)
async def get_organization(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Get an organization (members only)."""
    service = OrganizationService(db)
    return await service.get_organization(caller, organization_id)


@router.get("/{organization_id}/permissions", response_model=dict[str, bool])
async def get_permissions(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Capability flags of the caller in the organization.

    Every flag comes from the role table, so clients never re-derive them.
    """
    service = OrganizationService(db)
    role = await service.get_role(organization_id, caller.user_id)
    return permission_flags(role)


@router.patch("/{organization_id}", response_model=Organization)
async def update_organization(
    organization_id: str,
    organization_update: OrganizationUpdate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Rename an organization (admin only)."""
    service = OrganizationService(db)
    return await service.update_organization(caller, organization_id, organization_update)


@router.delete("/{organization_id}")
async def delete_organization(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Delete an organization with everything it owns (admin only)."""
    service = OrganizationService(db)
    return await service.delete_organization(caller, organization_id)


@router.get("/{organization_id}/members", response_model=list[OrganizationUser])
async def list_members(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """List the members of an organization."""
    service = OrganizationService(db)
    return await service.list_members(caller, organization_id)


@router.post(
    "/{organization_id}/members",
    response_model=OrganizationUser | OrganizationInvite,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    organization_id: str,
    member: MemberAdd,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Add a user by e-mail, or invite the e-mail if it has no account (admin only)."""
    service = OrganizationService(db)
    return await service.add_member(caller, organization_id, member)


@router.patch("/{organization_id}/members/{user_id}", response_model=OrganizationUser)
async def change_member_role(
    organization_id: str,
    user_id: str,
    role_update: MemberRoleUpdate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Change a member's role (admin only)."""
    service = OrganizationService(db)
    return await service.change_role(caller, organization_id, user_id, role_update.role)


@router.delete("/{organization_id}/members/{user_id}")
async def remove_member(
    organization_id: str,
    user_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Remove a member (admin only)."""
    service = OrganizationService(db)
    return await service.remove_member(caller, organization_id, user_id)


@router.get("/{organization_id}/invites", response_model=list[OrganizationInvite])
async def list_invites(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """List pending invites (admin only)."""
    service = OrganizationService(db)
    return await service.list_invites(caller, organization_id)


@router.delete("/{organization_id}/invites/{invite_id}")
async def revoke_invite(
    organization_id: str,
    invite_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Revoke a pending invite (admin only)."""
    service = OrganizationService(db)
    return await service.revoke_invite(caller, organization_id, invite_id)


@router.post(
    "/{organization_id}/projects",
    response_model=Project,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    organization_id: str,
    project: ProjectCreate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Create a project in the organization (admin only)."""
    service = ProjectService(db)
    return await service.create_project(caller, organization_id, project)


@router.get("/{organization_id}/projects", response_model=list[Project])
async def list_projects(
    organization_id: str,
    active_only: bool = Query(False, description="Leave finished projects out"),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """List the projects of an organization, sorted by name."""
    service = ProjectService(db)
    return await service.list_projects(caller, organization_id, active_only=active_only)
