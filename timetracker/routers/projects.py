"""Project router - API endpoints for a single project."""
from fastapi import APIRouter, Depends

from timetracker.database import get_database
from timetracker.models.project import Project, ProjectUpdate
from timetracker.models.user import Caller
from timetracker.routers.auth import get_current_caller
from timetracker.services.project_service import ProjectService


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Get a project of one of the caller's organizations."""
    service = ProjectService(db)
    return await service.get_project(caller, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    project_update: ProjectUpdate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Rename a project (admin only)."""
    service = ProjectService(db)
    return await service.update_project(caller, project_id, project_update)


@router.post("/{project_id}/finish", response_model=Project)
async def finish_project(
    project_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Mark a project finished (admin only)."""
    service = ProjectService(db)
    return await service.set_finished(caller, project_id, True)


@router.post("/{project_id}/reopen", response_model=Project)
async def reopen_project(
    project_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Reopen a finished project (admin only)."""
    service = ProjectService(db)
    return await service.set_finished(caller, project_id, False)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Delete a project and its time entries (admin only)."""
    service = ProjectService(db)
    return await service.delete_project(caller, project_id)
