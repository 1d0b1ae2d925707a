"""Timer endpoints - time tracking operations."""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from timetracker.database import get_database
from timetracker.errors import NotFoundError
from timetracker.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from timetracker.models.user import Caller
from timetracker.routers.auth import get_current_caller
from timetracker.services.timer_service import TimerService


router = APIRouter(prefix="/timers", tags=["timers"])


class TimerStart(BaseModel):
    """Request model for starting a timer."""

    project_id: str


@router.post("/start", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def start_timer(
    timer_start: TimerStart,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Start a new timer.

    - Only one timer can run at a time (409 otherwise)
    - Project must exist, be active and belong to one of the caller's organizations
    """
    service = TimerService(db)
    return await service.start_timer(caller, timer_start.project_id)


@router.post("/stop", response_model=TimeEntry)
async def stop_timer(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Stop the currently running timer.

    - Returns 404 if no timer is running
    """
    service = TimerService(db)
    return await service.stop_timer(caller)


@router.get("/current", response_model=TimeEntry)
async def get_current_timer(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Get the currently running timer.

    - Returns 404 if no timer is running
    """
    service = TimerService(db)
    entry = await service.get_active_timer(caller)

    if not entry:
        raise NotFoundError("No timer running", code="no_active_timer")

    return entry


@router.get("/entries", response_model=list[TimeEntry])
async def list_entries(
    project_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    List the caller's time entries.

    - Optional filters: project_id, start_date, end_date (local time)
    - Results sorted by started_at descending (most recent first)
    """
    service = TimerService(db)
    return await service.list_entries(
        caller,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/entries", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def create_entry(
    entry_create: TimeEntryCreate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Create a manual time entry.

    - End must be after start (422)
    - Finished projects reject new entries (422)
    """
    service = TimerService(db)
    return await service.create_entry(caller, entry_create)


@router.get("/entries/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Get one of the caller's time entries."""
    service = TimerService(db)
    return await service.get_entry(caller, entry_id)


@router.patch("/entries/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Update a time entry.

    - Caller must own the entry
    - The resulting interval is re-validated
    """
    service = TimerService(db)
    return await service.update_entry(caller, entry_id, entry_update)


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Delete a time entry.

    - Caller must own the entry
    - Hard delete (permanent)
    """
    service = TimerService(db)
    return await service.delete_entry(caller, entry_id)
