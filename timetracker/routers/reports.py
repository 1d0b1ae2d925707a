"""Report endpoints - time aggregation views."""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query

from timetracker.database import get_database
from timetracker.models.summary import (
    DailyReport,
    DashboardStats,
    DateRangePreset,
    OrganizationProjects,
    ProjectReport,
    SummaryScope,
    UserReport,
)
from timetracker.models.user import Caller
from timetracker.routers.auth import get_current_caller
from timetracker.services.report_service import ReportService


router = APIRouter(prefix="/reports", tags=["reports"])


def get_scope(
    organization_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
) -> SummaryScope:
    """Scope filters shared by the summary endpoints."""
    return SummaryScope(
        organization_id=organization_id,
        project_id=project_id,
        user_id=user_id,
    )


@router.get("/daily", response_model=DailyReport)
async def daily_summary(
    scope: SummaryScope = Depends(get_scope),
    preset: DateRangePreset = Query(DateRangePreset.ALL),
    start: Optional[datetime] = Query(None, description="Custom range start day"),
    end: Optional[datetime] = Query(None, description="Custom range end day (inclusive)"),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Entries grouped per day, newest day first."""
    service = ReportService(db)
    return await service.get_daily_summary(caller, scope, preset, start, end)


@router.get("/projects", response_model=ProjectReport)
async def project_summary(
    scope: SummaryScope = Depends(get_scope),
    preset: DateRangePreset = Query(DateRangePreset.ALL),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    active_only: bool = Query(False, description="Leave finished projects out"),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Per-project totals, largest first."""
    service = ReportService(db)
    return await service.get_project_summary(caller, scope, preset, start, end, active_only)


@router.get("/users", response_model=UserReport)
async def user_summary(
    scope: SummaryScope = Depends(get_scope),
    preset: DateRangePreset = Query(DateRangePreset.ALL),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """
    Per-user totals, largest first.

    - Other users' totals need the manager or admin role in the organization
    """
    service = ReportService(db)
    return await service.get_user_summary(caller, scope, preset, start, end)


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Caller's today/week/month totals and active project counts."""
    service = ReportService(db)
    return await service.get_dashboard(caller)


@router.get("/organizations", response_model=list[OrganizationProjects])
async def organization_projects(
    preset: DateRangePreset = Query(DateRangePreset.ALL),
    active_only: bool = Query(True),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Caller's own projects grouped per organization."""
    service = ReportService(db)
    return await service.get_organization_projects(caller, preset, active_only)
