"""Time entry model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from timetracker.utils.time import duration_minutes


class TimeEntryCreate(BaseModel):
    """Manual time entry creation model (always a closed interval)."""

    project_id: str
    started_at: datetime
    ended_at: datetime


class TimeEntryUpdate(BaseModel):
    """Time entry update model - either bound may change."""

    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class TimeEntry(BaseModel):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    project_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @computed_field
    @property
    def is_running(self) -> bool:
        return self.ended_at is None

    @computed_field
    @property
    def duration_minutes(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return duration_minutes(self.started_at, self.ended_at)


class ProjectRef(BaseModel):
    """Project fields joined onto an entry."""

    id: str
    name: str
    is_finished: bool = False
    organization_id: str


class OrganizationRef(BaseModel):
    """Organization fields joined onto an entry."""

    id: str
    name: str


class TimeEntryWithDetails(TimeEntry):
    """Time entry with its project, organization and owner joined in."""

    project: Optional[ProjectRef] = None
    organization: Optional[OrganizationRef] = None
    user_email: Optional[str] = None
