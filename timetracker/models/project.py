"""Project model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProjectBase(BaseModel):
    """Base project fields."""

    name: str = Field(min_length=1)


class ProjectCreate(ProjectBase):
    """Project creation model."""

    pass


class ProjectUpdate(BaseModel):
    """Project update model - all fields optional."""

    name: Optional[str] = Field(default=None, min_length=1)


class Project(ProjectBase):
    """Full project model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    organization_id: str
    is_finished: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
