"""Organization and membership model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    """Membership roles, the only authorization axis."""

    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class OrganizationCreate(BaseModel):
    """Organization creation model."""

    name: str = Field(min_length=1)


class OrganizationUpdate(BaseModel):
    """Organization update model."""

    name: Optional[str] = Field(default=None, min_length=1)


class Organization(BaseModel):
    """Full organization model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class OrganizationWithRole(Organization):
    """Organization as seen by one of its members."""

    role: Role


class MemberAdd(BaseModel):
    """Request to add a user, or invite an unregistered e-mail, to an organization."""

    email: EmailStr
    role: Role = Role.USER


class MemberRoleUpdate(BaseModel):
    """Request to change a member's role."""

    role: Role


class OrganizationUser(BaseModel):
    """Membership row: one per (organization, user) pair."""

    id: str = Field(alias="_id", serialization_alias="id")
    organization_id: str
    user_id: str
    role: Role
    email: Optional[str] = None
    full_name: Optional[str] = None
    created_at: datetime

    model_config = {"populate_by_name": True}


class OrganizationInvite(BaseModel):
    """Pending invitation for an e-mail that has no account yet."""

    id: str = Field(alias="_id", serialization_alias="id")
    organization_id: str
    email: str
    role: Role
    invited_by: str
    created_at: datetime

    model_config = {"populate_by_name": True}
