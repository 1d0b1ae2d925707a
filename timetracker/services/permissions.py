"""Permission policy - static role to capability table."""
import logging
from enum import Enum
from typing import Optional

from timetracker.errors import PermissionDenied
from timetracker.models.organization import Role


logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Operations gated by organization role."""

    VIEW_ORGANIZATION = "view_organization"
    EDIT_ORGANIZATION = "edit_organization"
    MANAGE_USERS = "manage_users"
    MANAGE_PROJECTS = "manage_projects"
    DELETE_PROJECTS = "delete_projects"
    FINISH_PROJECTS = "finish_projects"
    VIEW_ALL_TIME_ENTRIES = "view_all_time_entries"
    TRACK_OWN_TIME = "track_own_time"


_MEMBER = frozenset({
    Capability.VIEW_ORGANIZATION,
    Capability.TRACK_OWN_TIME,
})

_MANAGER = _MEMBER | {Capability.VIEW_ALL_TIME_ENTRIES}

_ADMIN = frozenset(Capability)

CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: _ADMIN,
    Role.MANAGER: frozenset(_MANAGER),
    Role.USER: _MEMBER,
}


def capabilities_for(role: Optional[Role | str]) -> frozenset[Capability]:
    """
    Capability set of a role.

    Args:
        role: Role, its string value, or None for a non-member

    Returns:
        Set of granted capabilities (empty for None or an unknown role)

    Example:
        >>> Capability.VIEW_ALL_TIME_ENTRIES in capabilities_for("manager")
        True
        >>> capabilities_for(None)
        frozenset()
    """
    if role is None:
        return frozenset()
    try:
        return CAPABILITIES[Role(role)]
    except ValueError:
        return frozenset()


def check(role: Optional[Role | str], capability: Capability) -> bool:
    """Whether ``role`` grants ``capability``."""
    return capability in capabilities_for(role)


def require(role: Optional[Role | str], capability: Capability) -> None:
    """
    Fail closed when ``role`` does not grant ``capability``.

    Raises:
        PermissionDenied: With code "not_a_member" when there is no role,
            otherwise with the missing capability as code
    """
    if check(role, capability):
        return

    if role is None:
        logger.warning("Denied %s: caller is not a member", capability.value)
        raise PermissionDenied(
            "You are not a member of this organization",
            code="not_a_member",
        )

    logger.warning("Denied %s for role %s", capability.value, role)
    raise PermissionDenied(
        f"Your role does not allow {capability.value.replace('_', ' ')}",
        code=capability.value,
    )


def permission_flags(role: Optional[Role | str]) -> dict[str, bool]:
    """All capability flags of a role, keyed by capability value."""
    granted = capabilities_for(role)
    return {capability.value: capability in granted for capability in Capability}
