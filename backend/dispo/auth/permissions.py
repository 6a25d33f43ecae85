"""
Permission table — the named capabilities of the disposition system.

Each permission is bound to the minimum role that holds it and is checked
through the role hierarchy, so `canManageShifts` is "chief or above".

The names are the ones used across the front end and the API guards.
Looking up a name that is not in PERMISSIONS raises KeyError; the guards
turn that into a 500 configuration error.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

from dispo.auth.roles import Role, has_permission


class Permission(str, Enum):
    MANAGE_SHIFTS = "canManageShifts"           # create, edit, delete shifts
    VIEW_AUDIT = "canViewAudit"                 # admin only
    APPLY_FOR_SHIFTS = "canApplyForShifts"
    VIEW_ANALYTICS = "canViewAnalytics"
    ASSIGN_SHIFTS = "canAssignShifts"
    MANAGE_TEMPLATES = "canManageTemplates"


PERMISSION_MINIMUM_ROLE: dict[Permission, Role] = {
    Permission.MANAGE_SHIFTS: Role.CHIEF,
    Permission.VIEW_AUDIT: Role.ADMIN,
    Permission.APPLY_FOR_SHIFTS: Role.DISPONENT,
    Permission.VIEW_ANALYTICS: Role.ANALYST,
    Permission.ASSIGN_SHIFTS: Role.CHIEF,
    Permission.MANAGE_TEMPLATES: Role.CHIEF,
}

PermissionCheck = Callable[[Role | str | None], bool]


def _requires(minimum: Role) -> PermissionCheck:
    def check(user_role: Role | str | None) -> bool:
        return has_permission(user_role, minimum)
    return check


PERMISSIONS: dict[str, PermissionCheck] = {
    perm.value: _requires(minimum)
    for perm, minimum in PERMISSION_MINIMUM_ROLE.items()
}


def check_permission(name: Permission | str, user_role: Role | str | None) -> bool:
    """Evaluate a named permission. Raises KeyError for an unknown name."""
    key = name.value if isinstance(name, Permission) else name
    return PERMISSIONS[key](user_role)


def permissions_for(user_role: Role | str | None) -> set[Permission]:
    """All permissions a role holds (empty for unknown roles)."""
    return {p for p in Permission if PERMISSIONS[p.value](user_role)}
