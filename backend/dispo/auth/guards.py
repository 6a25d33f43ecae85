"""
Request guards.

Each constructor returns a guard: a callable taking a request-like object
and returning a GuardResult. Guards never raise; every failure becomes a
deny result carrying the HTTP status and a ``{"error", "message"}`` body.
On allow, the resolved role is attached to the request-like object as
``role``.

    require_permission("canManageShifts")
    require_role([Role.ADMIN, Role.CHIEF])
    guard_resource("shifts", "assign")

The FastAPI adapters live in dispo.api.deps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from dispo.auth.permissions import PERMISSIONS, Permission, check_permission
from dispo.auth.context import extract_role
from dispo.auth.roles import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardResult:
    allowed: bool
    role: str | None = None
    status_code: int = 200
    body: dict[str, str] = field(default_factory=dict)

    @classmethod
    def allow(cls, role: str) -> GuardResult:
        return cls(allowed=True, role=role)

    @classmethod
    def deny(cls, status_code: int, error: str, message: str, role: str | None = None) -> GuardResult:
        return cls(
            allowed=False,
            role=role,
            status_code=status_code,
            body={"error": error, "message": message},
        )


Guard = Callable[[Any], GuardResult]


def _unauthorized() -> GuardResult:
    return GuardResult.deny(401, "Unauthorized", "Authentication required")


def _forbidden(message: str, role: str) -> GuardResult:
    return GuardResult.deny(403, "Forbidden", message, role=role)


def _attach_role(request: Any, role: str) -> None:
    try:
        setattr(request, "role", role)
    except AttributeError:
        if isinstance(request, dict):
            request["role"] = role


def require_permission(permission: Permission | str) -> Guard:
    """Guard on a named permission from the permission table."""
    name = permission.value if isinstance(permission, Permission) else permission

    def guard(request: Any) -> GuardResult:
        role = extract_role(request)
        if not role:
            return _unauthorized()

        if name not in PERMISSIONS:
            logger.error("Guard references undefined permission %r", name)
            return GuardResult.deny(500, "Internal Error", "Invalid permission check", role=role)

        if not check_permission(name, role):
            return _forbidden(f"Insufficient permissions. Required: {name}", role)

        _attach_role(request, role)
        return GuardResult.allow(role)

    return guard


def require_role(allowed_roles: Role | str | Iterable[Role | str]) -> Guard:
    """Guard on an explicit set of roles (no hierarchy)."""
    if isinstance(allowed_roles, (Role, str)):
        allowed_roles = [allowed_roles]
    roles = [r.value if isinstance(r, Role) else r for r in allowed_roles]

    def guard(request: Any) -> GuardResult:
        role = extract_role(request)
        if not role:
            return _unauthorized()

        if role not in roles:
            return _forbidden(f"Access denied. Required roles: {', '.join(roles)}", role)

        _attach_role(request, role)
        return GuardResult.allow(role)

    return guard


_SHIFT_ACTIONS: dict[str, Permission] = {
    "read": Permission.VIEW_ANALYTICS,
    "write": Permission.MANAGE_SHIFTS,
    "create": Permission.MANAGE_SHIFTS,
    "update": Permission.MANAGE_SHIFTS,
    "delete": Permission.MANAGE_SHIFTS,
    "apply": Permission.APPLY_FOR_SHIFTS,
    "assign": Permission.ASSIGN_SHIFTS,
}


def resource_permission(resource: str, action: str) -> Permission | None:
    """Permission required for `action` on `resource`; None means always denied."""
    if resource == "shifts":
        return _SHIFT_ACTIONS.get(action)
    if resource == "audit":
        # audit entries are written by the system only
        return Permission.VIEW_AUDIT if action == "read" else None
    if resource == "templates":
        return Permission.VIEW_ANALYTICS if action == "read" else Permission.MANAGE_TEMPLATES
    if resource == "analytics":
        return Permission.VIEW_ANALYTICS
    return None


def can_access(role: str | None, resource: str, action: str) -> bool:
    permission = resource_permission(resource, action)
    if permission is None:
        return False
    return check_permission(permission, role)


def guard_resource(resource: str, action: str) -> Guard:
    """Guard on a resource/action pair."""

    def guard(request: Any) -> GuardResult:
        role = extract_role(request)
        if not role:
            return _unauthorized()

        if not can_access(role, resource, action):
            return _forbidden(f"Access denied for {action} on {resource}", role)

        _attach_role(request, role)
        return GuardResult.allow(role)

    return guard
