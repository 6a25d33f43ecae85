from dispo.auth.roles import Role, ROLE_HIERARCHY, has_permission, role_tier
from dispo.auth.permissions import Permission, PERMISSIONS, check_permission, permissions_for
from dispo.auth.context import GuardRequest, RequestContext, extract_role, get_user_context
from dispo.auth.guards import GuardResult, guard_resource, require_permission, require_role

__all__ = [
    "Role", "ROLE_HIERARCHY", "has_permission", "role_tier",
    "Permission", "PERMISSIONS", "check_permission", "permissions_for",
    "GuardRequest", "RequestContext", "extract_role", "get_user_context",
    "GuardResult", "guard_resource", "require_permission", "require_role",
]
