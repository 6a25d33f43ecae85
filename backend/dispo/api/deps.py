"""
API Dependencies — services from app.state and guard adapters.

The guards in dispo.auth.guards are framework-free. The adapters below run a
guard against the incoming request and either

  - return the caller's RequestContext (role also stored on request.state), or
  - raise GuardDenied, which the app renders as ``{"error", "message"}``.

Usage:
    @router.post("/shifts")
    async def create_shift(ctx: RequestContext = Depends(permission_required("canManageShifts"))):
        ...
"""

import logging
from typing import Iterable

from fastapi import HTTPException, Request

from dispo.auth.context import GuardRequest, RequestContext, get_user_context
from dispo.auth.guards import Guard, guard_resource, require_permission, require_role
from dispo.auth.permissions import Permission
from dispo.auth.roles import Role
from dispo.middleware.metrics import guard_denials_total
from dispo.services.audit_service import AuditLog
from dispo.services.notification_service import NotificationService
from dispo.services.rule_engine import RuleEngine

logger = logging.getLogger(__name__)


class GuardDenied(HTTPException):
    """A guard rejected the request; `body` is returned verbatim."""

    def __init__(self, status_code: int, body: dict[str, str]):
        super().__init__(status_code=status_code, detail=body.get("message"))
        self.body = body


# ── Services ─────────────────────────────────────────────────────────────────

def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_rule_engine(request: Request) -> RuleEngine:
    return request.app.state.rule_engine


def get_audit_log(request: Request) -> AuditLog:
    return request.app.state.audit_log


# ── Guards ───────────────────────────────────────────────────────────────────

def _as_dependency(guard: Guard, label: str):
    async def _check(request: Request) -> RequestContext:
        guard_request = GuardRequest.from_request(request)
        result = guard(guard_request)
        if not result.allowed:
            guard_denials_total.labels(guard=label, status_code=result.status_code).inc()
            logger.info(
                "%s denied %s %s: %s",
                label, request.method, request.url.path, result.body.get("message"),
            )
            raise GuardDenied(result.status_code, result.body)

        request.state.role = result.role
        return get_user_context(guard_request)

    return _check


def permission_required(permission: Permission | str):
    name = permission.value if isinstance(permission, Permission) else permission
    return _as_dependency(require_permission(name), f"permission:{name}")


def roles_required(roles: Role | str | Iterable[Role | str]):
    return _as_dependency(require_role(roles), "role")


def resource_guard(resource: str, action: str):
    return _as_dependency(guard_resource(resource, action), f"resource:{resource}:{action}")
