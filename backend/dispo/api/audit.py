"""
Audit API — read the server-side audit trail (admins only).
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from dispo.api.deps import get_audit_log, roles_required
from dispo.auth.context import RequestContext
from dispo.auth.roles import Role
from dispo.schemas.schemas import AuditListResponse
from dispo.services.audit_service import audit_csv, AuditLog

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=AuditListResponse)
async def list_audit_entries(
    action: str | None = Query(None, description="Filter by action"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=200, description="Page size"),
    ctx: RequestContext = Depends(roles_required(Role.ADMIN)),
    audit: AuditLog = Depends(get_audit_log),
):
    """Return audit entries, newest first."""
    entries = audit.entries(action=action, limit=size, offset=(page - 1) * size)
    return {"total": audit.count(action), "user": ctx.as_dict(), "entries": entries}


@router.get("/export", response_class=PlainTextResponse)
async def export_audit_csv(
    ctx: RequestContext = Depends(roles_required(Role.ADMIN)),
    audit: AuditLog = Depends(get_audit_log),
):
    """Full audit trail as CSV."""
    return PlainTextResponse(
        audit_csv(audit.entries(limit=audit.count())),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit.csv"},
    )
