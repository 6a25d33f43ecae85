"""
Shift templates API.
"""

from fastapi import APIRouter, Depends, Request

from dispo.api.deps import get_audit_log, resource_guard
from dispo.auth.context import RequestContext
from dispo.schemas.schemas import ShiftTemplate, ShiftTemplateCreate
from dispo.services.audit_service import AuditLog

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("")
async def list_templates(
    request: Request,
    ctx: RequestContext = Depends(resource_guard("templates", "read")),
):
    return {
        "message": "Shift templates",
        "user": ctx.as_dict(),
        "templates": request.app.state.shift_store.templates(),
    }


@router.post("")
async def create_template(
    body: ShiftTemplateCreate,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("templates", "create")),
    audit: AuditLog = Depends(get_audit_log),
):
    store = request.app.state.shift_store
    template = ShiftTemplate(id=store.next_template_id(), **body.model_dump())
    store.put_template(template)
    audit.record(
        "template_created", "template", str(template.id),
        actor=ctx.actor, role=ctx.role, after=template.model_dump(),
    )
    return {"message": "Template created", "user": ctx.as_dict(), "template": template}
