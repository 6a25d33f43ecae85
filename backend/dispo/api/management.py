"""
Management dashboard — chiefs and admins only.
"""

from fastapi import APIRouter, Depends, Request

from dispo.api.deps import roles_required
from dispo.auth.context import RequestContext
from dispo.auth.roles import Role

router = APIRouter(prefix="/api/management", tags=["management"])


@router.get("")
async def management_overview(
    request: Request,
    ctx: RequestContext = Depends(roles_required([Role.ADMIN, Role.CHIEF])),
):
    shifts = request.app.state.shift_store.shifts()
    return {
        "message": "Management dashboard data",
        "user": ctx.as_dict(),
        "data": {
            "totalShifts": len(shifts),
            "openShifts": sum(1 for s in shifts if s.status == "open"),
        },
    }
