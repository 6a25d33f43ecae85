"""
Analytics API — shift utilisation figures.
"""

from collections import Counter

from fastapi import APIRouter, Depends, Request

from dispo.api.deps import resource_guard
from dispo.auth.context import RequestContext

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("")
async def analytics_overview(
    request: Request,
    ctx: RequestContext = Depends(resource_guard("analytics", "read")),
):
    shifts = request.app.state.shift_store.shifts()
    by_status = Counter(s.status for s in shifts)
    total = len(shifts)
    utilization = round(100 * by_status.get("assigned", 0) / total) if total else 0
    return {
        "message": "Analytics data",
        "user": ctx.as_dict(),
        "analytics": {
            "totalShifts": total,
            "shiftsByStatus": dict(by_status),
            "utilizationRate": f"{utilization}%",
        },
    }
