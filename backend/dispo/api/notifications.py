"""
Notifications API — email preferences and manual digest runs.

Users may read and change their own preference; chiefs and admins may change
anyone's (they manage the disponents' settings).
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from dispo.api.deps import GuardDenied, get_notification_service, permission_required, roles_required
from dispo.auth.context import RequestContext
from dispo.auth.permissions import Permission
from dispo.auth.roles import Role
from dispo.schemas.notifications import UserPreferences
from dispo.schemas.schemas import DigestRunResponse, PreferencesResponse, PreferencesUpdate
from dispo.services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _ensure_self_or_manager(ctx: RequestContext, recipient: str) -> None:
    if ctx.actor == recipient or ctx.has_permission(Permission.ASSIGN_SHIFTS):
        return
    raise GuardDenied(403, {
        "error": "Forbidden",
        "message": f"Access denied for preferences of {recipient}",
    })


@router.get("/preferences/{recipient}", response_model=PreferencesResponse)
async def get_preferences(
    recipient: str,
    ctx: RequestContext = Depends(permission_required(Permission.VIEW_ANALYTICS)),
    service: NotificationService = Depends(get_notification_service),
):
    _ensure_self_or_manager(ctx, recipient)
    prefs = await service.get_user_preferences(recipient)
    return {"recipient": recipient, "email_notifications": prefs.email_notifications}


@router.put("/preferences/{recipient}", response_model=PreferencesResponse)
async def update_preferences(
    recipient: str,
    body: PreferencesUpdate,
    ctx: RequestContext = Depends(permission_required(Permission.VIEW_ANALYTICS)),
    service: NotificationService = Depends(get_notification_service),
):
    _ensure_self_or_manager(ctx, recipient)
    prefs = await service.update_user_preferences(
        recipient, UserPreferences(email_notifications=body.email_notifications)
    )
    return {"recipient": recipient, "email_notifications": prefs.email_notifications}


@router.post("/digest/run", response_model=DigestRunResponse)
async def run_digest(
    ctx: RequestContext = Depends(roles_required(Role.ADMIN)),
    service: NotificationService = Depends(get_notification_service),
):
    """Run the daily digest now (normally triggered by the scheduler)."""
    report = await service.process_daily_digest()
    return asdict(report)
