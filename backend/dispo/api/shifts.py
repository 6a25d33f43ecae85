"""
Shifts API — list, create, update, apply for and assign shifts.

Assignments are checked by the rule engine first (blocking violations give
409). Assigning or unassigning a disponent queues an email notification; a
failed mail is reported in `warnings` and does not undo the change.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from dispo.api.deps import (
    get_audit_log,
    get_notification_service,
    get_rule_engine,
    permission_required,
    resource_guard,
)
from dispo.auth.context import RequestContext
from dispo.auth.permissions import Permission
from dispo.database import ShiftStore
from dispo.schemas.notifications import AssignmentEvent, NotificationType, ShiftSnapshot
from dispo.schemas.schemas import (
    Shift,
    ShiftAssign,
    ShiftCreate,
    ShiftListResponse,
    ShiftResponse,
    ShiftUpdate,
)
from dispo.services.audit_service import AuditLog
from dispo.services.email_provider import EmailDeliveryError
from dispo.services.notification_service import NotificationService
from dispo.services.rule_engine import RuleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shifts", tags=["shifts"])


def _store(request: Request) -> ShiftStore:
    return request.app.state.shift_store


def _get_shift_or_404(store: ShiftStore, shift_id: int) -> Shift:
    shift = store.get_shift(shift_id)
    if shift is None:
        raise HTTPException(status_code=404, detail=f"Shift {shift_id} not found")
    return shift


def _snapshot(shift: Shift) -> ShiftSnapshot:
    return ShiftSnapshot(
        date=shift.date,
        start=shift.start,
        end=shift.end,
        type=shift.type,
        work_location=shift.work_location,
    )


@router.get("", response_model=ShiftListResponse)
async def list_shifts(
    request: Request,
    ctx: RequestContext = Depends(permission_required(Permission.VIEW_ANALYTICS)),
):
    return {"message": "Shifts data", "user": ctx.as_dict(), "shifts": _store(request).shifts()}


@router.post("", response_model=ShiftResponse)
async def create_shift(
    body: ShiftCreate,
    request: Request,
    ctx: RequestContext = Depends(permission_required(Permission.MANAGE_SHIFTS)),
    audit: AuditLog = Depends(get_audit_log),
):
    store = _store(request)
    shift = Shift(id=store.next_shift_id(), **body.model_dump())
    store.put_shift(shift)
    audit.record(
        "shift_created", "shift", str(shift.id),
        actor=ctx.actor, role=ctx.role, after=shift.model_dump(mode="json"),
    )
    return {"message": "Shift created successfully", "user": ctx.as_dict(), "shift": shift}


@router.get("/{shift_id}", response_model=ShiftResponse)
async def get_shift(
    shift_id: int,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "read")),
):
    shift = _get_shift_or_404(_store(request), shift_id)
    return {"message": f"Shift {shift_id} details", "user": ctx.as_dict(), "shift": shift}


@router.put("/{shift_id}", response_model=ShiftResponse)
async def update_shift(
    shift_id: int,
    body: ShiftUpdate,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "update")),
    audit: AuditLog = Depends(get_audit_log),
):
    store = _store(request)
    shift = _get_shift_or_404(store, shift_id)
    updated = shift.model_copy(update=body.model_dump(exclude_unset=True))
    store.put_shift(updated)
    audit.record(
        "shift_updated", "shift", str(shift_id),
        actor=ctx.actor, role=ctx.role,
        before=shift.model_dump(mode="json"), after=updated.model_dump(mode="json"),
    )
    return {"message": f"Shift {shift_id} updated", "user": ctx.as_dict(), "shift": updated}


@router.post("/{shift_id}/apply", response_model=ShiftResponse)
async def apply_for_shift(
    shift_id: int,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "apply")),
):
    store = _store(request)
    shift = _get_shift_or_404(store, shift_id)
    if ctx.actor not in shift.applicants:
        shift = shift.model_copy(update={"applicants": [*shift.applicants, ctx.actor]})
        store.put_shift(shift)
    return {"message": f"Applied for shift {shift_id}", "user": ctx.as_dict(), "shift": shift}


async def _notify(notifications: NotificationService, events: list[AssignmentEvent]) -> list[str]:
    """Queue every event; a failed removal mail does not stop the others."""
    failed = []
    for event in events:
        try:
            await notifications.queue_assignment_notification(event)
        except EmailDeliveryError as e:
            logger.warning("Notification to %s for shift %s failed: %s", event.assigned_to, event.shift_id, e)
            failed.append(f"Notification to {event.assigned_to} failed")
    return failed


@router.post("/{shift_id}/assign", response_model=ShiftResponse)
async def assign_shift(
    shift_id: int,
    body: ShiftAssign,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "assign")),
    notifications: NotificationService = Depends(get_notification_service),
    rules: RuleEngine = Depends(get_rule_engine),
    audit: AuditLog = Depends(get_audit_log),
):
    """Assign a disponent. Blocking rule violations without an override give 409."""
    store = _store(request)
    shift = _get_shift_or_404(store, shift_id)
    evaluation = rules.enforce(shift, body.user_email, store.shifts(), ctx)
    previous = shift.assigned_to

    updated = shift.model_copy(update={"assigned_to": body.user_email, "status": "assigned"})
    store.put_shift(updated)
    audit.record(
        "assignment_created", "assignment", str(shift_id),
        actor=ctx.actor, role=ctx.role,
        before=shift.model_dump(mode="json"), after=updated.model_dump(mode="json"),
    )

    events = []
    if previous and previous != body.user_email:
        events.append(AssignmentEvent(
            shift_id=str(shift_id), assigned_to=previous,
            shift=_snapshot(shift), type=NotificationType.REMOVED,
        ))
    if previous != body.user_email:
        events.append(AssignmentEvent(
            shift_id=str(shift_id), assigned_to=body.user_email,
            shift=_snapshot(updated), type=NotificationType.ASSIGNED,
        ))

    warnings = [v.rule.name for v in evaluation.warnings]
    warnings += await _notify(notifications, events)
    return {"message": f"Assigned shift {shift_id}", "user": ctx.as_dict(), "shift": updated, "warnings": warnings}


@router.delete("/{shift_id}/assign", response_model=ShiftResponse)
async def unassign_shift(
    shift_id: int,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "assign")),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditLog = Depends(get_audit_log),
):
    store = _store(request)
    shift = _get_shift_or_404(store, shift_id)
    if shift.assigned_to is None:
        raise HTTPException(status_code=409, detail=f"Shift {shift_id} is not assigned")

    updated = shift.model_copy(update={"assigned_to": None, "status": "open"})
    store.put_shift(updated)
    audit.record(
        "assignment_removed", "assignment", str(shift_id),
        actor=ctx.actor, role=ctx.role,
        before=shift.model_dump(mode="json"), after=updated.model_dump(mode="json"),
    )
    warnings = await _notify(notifications, [AssignmentEvent(
        shift_id=str(shift_id), assigned_to=shift.assigned_to,
        shift=_snapshot(shift), type=NotificationType.REMOVED,
    )])
    return {"message": f"Unassigned shift {shift_id}", "user": ctx.as_dict(), "shift": updated, "warnings": warnings}
