"""
Assignment rules API — list the rules and manage per-shift overrides.

An override lifts one rule for one shift (e.g. emergency coverage that
double-books a disponent). Chiefs and admins manage them; every change is
audited by the rule engine.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request

from dispo.api.deps import get_rule_engine, resource_guard
from dispo.auth.context import RequestContext
from dispo.schemas.schemas import OverrideCreate, OverrideListResponse, OverrideSchema, RuleListResponse
from dispo.services.rule_engine import OverrideNotAllowedError, RuleEngine, UnknownRuleError

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("", response_model=RuleListResponse)
async def list_rules(
    ctx: RequestContext = Depends(resource_guard("shifts", "read")),
    engine: RuleEngine = Depends(get_rule_engine),
):
    return {
        "rules": [
            {
                "id": rule.id,
                "name": rule.name,
                "description": rule.description,
                "severity": rule.severity.value,
                "allow_override": rule.allow_override,
            }
            for rule in engine.rules.values()
        ]
    }


@router.get("/overrides", response_model=OverrideListResponse)
async def list_overrides(
    ctx: RequestContext = Depends(resource_guard("shifts", "assign")),
    engine: RuleEngine = Depends(get_rule_engine),
):
    return {"overrides": [asdict(o) for o in engine.active_overrides()]}


@router.post("/overrides", response_model=OverrideSchema, status_code=201)
async def create_override(
    body: OverrideCreate,
    request: Request,
    ctx: RequestContext = Depends(resource_guard("shifts", "assign")),
    engine: RuleEngine = Depends(get_rule_engine),
):
    if request.app.state.shift_store.get_shift(body.shift_id) is None:
        raise HTTPException(status_code=404, detail=f"Shift {body.shift_id} not found")
    try:
        override = engine.create_override(body.shift_id, body.rule_id, body.reason, ctx, approver=body.approver)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OverrideNotAllowedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return asdict(override)


@router.delete("/overrides/{override_id}", status_code=204)
async def delete_override(
    override_id: str,
    ctx: RequestContext = Depends(resource_guard("shifts", "assign")),
    engine: RuleEngine = Depends(get_rule_engine),
):
    if not engine.remove_override(override_id, ctx):
        raise HTTPException(status_code=404, detail="Override not found")
