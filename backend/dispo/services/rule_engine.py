"""
Rule Engine — business rules checked before a disponent is assigned to a shift.

Rules are evaluated against the other shifts already assigned to the same
person:

  PREVENT_DOUBLE_BOOKING  overlapping shifts              BLOCKING
  LOCATION_CONSISTENCY    overlapping shift elsewhere     WARNING
  REST_PERIOD             less than 8h between shifts     WARNING

A blocking rule can be lifted for one shift by an override. Overrides are
created by chiefs/admins with a reason, and both their creation and their use
land in the audit log.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable
from uuid import uuid4

from dispo.auth.context import RequestContext
from dispo.schemas.schemas import Shift
from dispo.services.audit_service import AuditLog

logger = logging.getLogger(__name__)

MIN_REST = timedelta(hours=8)


class Severity(str, Enum):
    WARNING = "WARNING"
    BLOCKING = "BLOCKING"


class ConflictCode(str, Enum):
    ASSIGNMENT_COLLISION = "ASSIGNMENT_COLLISION"
    LOCATION_MISMATCH = "LOCATION_MISMATCH"
    SHORT_TURNAROUND = "SHORT_TURNAROUND"


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    description: str
    severity: Severity
    conflict_codes: tuple[ConflictCode, ...]
    allow_override: bool = True


RULES: dict[str, Rule] = {
    rule.id: rule
    for rule in (
        Rule(
            "PREVENT_DOUBLE_BOOKING", "Prevent Double Booking",
            "Prevents assigning the same person to overlapping shifts",
            Severity.BLOCKING, (ConflictCode.ASSIGNMENT_COLLISION,),
        ),
        Rule(
            "LOCATION_CONSISTENCY", "Location Consistency",
            "Warns when the same person is assigned to different locations simultaneously",
            Severity.WARNING, (ConflictCode.LOCATION_MISMATCH,),
        ),
        Rule(
            "REST_PERIOD", "Minimum Rest Period",
            "Ensures adequate rest between consecutive shifts",
            Severity.WARNING, (ConflictCode.SHORT_TURNAROUND,),
        ),
    )
}


class RuleEngineError(Exception):
    """Base class for rule engine failures."""


class UnknownRuleError(RuleEngineError):
    pass


class OverrideNotAllowedError(RuleEngineError):
    pass


class AssignmentBlockedError(RuleEngineError):
    """Raised by `enforce` when a blocking rule has no override."""

    def __init__(self, evaluation: Evaluation):
        self.evaluation = evaluation
        names = ", ".join(v.rule.name for v in evaluation.blocking)
        super().__init__(f"Assignment blocked by rules: {names}")


# ── Conflict detection ───────────────────────────────────────────────────────

def _at(day, hhmm: str) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hours), int(minutes))


def shift_interval(shift: Shift) -> tuple[datetime, datetime]:
    """[start, end) of a shift; an end at or before the start means the next day."""
    start = _at(shift.date, shift.start)
    end = _at(shift.date, shift.end)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def shifts_overlap(a: Shift, b: Shift) -> bool:
    a_start, a_end = shift_interval(a)
    b_start, b_end = shift_interval(b)
    return a_start < b_end and a_end > b_start


def is_short_turnaround(first: Shift, second: Shift, min_rest: timedelta = MIN_REST) -> bool:
    """`second` starts less than `min_rest` after `first` ends."""
    gap = shift_interval(second)[0] - shift_interval(first)[1]
    return timedelta(0) <= gap < min_rest


def compute_conflicts(target: Shift, assignee: str, shifts: Iterable[Shift]) -> list[ConflictCode]:
    """Conflicts of assigning `assignee` to `target`, given all known shifts."""
    own = [
        s for s in shifts
        if s.id != target.id and s.assigned_to == assignee and s.status == "assigned"
    ]
    overlapping = [s for s in own if shifts_overlap(target, s)]

    conflicts = []
    if overlapping:
        conflicts.append(ConflictCode.ASSIGNMENT_COLLISION)
        if any(
            (target.work_location or s.work_location) and s.work_location != target.work_location
            for s in overlapping
        ):
            conflicts.append(ConflictCode.LOCATION_MISMATCH)
    if any(is_short_turnaround(target, s) or is_short_turnaround(s, target) for s in own):
        conflicts.append(ConflictCode.SHORT_TURNAROUND)
    return conflicts


# ── Evaluation ───────────────────────────────────────────────────────────────

@dataclass
class Override:
    rule_id: str
    shift_id: int
    reason: str
    approver: str
    approver_role: str
    created_by: str
    id: str = field(default_factory=lambda: f"override_{uuid4().hex[:12]}")
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    is_active: bool = True


@dataclass
class Violation:
    rule: Rule
    conflicts: list[ConflictCode]

    @property
    def is_blocking(self) -> bool:
        return self.rule.severity == Severity.BLOCKING


@dataclass
class Evaluation:
    violations: list[Violation] = field(default_factory=list)
    overrides: list[Override] = field(default_factory=list)

    @property
    def blocking(self) -> list[Violation]:
        overridden = {o.rule_id for o in self.overrides}
        return [v for v in self.violations if v.is_blocking and v.rule.id not in overridden]

    @property
    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if not v.is_blocking]

    @property
    def can_assign(self) -> bool:
        return not self.blocking

    def summary(self) -> dict:
        return {
            "canAssign": self.can_assign,
            "violations": [
                {
                    "ruleId": v.rule.id,
                    "rule": v.rule.name,
                    "severity": v.rule.severity.value,
                    "conflicts": [c.value for c in v.conflicts],
                }
                for v in self.violations
            ],
            "overrides": [o.id for o in self.overrides],
        }


class RuleEngine:
    def __init__(self, audit: AuditLog, rules: dict[str, Rule] | None = None):
        self.audit = audit
        self.rules = dict(rules or RULES)
        self._overrides: dict[tuple[int, str], Override] = {}

    def evaluate(self, target: Shift, assignee: str, shifts: Iterable[Shift]) -> Evaluation:
        conflicts = compute_conflicts(target, assignee, shifts)
        evaluation = Evaluation()
        for rule in self.rules.values():
            matched = [c for c in conflicts if c in rule.conflict_codes]
            if not matched:
                continue
            evaluation.violations.append(Violation(rule, matched))
            override = self._overrides.get((target.id, rule.id))
            if override is not None and override.is_active:
                evaluation.overrides.append(override)
        return evaluation

    def enforce(self, target: Shift, assignee: str, shifts: Iterable[Shift], ctx: RequestContext) -> Evaluation:
        """Evaluate and audit; raises AssignmentBlockedError when blocked."""
        evaluation = self.evaluate(target, assignee, shifts)
        self.audit.record(
            "rule_evaluation", "shift", str(target.id),
            actor=ctx.actor, role=ctx.role, after={"assignee": assignee, **evaluation.summary()},
        )
        if not evaluation.can_assign:
            logger.info("Assignment of %s to shift %s blocked: %s",
                        assignee, target.id, [v.rule.id for v in evaluation.blocking])
            raise AssignmentBlockedError(evaluation)

        if evaluation.overrides:
            self.audit.record(
                "rule_override_applied", "shift", str(target.id),
                actor=ctx.actor, role=ctx.role,
                after={"assignee": assignee, "overrides": [asdict(o) for o in evaluation.overrides]},
            )
        return evaluation

    # ── Overrides ────────────────────────────────────────────────────────

    def create_override(
        self,
        shift_id: int,
        rule_id: str,
        reason: str,
        ctx: RequestContext,
        approver: str | None = None,
    ) -> Override:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise UnknownRuleError(f"Rule {rule_id} not found")
        if not rule.allow_override:
            raise OverrideNotAllowedError(f"Rule {rule_id} does not allow overrides")

        override = Override(
            rule_id=rule_id,
            shift_id=shift_id,
            reason=reason,
            approver=approver or ctx.actor,
            approver_role=ctx.role,
            created_by=ctx.actor,
        )
        self._overrides[(shift_id, rule_id)] = override
        self.audit.record(
            "rule_override_created", "rule_override", override.id,
            actor=ctx.actor, role=ctx.role, after=asdict(override), reason=reason,
        )
        return override

    def remove_override(self, override_id: str, ctx: RequestContext) -> bool:
        for key, override in self._overrides.items():
            if override.id == override_id:
                del self._overrides[key]
                self.audit.record(
                    "rule_override_removed", "rule_override", override_id,
                    actor=ctx.actor, role=ctx.role, before=asdict(override),
                )
                return True
        return False

    def active_overrides(self) -> list[Override]:
        return [o for o in self._overrides.values() if o.is_active]
