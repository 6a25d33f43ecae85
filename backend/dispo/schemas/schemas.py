"""
Pydantic schemas for API request/response models.
"""

import datetime as dt

from pydantic import BaseModel, Field


# ── Caller ──

class UserContextSchema(BaseModel):
    actor: str
    role: str


# ── Shifts ──

class ShiftCreate(BaseModel):
    date: dt.date
    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")
    type: str
    work_location: str | None = None


class ShiftUpdate(BaseModel):
    date: dt.date | None = None
    start: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    end: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    type: str | None = None
    work_location: str | None = None
    status: str | None = None


class Shift(ShiftCreate):
    id: int
    status: str = "open"
    assigned_to: str | None = None
    applicants: list[str] = Field(default_factory=list)


class ShiftAssign(BaseModel):
    user_email: str


class ShiftResponse(BaseModel):
    message: str
    user: UserContextSchema
    shift: Shift
    warnings: list[str] = Field(default_factory=list)


class ShiftListResponse(BaseModel):
    message: str
    user: UserContextSchema
    shifts: list[Shift]


# ── Templates ──

class ShiftTemplateCreate(BaseModel):
    name: str
    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")


class ShiftTemplate(ShiftTemplateCreate):
    id: int


# ── Audit ──

class AuditEntry(BaseModel):
    id: str
    timestamp: str
    action: str
    entity_type: str | None
    entity_id: str | None
    before: str | None
    after: str | None
    reason: str | None
    changes: list[dict]
    actor: str | None = None
    role: str | None = None


class AuditListResponse(BaseModel):
    total: int
    user: UserContextSchema
    entries: list[AuditEntry]


# ── Notifications ──

class PreferencesUpdate(BaseModel):
    email_notifications: bool


class PreferencesResponse(BaseModel):
    recipient: str
    email_notifications: bool


class DigestRunResponse(BaseModel):
    recipients: int
    emails_sent: int
    skipped_opt_out: int
    failed: int
    notifications_processed: int


# ── Assignment rules ──

class RuleSchema(BaseModel):
    id: str
    name: str
    description: str
    severity: str
    allow_override: bool


class RuleListResponse(BaseModel):
    rules: list[RuleSchema]


class OverrideCreate(BaseModel):
    shift_id: int
    rule_id: str
    reason: str = Field(min_length=1)
    approver: str | None = None


class OverrideSchema(BaseModel):
    id: str
    rule_id: str
    shift_id: int
    reason: str
    approver: str
    approver_role: str
    created_by: str
    created_at: str
    is_active: bool


class OverrideListResponse(BaseModel):
    overrides: list[OverrideSchema]
