"""
Pydantic models for shift-assignment notifications.
"""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    ASSIGNED = "assigned"
    REMOVED = "removed"


class ShiftSnapshot(BaseModel):
    """Shift details as they were when the event happened."""

    model_config = ConfigDict(populate_by_name=True)

    date: dt.date
    start: str
    end: str
    type: str
    work_location: str | None = Field(None, alias="workLocation")


class AssignmentEvent(BaseModel):
    """A disponent was assigned to, or removed from, a shift."""

    model_config = ConfigDict(populate_by_name=True)

    shift_id: str = Field(alias="shiftId")
    assigned_to: str = Field(alias="assignedTo")
    shift: ShiftSnapshot
    type: NotificationType = NotificationType.ASSIGNED


class Notification(BaseModel):
    id: str
    type: NotificationType
    recipient: str
    shift_id: str
    shift: ShiftSnapshot
    created_at: dt.datetime
    processed: bool = False


class UserPreferences(BaseModel):
    email_notifications: bool = True


class EmailMessage(BaseModel):
    to: str
    subject: str
    html: str
    text: str


class SendResult(BaseModel):
    success: bool
    message_id: str | None = None


class SentEmail(EmailMessage):
    sent_at: dt.datetime


class EmailContent(BaseModel):
    subject: str
    html: str
    text: str
