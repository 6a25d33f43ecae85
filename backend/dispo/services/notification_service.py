"""
Notification Service — shift-assignment emails for disponents.

Lifecycle of a notification:

    queued (processed=False) ──removal──▶ mailed immediately ─▶ processed
                             └─assigned─▶ daily digest ───────▶ processed
                                          (or skipped on opt-out)

Users who opted out of email get nothing queued at all. The service is
constructed by the application factory and shared through ``app.state``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable
from uuid import uuid4

from dispo.middleware.metrics import (
    digest_runs_total,
    emails_failed_total,
    emails_sent_total,
)
from dispo.schemas.notifications import (
    AssignmentEvent,
    EmailContent,
    EmailMessage,
    Notification,
    NotificationType,
    SendResult,
    UserPreferences,
)
from dispo.services.email_provider import EmailDeliveryError, EmailProvider
from dispo.services.email_templates import digest_template, removal_template
from dispo.services.notification_store import NotificationStorage

logger = logging.getLogger(__name__)


@dataclass
class DigestReport:
    recipients: int = 0
    emails_sent: int = 0
    skipped_opt_out: int = 0
    failed: int = 0
    notifications_processed: int = 0


class NotificationService:
    def __init__(
        self,
        email_provider: EmailProvider,
        storage: NotificationStorage,
        *,
        digest_schedule: str = "18:30",
        is_enabled: bool = True,
        send_timeout: float = 10.0,
        now_fn: Callable[[], datetime] | None = None,
    ):
        self.email_provider = email_provider
        self.storage = storage
        self.digest_schedule = digest_schedule
        self.is_enabled = is_enabled
        self.send_timeout = send_timeout
        self.now_fn = now_fn or (lambda: datetime.now().astimezone())

    # ── Queueing ──────────────────────────────────────────────────────────

    async def queue_assignment_notification(
        self, event: AssignmentEvent | dict[str, Any]
    ) -> Notification | None:
        """Record an assignment change; removals are mailed right away.

        Returns the stored notification, or None if nothing was stored
        (service disabled or recipient opted out).
        """
        if not self.is_enabled:
            return None

        if not isinstance(event, AssignmentEvent):
            event = AssignmentEvent.model_validate(event)

        prefs = await self.get_user_preferences(event.assigned_to)
        if not prefs.email_notifications:
            logger.debug("Recipient %s opted out, dropping %s notification", event.assigned_to, event.type.value)
            return None

        now = self.now_fn()
        notification = Notification(
            id=f"{event.shift_id}_{event.assigned_to}_{int(now.timestamp() * 1000)}_{uuid4().hex[:8]}",
            type=event.type,
            recipient=event.assigned_to,
            shift_id=event.shift_id,
            shift=event.shift,
            created_at=now,
            processed=False,
        )
        await self.storage.add_notification(notification)

        if notification.type == NotificationType.REMOVED:
            await self.send_immediate_notification(notification)
            notification.processed = True
            await self.storage.update_notification(notification)

        return notification

    async def send_immediate_notification(self, notification: Notification) -> SendResult:
        template = removal_template(notification)
        return await self._dispatch(notification.recipient, template, kind="removal")

    # ── Digest ────────────────────────────────────────────────────────────

    async def process_daily_digest(self, today: date | None = None) -> DigestReport:
        """Send one summary per recipient with pending notifications.

        A recipient whose mail fails keeps its notifications pending for the
        next run; the remaining recipients are still processed. Removals whose
        immediate mail failed are still pending and go out in this digest.
        """
        report = DigestReport()
        if not self.is_enabled:
            return report

        today = today or self.now_fn().date()
        started = time.time()
        pending = await self.storage.get_pending_notifications()
        grouped = self.group_notifications_by_user(pending)
        report.recipients = len(grouped)

        for recipient, notifications in grouped.items():
            prefs = await self.get_user_preferences(recipient)
            if not prefs.email_notifications:
                await self.mark_notifications_processed(notifications)
                report.skipped_opt_out += 1
                report.notifications_processed += len(notifications)
                continue

            template = digest_template(recipient, notifications, self.digest_schedule, today=today)
            try:
                await self._dispatch(recipient, template, kind="digest")
            except EmailDeliveryError as e:
                logger.error("Digest for %s failed, leaving %d notifications pending: %s",
                             recipient, len(notifications), e)
                report.failed += 1
                continue

            await self.mark_notifications_processed(notifications)
            report.emails_sent += 1
            report.notifications_processed += len(notifications)

        digest_runs_total.labels(status="partial" if report.failed else "ok").inc()
        logger.info(
            "Daily digest done: %d recipients, %d sent, %d opted out, %d failed (%.0fms)",
            report.recipients, report.emails_sent, report.skipped_opt_out, report.failed,
            (time.time() - started) * 1000,
        )
        return report

    @staticmethod
    def group_notifications_by_user(notifications: list[Notification]) -> dict[str, list[Notification]]:
        """Group by recipient, keeping first-appearance order."""
        grouped: dict[str, list[Notification]] = {}
        for notification in notifications:
            grouped.setdefault(notification.recipient, []).append(notification)
        return grouped

    async def mark_notifications_processed(self, notifications: list[Notification]) -> None:
        for notification in notifications:
            notification.processed = True
            await self.storage.update_notification(notification)

    # ── Preferences ───────────────────────────────────────────────────────

    async def get_user_preferences(self, recipient: str) -> UserPreferences:
        prefs = await self.storage.get_user_preferences(recipient)
        return prefs or UserPreferences()

    async def update_user_preferences(self, recipient: str, preferences: UserPreferences) -> UserPreferences:
        await self.storage.update_user_preferences(recipient, preferences)
        return preferences

    # ── Dispatch ──────────────────────────────────────────────────────────

    async def _dispatch(self, recipient: str, content: EmailContent, *, kind: str) -> SendResult:
        message = EmailMessage(to=recipient, subject=content.subject, html=content.html, text=content.text)
        try:
            result = await asyncio.wait_for(
                self.email_provider.send_email(message), timeout=self.send_timeout
            )
        except asyncio.TimeoutError as e:
            emails_failed_total.labels(kind=kind).inc()
            raise EmailDeliveryError(
                f"Sending {kind} mail to {recipient} timed out after {self.send_timeout}s"
            ) from e
        except EmailDeliveryError:
            emails_failed_total.labels(kind=kind).inc()
            raise
        except Exception as e:
            emails_failed_total.labels(kind=kind).inc()
            raise EmailDeliveryError(f"Sending {kind} mail to {recipient} failed: {e}") from e

        emails_sent_total.labels(kind=kind).inc()
        return result
