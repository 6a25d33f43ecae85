"""
German email templates for shift-assignment notifications.

Pure functions: notification data in, {subject, html, text} out. Dates are
rendered the de-DE way (day.month.year without zero padding). The plain text
body is always derived from the HTML so both stay content-equivalent.
"""

import datetime as dt
import html
import re
from typing import Iterable

from dispo.schemas.notifications import (
    EmailContent,
    Notification,
    NotificationType,
    ShiftSnapshot,
)

DEFAULT_WORK_LOCATION = "Büro"
SIGNATURE = "<p>Mit freundlichen Grüßen,<br>Ihr Disposition-Team</p>"
OPT_OUT_HINT = "Um diese E-Mails zu deaktivieren, wenden Sie sich an Ihren Administrator."

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def format_date_de(value: dt.date) -> str:
    """15.1.2025 style date (de-DE short form)."""
    return f"{value.day}.{value.month}.{value.year}"


def html_to_text(markup: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    text = _TAG.sub(" ", markup)
    text = html.unescape(text).replace("\xa0", " ")
    return _WHITESPACE.sub(" ", text).strip()


def _time_range(shift: ShiftSnapshot) -> str:
    return f"{shift.start} - {shift.end}"


def _location(shift: ShiftSnapshot) -> str:
    return shift.work_location or DEFAULT_WORK_LOCATION


def _e(value: object) -> str:
    return html.escape(str(value))


def _content(subject: str, markup: str) -> EmailContent:
    return EmailContent(subject=subject, html=markup, text=html_to_text(markup))


def removal_template(notification: Notification) -> EmailContent:
    """Immediate mail for a removed assignment."""
    shift = notification.shift
    date = format_date_de(shift.date)

    markup = (
        "<h2>Dienst-Zuweisung entfernt</h2>\n"
        "<p>Hallo,</p>\n"
        "<p>Ihre Zuweisung für den folgenden Dienst wurde <strong>entfernt</strong>:</p>\n"
        "<ul>\n"
        f"  <li><strong>Datum:</strong> {date}</li>\n"
        f"  <li><strong>Zeit:</strong> {_e(_time_range(shift))}</li>\n"
        f"  <li><strong>Typ:</strong> {_e(shift.type)}</li>\n"
        f"  <li><strong>Standort:</strong> {_e(_location(shift))}</li>\n"
        "</ul>\n"
        "<p>Bitte beachten Sie diese Änderung in Ihrer Planung.</p>\n"
        f"{SIGNATURE}\n"
        "<hr>\n"
        f"<small>{OPT_OUT_HINT}</small>\n"
    )
    return _content(f"Dienst-Zuweisung entfernt - {date}", markup)


def _shift_item(shift: ShiftSnapshot) -> str:
    return (
        "  <li>\n"
        f"    <strong>{format_date_de(shift.date)}</strong> - {_e(_time_range(shift))}<br>\n"
        f"    Typ: {_e(shift.type)}, Standort: {_e(_location(shift))}\n"
        "  </li>\n"
    )


def digest_template(
    recipient: str,
    notifications: Iterable[Notification],
    digest_time: str,
    today: dt.date | None = None,
) -> EmailContent:
    """Daily summary of new assignments for one recipient.

    The count covers ``assigned`` notifications only. Removals still pending
    here are the ones whose immediate mail failed; they are listed in a
    separate section so the notice is not lost.
    """
    today_de = format_date_de(today or dt.date.today())
    notifications = list(notifications)
    assigned = [n for n in notifications if n.type == NotificationType.ASSIGNED]
    removed = [n for n in notifications if n.type == NotificationType.REMOVED]
    count = len(assigned)

    parts = [
        f"<h2>Tägliche Dienst-Übersicht - {today_de}</h2>\n",
        "<p>Hallo,</p>\n",
        "<p>Hier ist Ihre tägliche Übersicht über Dienst-Zuweisungen:</p>\n",
    ]

    if count == 0:
        parts.append("<p>Keine neuen Zuweisungen heute.</p>\n")
    else:
        plural = "en" if count > 1 else ""
        parts.append(
            f"<p>Sie haben <strong>{count}</strong> neue Dienst-Zuweisung{plural}:</p>\n<ul>\n"
        )
        parts.extend(_shift_item(n.shift) for n in assigned)
        parts.append("</ul>\n")

    if removed:
        parts.append("<p>Folgende Zuweisungen wurden <strong>entfernt</strong>:</p>\n<ul>\n")
        parts.extend(_shift_item(n.shift) for n in removed)
        parts.append("</ul>\n")

    parts.append(
        f"{SIGNATURE}\n"
        "<hr>\n"
        "<small>\n"
        f"  Diese E-Mail wird täglich um {_e(digest_time)} Uhr versendet.<br>\n"
        f"  {OPT_OUT_HINT}\n"
        "</small>\n"
    )

    subject = f"Dienst-Übersicht - {today_de} ({digest_time} Uhr)"
    return _content(subject, "".join(parts))
