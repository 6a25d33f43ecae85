"""
Audit Service — server-side audit entries for template and assignment changes.

Entries carry a JSON snapshot of the entity before and after the change plus
a field-level diff. Export rows match the CSV layout used by the admin UI.
"""

from __future__ import annotations

import csv
import io
import json
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Iterable

SKIPPED_FIELDS = frozenset({"id", "created_at", "updated_at"})

AUDIT_CSV_HEADERS = [
    "timestamp",
    "action",
    "entityType",
    "entityId",
    "actor",
    "role",
    "changedFields",
    "changeDetails",
    "reason",
    "count",
]


def _entry_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{int(time.time() * 1000)}_{suffix}"


def _json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def compute_changes(before: dict | None, after: dict | None) -> list[dict]:
    """Fields whose values differ between two entity states.

    Metadata fields are ignored; returns [] unless both states exist.
    """
    if not before or not after:
        return []

    changes = []
    keys = list(dict.fromkeys([*before.keys(), *after.keys()]))
    for key in keys:
        if key in SKIPPED_FIELDS:
            continue
        old, new = before.get(key), after.get(key)
        if _json(old) != _json(new):
            changes.append({"field": key, "before": old, "after": new})
    return changes


def create_audit_entry(
    action: str,
    entity_type: str,
    entity_id: str,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> dict:
    """
    Build a standardized audit entry.

    Args:
        action: e.g. "template_updated", "assignment_created"
        entity_type: "template", "assignment", "shift_instance"
        entity_id: ID of the modified entity
        before / after: entity state around the change (None if absent)
        reason: optional free-text justification
    """
    return {
        "id": _entry_id(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "before": json.dumps(before, default=str) if before else None,
        "after": json.dumps(after, default=str) if after else None,
        "reason": reason,
        "changes": compute_changes(before, after),
    }


def format_audit_for_csv(entries: Iterable[dict]) -> list[dict]:
    rows = []
    for entry in entries:
        changes = entry.get("changes") or []
        rows.append({
            "timestamp": entry.get("timestamp"),
            "action": entry.get("action"),
            "entityType": entry.get("entity_type") or "unknown",
            "entityId": entry.get("entity_id") or "unknown",
            "actor": entry.get("actor") or "unknown",
            "role": entry.get("role") or "unknown",
            "changedFields": ", ".join(c["field"] for c in changes),
            "changeDetails": "; ".join(
                f"{c['field']}: {c['before']} → {c['after']}" for c in changes
            ),
            "reason": entry.get("reason") or "",
            "count": entry.get("count") or 1,
        })
    return rows


def audit_csv(entries: Iterable[dict]) -> str:
    """Render entries as CSV text with AUDIT_CSV_HEADERS."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=AUDIT_CSV_HEADERS)
    writer.writeheader()
    writer.writerows(format_audit_for_csv(entries))
    return buf.getvalue()


def validate_audit_entry(entry: dict) -> dict:
    errors = []
    if not entry.get("action"):
        errors.append("action is required")
    if not entry.get("timestamp"):
        errors.append("timestamp is required")
    return {"is_valid": not errors, "errors": errors}


class AuditLog:
    """In-process audit trail used by the API."""

    def __init__(self):
        self._entries: list[dict] = []

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        *,
        actor: str,
        role: str,
        before: dict | None = None,
        after: dict | None = None,
        reason: str | None = None,
    ) -> dict:
        entry = create_audit_entry(action, entity_type, entity_id, before, after, reason)
        entry["actor"] = actor
        entry["role"] = role
        self._entries.append(entry)
        return entry

    def _select(self, action: str | None) -> list[dict]:
        return [e for e in reversed(self._entries) if action is None or e["action"] == action]

    def entries(self, action: str | None = None, limit: int = 50, offset: int = 0) -> list[dict]:
        """Newest first, optionally filtered by action."""
        return self._select(action)[offset:offset + limit]

    def count(self, action: str | None = None) -> int:
        if action is None:
            return len(self._entries)
        return len(self._select(action))
