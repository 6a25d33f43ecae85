"""Tests for the audit log helpers."""

import csv
import io

from dispo.services.audit_service import (
    AUDIT_CSV_HEADERS,
    AuditLog,
    audit_csv,
    compute_changes,
    create_audit_entry,
    format_audit_for_csv,
    validate_audit_entry,
)


class TestComputeChanges:
    def test_changed_fields(self):
        before = {"id": 1, "name": "Früh", "start": "06:00", "updated_at": "a"}
        after = {"id": 1, "name": "Früh", "start": "07:00", "updated_at": "b", "end": "15:00"}
        assert compute_changes(before, after) == [
            {"field": "start", "before": "06:00", "after": "07:00"},
            {"field": "end", "before": None, "after": "15:00"},
        ]

    def test_nested_values_compare_structurally(self):
        assert compute_changes({"tags": {"a": 1, "b": 2}}, {"tags": {"b": 2, "a": 1}}) == []

    def test_missing_side(self):
        assert compute_changes(None, {"a": 1}) == []
        assert compute_changes({"a": 1}, None) == []


class TestCreateEntry:
    def test_entry_shape(self):
        entry = create_audit_entry("template_updated", "template", "t1", {"name": "A"}, {"name": "B"}, "typo")
        assert entry["action"] == "template_updated"
        assert entry["entity_type"] == "template"
        assert entry["entity_id"] == "t1"
        assert entry["before"] == '{"name": "A"}'
        assert entry["after"] == '{"name": "B"}'
        assert entry["reason"] == "typo"
        assert entry["changes"] == [{"field": "name", "before": "A", "after": "B"}]
        assert validate_audit_entry(entry) == {"is_valid": True, "errors": []}

    def test_creation_has_no_before(self):
        entry = create_audit_entry("assignment_created", "assignment", "s1", None, {"x": 1})
        assert entry["before"] is None
        assert entry["changes"] == []

    def test_ids_are_unique(self):
        ids = {create_audit_entry("a", "t", "1", None, None)["id"] for _ in range(50)}
        assert len(ids) == 50


class TestValidation:
    def test_required_fields(self):
        assert validate_audit_entry({}) == {
            "is_valid": False,
            "errors": ["action is required", "timestamp is required"],
        }


class TestCsv:
    def test_rows(self):
        entry = create_audit_entry("template_updated", "template", "t1", {"start": "06:00"}, {"start": "07:00"})
        entry.update(actor="chief@stadtwerke-augsburg.de", role="chief")
        row = format_audit_for_csv([entry])[0]
        assert row["changedFields"] == "start"
        assert row["changeDetails"] == "start: 06:00 → 07:00"
        assert row["actor"] == "chief@stadtwerke-augsburg.de"
        assert row["count"] == 1

    def test_defaults(self):
        row = format_audit_for_csv([{"action": "x", "timestamp": "t"}])[0]
        assert row["entityType"] == "unknown"
        assert row["actor"] == "unknown"
        assert row["reason"] == ""

    def test_csv_text(self):
        text = audit_csv([{"action": "x", "timestamp": "t"}])
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == AUDIT_CSV_HEADERS
        assert rows[1][1] == "x"


class TestAuditLog:
    def test_record_and_query(self):
        log = AuditLog()
        log.record("shift_created", "shift", "1", actor="a", role="chief", after={"id": 1})
        log.record("shift_updated", "shift", "1", actor="a", role="chief", before={"s": 1}, after={"s": 2})

        assert log.count() == 2
        newest = log.entries()
        assert [e["action"] for e in newest] == ["shift_updated", "shift_created"]
        assert log.entries(action="shift_created")[0]["role"] == "chief"
        assert log.entries(limit=1, offset=1)[0]["action"] == "shift_created"

    def test_count_by_action(self):
        log = AuditLog()
        log.record("shift_created", "shift", "1", actor="a", role="chief")
        log.record("shift_updated", "shift", "1", actor="a", role="chief")
        log.record("shift_updated", "shift", "1", actor="a", role="chief")

        assert log.count() == 3
        assert log.count(action="shift_updated") == 2
        assert log.count(action="missing") == 0
