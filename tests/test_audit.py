"""Tests for the issue audit trail."""
from uuid import uuid4

import pytest
from ahura_core import audit, crud, mutations, schemas
from ahura_core.models import ChangeType, IssuePriority, IssueType


def history_by_field(db, issue):
    return {entry.field_name: entry for entry in crud.get_issue_history(db, issue.id)}


class TestSnapshots:
    """Test stringified snapshots and diffs."""

    def test_stringify(self):
        assert audit.stringify(None) is None
        assert audit.stringify(IssuePriority.HIGH) == "high"
        assert audit.stringify(5) == "5"
        value = uuid4()
        assert audit.stringify(value) == str(value)

    def test_diff_reports_only_changed_fields(self):
        before = {"title": "Old", "priority": "medium", "story_points": None}
        after = {"title": "New", "priority": "medium", "story_points": "3"}

        assert audit.diff_snapshots(before, after) == [
            ("title", "Old", "New"),
            ("story_points", None, "3"),
        ]

    def test_untracked_fields_are_ignored(self):
        assert audit.diff_snapshots({"description": "a"}, {"description": "b"}) == []


class TestHistoryRows:
    """Test history rows written by mutations."""

    def test_create_writes_single_row(self, db, make_issue):
        issue = make_issue("Audited")

        entries = crud.get_issue_history(db, issue.id)
        assert len(entries) == 1
        assert entries[0].change_type == ChangeType.CREATED
        assert entries[0].field_name == "create"
        assert entries[0].new_value == audit.ISSUE_CREATED_MESSAGE

    def test_update_writes_one_row_per_changed_field(self, db, owner, make_issue):
        issue = make_issue("Audited")

        mutations.update_issue(
            db, owner, issue.id,
            schemas.IssueUpdate(title="Audited again", priority=IssuePriority.HIGH, story_points=5),
        )

        rows = history_by_field(db, issue)
        assert set(rows) == {"create", "title", "priority", "story_points"}
        assert rows["title"].old_value == "Audited"
        assert rows["title"].new_value == "Audited again"
        assert rows["priority"].old_value == "medium"
        assert rows["priority"].new_value == "high"
        assert rows["story_points"].old_value is None
        assert rows["story_points"].new_value == "5"
        assert rows["title"].user_id == owner.id

    def test_update_with_same_values_writes_nothing(self, db, owner, make_issue):
        issue = make_issue("Unchanged")

        mutations.update_issue(db, owner, issue.id, schemas.IssueUpdate(title="Unchanged"))

        assert len(crud.get_issue_history(db, issue.id)) == 1

    def test_description_changes_are_not_tracked(self, db, owner, make_issue):
        issue = make_issue("Described")

        mutations.update_issue(db, owner, issue.id, schemas.IssueUpdate(description="Longer text"))

        assert set(history_by_field(db, issue)) == {"create"}

    def test_hierarchy_changes_are_tracked(self, db, owner, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY)

        mutations.update_issue(db, owner, story.id, schemas.IssueUpdate(epic_id=epic.id))

        rows = history_by_field(db, story)
        assert rows["epic_id"].old_value is None
        assert rows["epic_id"].new_value == str(epic.id)

    def test_move_writes_status_and_position(self, db, owner, columns, make_issue):
        issue = make_issue("Mover")

        mutations.move_issue(
            db, owner, issue.id, schemas.IssueMove(status_id=columns[2].id, position=0)
        )

        rows = history_by_field(db, issue)
        assert rows["move"].change_type == ChangeType.MOVED
        assert rows["move"].old_value == f"{columns[0].id}:0"
        assert rows["move"].new_value == f"{columns[2].id}:0"

    def test_attachment_writes_row(self, db, owner, make_issue):
        issue = make_issue("With file")

        mutations.record_attachment(
            db, owner, issue.id,
            schemas.AttachmentCreate(
                key="issues/plan.pdf", file_name="plan.pdf", file_size=1024, mime_type="application/pdf"
            ),
        )

        rows = history_by_field(db, issue)
        assert rows["attachment"].change_type == ChangeType.ATTACHMENT_ADDED
        assert rows["attachment"].new_value == "plan.pdf"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
