"""Tests for issue hierarchy validation (epic -> story -> task/bug -> subtask)."""
from uuid import uuid4

import pytest
from ahura_core import crud, mutations, schemas
from ahura_core.hierarchy_validation import (
    HierarchyValidationError,
    is_valid_parent_type,
    resolve_hierarchy,
    resolve_hierarchy_for_update,
    validate_type_change,
)
from ahura_core.models import IssueType


class TestParentTypeMatrix:
    """Test the allowed parent types per child type."""

    def test_allowed_pairs(self):
        assert is_valid_parent_type(IssueType.TASK, IssueType.STORY)
        assert is_valid_parent_type(IssueType.BUG, IssueType.STORY)
        for parent in (IssueType.STORY, IssueType.TASK, IssueType.BUG):
            assert is_valid_parent_type(IssueType.SUBTASK, parent)

    def test_rejected_pairs(self):
        assert not is_valid_parent_type(IssueType.TASK, IssueType.EPIC)
        assert not is_valid_parent_type(IssueType.SUBTASK, IssueType.SUBTASK)
        assert not is_valid_parent_type(IssueType.STORY, IssueType.EPIC)
        for parent in IssueType:
            assert not is_valid_parent_type(IssueType.EPIC, parent)


class TestResolveHierarchy:
    """Test create-time hierarchy rules."""

    def test_epic_cannot_link(self, db, project, make_issue):
        story = make_issue("Story", IssueType.STORY)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.EPIC, parent_id=story.id)
        assert exc_info.value.message == "Epic cannot be linked to parent or epic"

    def test_epic_without_links_is_valid(self, db, project):
        assert resolve_hierarchy(db, project.id, IssueType.EPIC) == (None, None)

    def test_story_cannot_have_parent(self, db, project, make_issue):
        other = make_issue("Other story", IssueType.STORY)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.STORY, parent_id=other.id)
        assert exc_info.value.message == "Story cannot have a parent issue"

    def test_task_parent_must_be_story(self, db, project, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.TASK, parent_id=epic.id)
        assert exc_info.value.message == "Task/Bug parent must be a Story"

    def test_subtask_parent_types(self, db, project, make_issue):
        story = make_issue("Story", IssueType.STORY)
        bug = make_issue("Bug", IssueType.BUG, parent_id=story.id)
        assert resolve_hierarchy(db, project.id, IssueType.SUBTASK, parent_id=bug.id) == (bug.id, None)

        subtask = make_issue("Subtask", IssueType.SUBTASK, parent_id=bug.id)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.SUBTASK, parent_id=subtask.id)
        assert exc_info.value.message == "Subtask parent must be Story/Task/Bug"

    def test_subtask_requires_parent(self, db, project):
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.SUBTASK)
        assert exc_info.value.message == "Subtask must have a parent issue"

    def test_parent_from_other_project_is_rejected(self, db, owner, workspace, project, make_issue):
        other = mutations.create_project(
            db, owner, workspace.id, schemas.ProjectCreate(key="OTH", name="Other")
        )
        story = make_issue("Story", IssueType.STORY)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, other.id, IssueType.TASK, parent_id=story.id)
        assert exc_info.value.message == "Invalid parent issue for this project"

    def test_unknown_parent_is_rejected(self, db, project):
        with pytest.raises(HierarchyValidationError):
            resolve_hierarchy(db, project.id, IssueType.TASK, parent_id=uuid4())

    def test_epic_link_must_reference_epic(self, db, project, make_issue):
        story = make_issue("Story", IssueType.STORY)
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.TASK, epic_id=story.id)
        assert exc_info.value.message == "Epic link must reference an Epic issue"

    def test_epic_is_inherited_from_parent(self, db, project, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY, epic_id=epic.id)

        parent_id, epic_id = resolve_hierarchy(db, project.id, IssueType.TASK, parent_id=story.id)
        assert parent_id == story.id
        assert epic_id == epic.id

    def test_explicit_epic_wins_over_parent_epic(self, db, project, make_issue):
        epic_a = make_issue("Epic A", IssueType.EPIC)
        epic_b = make_issue("Epic B", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY, epic_id=epic_a.id)

        _, epic_id = resolve_hierarchy(
            db, project.id, IssueType.TASK, parent_id=story.id, epic_id=epic_b.id
        )
        assert epic_id == epic_b.id

    def test_self_links_are_rejected(self, db, project, make_issue):
        task = make_issue("Task")
        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.TASK, parent_id=task.id, issue_id=task.id)
        assert exc_info.value.message == "Issue cannot be its own parent"

        with pytest.raises(HierarchyValidationError) as exc_info:
            resolve_hierarchy(db, project.id, IssueType.TASK, epic_id=task.id, issue_id=task.id)
        assert exc_info.value.message == "Issue cannot be its own epic"


class TestTypeChanges:
    """Test validation of type changes against existing links."""

    def test_epic_with_linked_issues_cannot_change_type(self, db, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        make_issue("Story", IssueType.STORY, epic_id=epic.id)

        with pytest.raises(HierarchyValidationError) as exc_info:
            validate_type_change(db, epic, IssueType.STORY)
        assert exc_info.value.message == "Issue is linked as an epic by other issues"

    def test_children_must_stay_compatible(self, db, make_issue):
        story = make_issue("Story", IssueType.STORY)
        make_issue("Task", IssueType.TASK, parent_id=story.id)

        with pytest.raises(HierarchyValidationError) as exc_info:
            validate_type_change(db, story, IssueType.BUG)
        assert exc_info.value.message == "Issue has child issues incompatible with type bug"

    def test_same_type_is_a_noop(self, db, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        make_issue("Story", IssueType.STORY, epic_id=epic.id)
        validate_type_change(db, epic, IssueType.EPIC)  # Should not raise

    def test_update_merges_current_links(self, db, make_issue):
        story = make_issue("Story", IssueType.STORY)
        task = make_issue("Task", IssueType.TASK, parent_id=story.id)

        # Changing the type alone keeps the parent and still validates it
        assert resolve_hierarchy_for_update(db, task, {"type": IssueType.BUG}) == (story.id, None)

        with pytest.raises(HierarchyValidationError):
            resolve_hierarchy_for_update(db, task, {"type": IssueType.STORY})

    def test_turning_into_epic_drops_existing_links(self, db, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY, epic_id=epic.id)

        assert resolve_hierarchy_for_update(db, story, {"type": IssueType.EPIC}) == (None, None)

    def test_update_to_epic_clears_links_and_records_them(self, db, owner, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY, epic_id=epic.id)

        updated = mutations.update_issue(db, owner, story.id, schemas.IssueUpdate(type=IssueType.EPIC))

        assert updated.type == IssueType.EPIC
        assert updated.epic_id is None
        fields = {entry.field_name for entry in crud.get_issue_history(db, story.id)}
        assert {"type", "epic_id"} <= fields

    def test_turning_into_epic_rejects_supplied_links(self, db, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY)

        with pytest.raises(HierarchyValidationError):
            resolve_hierarchy_for_update(db, story, {"type": IssueType.EPIC, "epic_id": epic.id})

    def test_explicit_null_epic_is_not_reinherited(self, db, make_issue):
        epic = make_issue("Epic", IssueType.EPIC)
        story = make_issue("Story", IssueType.STORY, epic_id=epic.id)
        task = make_issue("Task", IssueType.TASK, parent_id=story.id)
        assert task.epic_id == epic.id

        assert resolve_hierarchy_for_update(db, task, {"epic_id": None}) == (story.id, None)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
