"""Tests for dense position bookkeeping of board buckets and columns."""
from uuid import uuid4

import pytest
from ahura_core import crud, positions
from ahura_core.errors import InvariantViolationError


def bucket_keys(db, project, column):
    return [issue.key for issue in crud.get_bucket_issues(db, project.id, column.id)]


def bucket_positions(db, project, column):
    return [issue.position for issue in crud.get_bucket_issues(db, project.id, column.id)]


class TestBucketHelpers:
    """Test the low-level bucket helpers."""

    def test_next_position_of_empty_bucket(self, db, project, columns):
        assert positions.next_position(db, project.id, columns[0].id) == 0

    def test_next_position_appends(self, db, project, columns, make_issue):
        make_issue("One")
        make_issue("Two")
        assert positions.next_position(db, project.id, columns[0].id) == 2
        assert positions.bucket_size(db, project.id, columns[0].id) == 2

    def test_clamp_index(self):
        assert positions.clamp_index(-3, 4) == 0
        assert positions.clamp_index(2, 4) == 2
        assert positions.clamp_index(99, 4) == 4


class TestMoveWithinBucket:
    """Test reordering inside one column."""

    def test_move_up_shifts_range_down(self, db, project, columns, make_issue):
        issues = [make_issue(f"Issue {n}") for n in range(4)]  # AHU-1..AHU-4

        positions.move_within_bucket(db, issues[3], 1)
        db.commit()

        assert bucket_keys(db, project, columns[0]) == ["AHU-1", "AHU-4", "AHU-2", "AHU-3"]
        assert bucket_positions(db, project, columns[0]) == [0, 1, 2, 3]

    def test_move_down_shifts_range_up(self, db, project, columns, make_issue):
        issues = [make_issue(f"Issue {n}") for n in range(4)]

        positions.move_within_bucket(db, issues[0], 2)
        db.commit()

        assert bucket_keys(db, project, columns[0]) == ["AHU-2", "AHU-3", "AHU-1", "AHU-4"]
        assert bucket_positions(db, project, columns[0]) == [0, 1, 2, 3]

    def test_index_past_end_is_clamped(self, db, project, columns, make_issue):
        issues = [make_issue(f"Issue {n}") for n in range(3)]

        assert positions.move_within_bucket(db, issues[0], 50) == 2
        db.commit()

        assert bucket_keys(db, project, columns[0]) == ["AHU-2", "AHU-3", "AHU-1"]

    def test_same_index_is_a_noop(self, db, project, columns, make_issue):
        issues = [make_issue(f"Issue {n}") for n in range(3)]
        assert positions.move_within_bucket(db, issues[1], 1) == 1
        db.commit()
        assert bucket_positions(db, project, columns[0]) == [0, 1, 2]


class TestMoveToBucket:
    """Test moving across columns."""

    def test_closes_source_gap_and_opens_target_slot(self, db, project, columns, make_issue):
        a, b, c = (make_issue(f"Source {n}") for n in range(3))  # AHU-1..3 in column 0
        make_issue("Target 0", status=columns[1])  # AHU-4
        make_issue("Target 1", status=columns[1])  # AHU-5

        positions.move_to_bucket(db, b, columns[1].id, 1)
        db.commit()

        assert bucket_keys(db, project, columns[0]) == ["AHU-1", "AHU-3"]
        assert bucket_positions(db, project, columns[0]) == [0, 1]
        assert bucket_keys(db, project, columns[1]) == ["AHU-4", "AHU-2", "AHU-5"]
        assert bucket_positions(db, project, columns[1]) == [0, 1, 2]

    def test_missing_index_appends(self, db, project, columns, make_issue):
        issue = make_issue("Mover")
        make_issue("Existing", status=columns[2])

        assert positions.move_to_bucket(db, issue, columns[2].id) == 1
        db.commit()
        assert bucket_keys(db, project, columns[2]) == ["AHU-2", "AHU-1"]

    def test_index_is_clamped_to_target_size(self, db, project, columns, make_issue):
        issue = make_issue("Mover")
        assert positions.move_to_bucket(db, issue, columns[3].id, 10) == 0

    def test_place_issue_dispatches(self, db, project, columns, make_issue):
        first = make_issue("First")
        second = make_issue("Second")

        # Same column without index keeps the position
        assert positions.place_issue(db, second, columns[0].id) == 1
        assert positions.place_issue(db, second, columns[0].id, 0) == 0
        assert positions.place_issue(db, first, columns[1].id, 0) == 0
        db.commit()

        assert bucket_keys(db, project, columns[0]) == ["AHU-2"]
        assert bucket_keys(db, project, columns[1]) == ["AHU-1"]


class TestColumnPositions:
    """Test board column ordering."""

    def test_next_status_position(self, db, project, columns):
        assert positions.next_status_position(db, project.id) == len(columns)

    def test_reorder_reverses_board(self, db, project, columns):
        last = len(columns) - 1
        ordered = positions.reorder_statuses(
            db, project.id, [(column.id, last - index) for index, column in enumerate(columns)]
        )
        db.commit()

        assert [c.id for c in ordered] == [c.id for c in reversed(columns)]
        assert [c.id for c in crud.get_project_statuses(db, project.id)] == [c.id for c in reversed(columns)]

    def test_reorder_normalises_to_dense_sequence(self, db, project, columns):
        positions.reorder_statuses(
            db, project.id, [(column.id, index * 10) for index, column in enumerate(columns)]
        )
        db.commit()

        assert [c.position for c in crud.get_project_statuses(db, project.id)] == list(range(len(columns)))

    def test_ties_keep_previous_order(self, db, project, columns):
        # Both ask for slot 1; the one previously further left stays first
        ordered = positions.reorder_statuses(
            db, project.id, [(columns[4].id, 1), (columns[2].id, 1)]
        )
        assert [c.id for c in ordered[:4]] == [columns[0].id, columns[1].id, columns[2].id, columns[4].id]

    def test_foreign_status_is_rejected(self, db, project, columns):
        with pytest.raises(InvariantViolationError) as exc_info:
            positions.reorder_statuses(db, project.id, [(uuid4(), 0)])
        assert exc_info.value.message == "One or more statuses do not belong to this project"

    def test_column_with_issues_cannot_be_deleted(self, db, columns, make_issue):
        make_issue("Blocker")
        with pytest.raises(InvariantViolationError) as exc_info:
            positions.ensure_column_deletable(db, columns[0])
        assert exc_info.value.message == "Move issues out of this column before deleting it"

    def test_empty_column_can_be_deleted(self, db, columns):
        positions.ensure_column_deletable(db, columns[1])  # Should not raise


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
