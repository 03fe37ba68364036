"""Tests for sprint lifecycle state machine validation."""
import pytest
from ahura_core.errors import InvariantViolationError
from ahura_core.models import SprintStatus
from ahura_core.sprint_state_machine import (
    SprintStateTransitionError,
    get_allowed_sprint_transitions,
    is_sprint_transition_valid,
    is_terminal_status,
    validate_sprint_transition,
)


class TestSprintTransitions:
    """Test sprint state machine transition validation."""

    def test_valid_forward_transitions(self):
        """Test that planning -> active -> completed is allowed."""
        # Planning → Active
        assert is_sprint_transition_valid(SprintStatus.PLANNING, SprintStatus.ACTIVE)
        validate_sprint_transition(SprintStatus.PLANNING, SprintStatus.ACTIVE)  # Should not raise

        # Active → Completed
        assert is_sprint_transition_valid(SprintStatus.ACTIVE, SprintStatus.COMPLETED)
        validate_sprint_transition(SprintStatus.ACTIVE, SprintStatus.COMPLETED)

    def test_skipping_active_is_blocked(self):
        """Test that planning -> completed is blocked."""
        assert not is_sprint_transition_valid(SprintStatus.PLANNING, SprintStatus.COMPLETED)

        with pytest.raises(SprintStateTransitionError) as exc_info:
            validate_sprint_transition(SprintStatus.PLANNING, SprintStatus.COMPLETED)

        error = exc_info.value
        assert error.current_status == SprintStatus.PLANNING
        assert error.requested_status == SprintStatus.COMPLETED
        assert error.allowed_transitions == [SprintStatus.ACTIVE]
        assert error.message == "Only active sprint can be completed"

    def test_restarting_active_sprint_is_blocked(self):
        """Test that starting an already active sprint is blocked."""
        with pytest.raises(SprintStateTransitionError) as exc_info:
            validate_sprint_transition(SprintStatus.ACTIVE, SprintStatus.ACTIVE)

        assert exc_info.value.message == "Only planning sprint can be started"

    def test_backward_transitions_are_blocked(self):
        """Test that no transition goes back to planning."""
        for current in (SprintStatus.ACTIVE, SprintStatus.COMPLETED):
            assert not is_sprint_transition_valid(current, SprintStatus.PLANNING)

            with pytest.raises(SprintStateTransitionError) as exc_info:
                validate_sprint_transition(current, SprintStatus.PLANNING)
            assert "Invalid sprint status transition" in exc_info.value.message

    def test_completed_is_terminal(self):
        """Test that nothing leaves the completed state."""
        for target in SprintStatus:
            assert not is_sprint_transition_valid(SprintStatus.COMPLETED, target)

        with pytest.raises(SprintStateTransitionError) as exc_info:
            validate_sprint_transition(SprintStatus.COMPLETED, SprintStatus.PLANNING)
        assert "terminal state" in exc_info.value.message

    def test_accepts_raw_string_values(self):
        """Test that enum values stored as strings validate the same way."""
        assert is_sprint_transition_valid("planning", "active")
        validate_sprint_transition("active", "completed")

    def test_transition_error_is_an_invariant_violation(self):
        """Test that the API maps transition errors to 400."""
        with pytest.raises(InvariantViolationError) as exc_info:
            validate_sprint_transition(SprintStatus.COMPLETED, SprintStatus.ACTIVE)
        assert exc_info.value.status_code == 400


class TestAllowedTransitions:
    """Test the helper queries on the transition matrix."""

    def test_allowed_transitions(self):
        assert get_allowed_sprint_transitions(SprintStatus.PLANNING) == [SprintStatus.ACTIVE]
        assert get_allowed_sprint_transitions(SprintStatus.ACTIVE) == [SprintStatus.COMPLETED]
        assert get_allowed_sprint_transitions(SprintStatus.COMPLETED) == []

    def test_allowed_transitions_returns_a_copy(self):
        """Test that callers cannot mutate the matrix through the result."""
        allowed = get_allowed_sprint_transitions(SprintStatus.PLANNING)
        allowed.append(SprintStatus.COMPLETED)
        assert get_allowed_sprint_transitions(SprintStatus.PLANNING) == [SprintStatus.ACTIVE]

    def test_transition_error_lists_allowed_transitions(self):
        for current in SprintStatus:
            with pytest.raises(SprintStateTransitionError) as exc_info:
                validate_sprint_transition(current, SprintStatus.PLANNING)
            assert exc_info.value.allowed_transitions == get_allowed_sprint_transitions(current)

    def test_terminal_status(self):
        assert is_terminal_status(SprintStatus.COMPLETED)
        assert not is_terminal_status(SprintStatus.PLANNING)
        assert not is_terminal_status(SprintStatus.ACTIVE)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
