"""State machine validation for sprint lifecycle transitions.

Sprints move strictly forward: planning -> active -> completed.
No reverse transitions and no skipping. Completed is terminal.

Completing a sprint carries every unfinished issue (status category other
than done) over to the next sprint, or to the backlog when there is none.
Finished issues stay attached to the completed sprint as a historical record.
"""
import logging

from .errors import InvariantViolationError
from .models import SprintStatus

logger = logging.getLogger("ahura-core.sprint_state_machine")


class SprintStateTransitionError(InvariantViolationError):
    """Raised when an invalid sprint state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: SprintStatus,
        requested_status: SprintStatus,
        allowed_transitions: list[SprintStatus]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Sprint state machine transition matrix
# Maps current status → list of allowed next statuses
SPRINT_TRANSITION_MATRIX: dict[SprintStatus, list[SprintStatus]] = {
    SprintStatus.PLANNING: [
        SprintStatus.ACTIVE,        # Forward: sprint started
    ],
    SprintStatus.ACTIVE: [
        SprintStatus.COMPLETED,     # Forward: sprint closed, unfinished work carried over
    ],
    SprintStatus.COMPLETED: [
        # Terminal state - no transitions out
        # Completed sprints are historical records
    ],
}


def is_sprint_transition_valid(current_status: SprintStatus, new_status: SprintStatus) -> bool:
    """
    Check if a sprint status transition is valid.

    Args:
        current_status: Current sprint status
        new_status: Requested sprint status

    Returns:
        True if transition is allowed, False otherwise
    """
    return SprintStatus(new_status) in SPRINT_TRANSITION_MATRIX.get(SprintStatus(current_status), [])


def validate_sprint_transition(current_status: SprintStatus, new_status: SprintStatus) -> None:
    """
    Validate a sprint status transition and raise exception if invalid.

    Args:
        current_status: Current sprint status
        new_status: Requested sprint status

    Raises:
        SprintStateTransitionError: If the transition is not allowed
    """
    current_status = SprintStatus(current_status)
    new_status = SprintStatus(new_status)

    if is_sprint_transition_valid(current_status, new_status):
        logger.debug(f"Valid sprint transition: {current_status.value} → {new_status.value}")
        return

    allowed_transitions = get_allowed_sprint_transitions(current_status)
    if new_status == SprintStatus.ACTIVE:
        error_msg = "Only planning sprint can be started"
    elif new_status == SprintStatus.COMPLETED:
        error_msg = "Only active sprint can be completed"
    else:
        allowed_names = [s.value for s in allowed_transitions]
        error_msg = (
            f"Invalid sprint status transition: {current_status.value} → {new_status.value}. "
            f"Allowed: {', '.join(allowed_names) or 'none (terminal state)'}."
        )

    logger.warning(f"Blocked sprint transition: {error_msg}")
    raise SprintStateTransitionError(
        message=error_msg,
        current_status=current_status,
        requested_status=new_status,
        allowed_transitions=allowed_transitions
    )


def get_allowed_sprint_transitions(current_status: SprintStatus) -> list[SprintStatus]:
    """Get list of allowed transitions from the current sprint status."""
    return list(SPRINT_TRANSITION_MATRIX.get(SprintStatus(current_status), []))


def is_terminal_status(status: SprintStatus) -> bool:
    """Check if a sprint status is terminal (no further transitions)."""
    return not SPRINT_TRANSITION_MATRIX.get(SprintStatus(status))
