"""Issue hierarchy validation.

Hierarchy: epic -> story -> task/bug -> subtask

Rules, evaluated in order (first failure wins):
1. Epics never link to a parent or an epic.
2. An issue cannot be its own parent or its own epic.
3. A parent must live in the same project and have a compatible type:
   task/bug -> story, subtask -> story/task/bug, story -> no parent at all.
4. Subtasks always need a parent.
5. An epic link not explicitly supplied is inherited from the parent.
6. An epic link must reference an epic in the same project.

parent_id/epic_id are plain foreign keys, so every referenced row is queried
fresh inside the caller's transaction.
"""
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .errors import InvariantViolationError

logger = logging.getLogger("ahura-core.hierarchy_validation")

IssueType = models.IssueType


class HierarchyValidationError(InvariantViolationError):
    """Raised when an issue's parent/epic links break the hierarchy rules."""


# Allowed parent types for each child type. Missing key = no parent allowed.
ALLOWED_PARENT_TYPES: dict[IssueType, set[IssueType]] = {
    IssueType.TASK: {IssueType.STORY},
    IssueType.BUG: {IssueType.STORY},
    IssueType.SUBTASK: {IssueType.STORY, IssueType.TASK, IssueType.BUG},
}

PARENT_TYPE_ERRORS: dict[IssueType, str] = {
    IssueType.TASK: "Task/Bug parent must be a Story",
    IssueType.BUG: "Task/Bug parent must be a Story",
    IssueType.SUBTASK: "Subtask parent must be Story/Task/Bug",
    IssueType.STORY: "Story cannot have a parent issue",
}


def _fail(message: str) -> None:
    logger.warning(f"Hierarchy rejected: {message}")
    raise HierarchyValidationError(message)


def _load_issue(db: Session, project_id: UUID, issue_id: UUID) -> Optional[models.Issue]:
    return (
        db.query(models.Issue)
        .filter(models.Issue.id == issue_id, models.Issue.project_id == project_id)
        .first()
    )


def is_valid_parent_type(child_type: IssueType, parent_type: IssueType) -> bool:
    """Check if an issue of child_type may have a parent of parent_type."""
    return parent_type in ALLOWED_PARENT_TYPES.get(child_type, set())


def resolve_hierarchy(
    db: Session,
    project_id: UUID,
    issue_type: IssueType,
    parent_id: Optional[UUID] = None,
    epic_id: Optional[UUID] = None,
    issue_id: Optional[UUID] = None,
    inherit_epic: bool = True,
) -> tuple[Optional[UUID], Optional[UUID]]:
    """
    Validate proposed parent/epic links and resolve the pair to persist.

    Args:
        db: Database session
        project_id: Project scope of the issue
        issue_type: Type of the issue being created or updated
        parent_id: Proposed parent issue
        epic_id: Proposed epic issue
        issue_id: The issue's own id on update (None on create)
        inherit_epic: Inherit the parent's epic when epic_id is empty

    Returns:
        Tuple of (parent_id, epic_id)

    Raises:
        HierarchyValidationError: If any rule fails
    """
    issue_type = IssueType(issue_type)

    if issue_type == IssueType.EPIC:
        if parent_id or epic_id:
            _fail("Epic cannot be linked to parent or epic")
        return None, None

    if issue_id is not None:
        if parent_id == issue_id:
            _fail("Issue cannot be its own parent")
        if epic_id == issue_id:
            _fail("Issue cannot be its own epic")

    if parent_id:
        parent = _load_issue(db, project_id, parent_id)
        if not parent:
            _fail("Invalid parent issue for this project")

        if not is_valid_parent_type(issue_type, parent.type):
            _fail(PARENT_TYPE_ERRORS[issue_type])

        if inherit_epic and not epic_id and parent.epic_id:
            epic_id = parent.epic_id
    elif issue_type == IssueType.SUBTASK:
        _fail("Subtask must have a parent issue")

    if epic_id:
        epic = _load_issue(db, project_id, epic_id)
        if not epic or epic.type != IssueType.EPIC:
            _fail("Epic link must reference an Epic issue")

    return parent_id, epic_id


def validate_type_change(db: Session, issue: models.Issue, new_type: IssueType) -> None:
    """
    Make sure issues already linked to this one stay valid after a type change.

    Args:
        db: Database session
        issue: Issue whose type is changing
        new_type: Requested type

    Raises:
        HierarchyValidationError: If a child or epic link would break
    """
    new_type = IssueType(new_type)
    if new_type == issue.type:
        return

    if issue.type == IssueType.EPIC:
        linked = (
            db.query(models.Issue.id)
            .filter(models.Issue.epic_id == issue.id)
            .first()
        )
        if linked:
            _fail("Issue is linked as an epic by other issues")

    children = (
        db.query(models.Issue.type)
        .filter(models.Issue.parent_id == issue.id)
        .distinct()
        .all()
    )
    for (child_type,) in children:
        if not is_valid_parent_type(child_type, new_type):
            _fail(f"Issue has child issues incompatible with type {new_type.value}")


def resolve_hierarchy_for_update(
    db: Session,
    issue: models.Issue,
    changes: dict[str, Any],
) -> tuple[Optional[UUID], Optional[UUID]]:
    """
    Merge a partial update with the current row and validate the result.

    Fields missing from ``changes`` keep their current value, so a type change
    alone is checked against the issue's existing links. Turning an issue into
    an epic drops links it already had; links supplied in the same request are
    rejected.

    Args:
        db: Database session
        issue: Current issue row
        changes: Fields explicitly set by the caller

    Returns:
        Tuple of (parent_id, epic_id)

    Raises:
        HierarchyValidationError: If any rule fails
    """
    issue_type = IssueType(changes.get("type") or issue.type)
    validate_type_change(db, issue, issue_type)

    # Existing links are cleared, not rejected, when an issue becomes an epic
    if issue_type == IssueType.EPIC:
        if changes.get("parent_id") or changes.get("epic_id"):
            _fail("Epic cannot be linked to parent or epic")
        return None, None

    parent_id = changes["parent_id"] if "parent_id" in changes else issue.parent_id
    epic_id = changes["epic_id"] if "epic_id" in changes else issue.epic_id

    return resolve_hierarchy(
        db,
        issue.project_id,
        issue_type,
        parent_id=parent_id,
        epic_id=epic_id,
        issue_id=issue.id,
        inherit_epic="epic_id" not in changes,
    )
