"""Field-level audit trail for issues.

Updates are recorded as one history row per tracked field whose stringified
value changed. Creates, moves and attachments get a single descriptive row.
History rows are append-only.
"""
import enum
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("ahura-core.audit")

# Fields diffed on every issue update, in reporting order
TRACKED_FIELDS: tuple[str, ...] = (
    "title",
    "type",
    "status_id",
    "priority",
    "assignee_id",
    "sprint_id",
    "story_points",
    "parent_id",
    "epic_id",
)

ISSUE_CREATED_MESSAGE = "Issue created"


def stringify(value: Any) -> Optional[str]:
    """Null-safe string form of a tracked value (enums by value)."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return str(value.value)
    return str(value)


def snapshot(issue: models.Issue) -> dict[str, Optional[str]]:
    """Capture the stringified tracked fields of an issue."""
    return {field: stringify(getattr(issue, field)) for field in TRACKED_FIELDS}


def diff_snapshots(
    before: dict[str, Optional[str]],
    after: dict[str, Optional[str]],
) -> list[tuple[str, Optional[str], Optional[str]]]:
    """
    Compare two snapshots.

    Returns:
        (field_name, old_value, new_value) for each changed field
    """
    changes = []
    for field in TRACKED_FIELDS:
        if before.get(field) != after.get(field):
            changes.append((field, before.get(field), after.get(field)))
    return changes


def record_event(
    db: Session,
    issue_id: UUID,
    user_id: Optional[UUID],
    change_type: models.ChangeType,
    field_name: str,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
) -> models.IssueHistory:
    """
    Append a single history row. Does not commit.

    Args:
        db: Database session
        issue_id: Issue UUID
        user_id: Acting user
        change_type: Kind of change
        field_name: Field (or event name such as "create"/"move")
        old_value: Previous value
        new_value: New value

    Returns:
        The history row
    """
    entry = models.IssueHistory(
        issue_id=issue_id,
        user_id=user_id,
        change_type=change_type,
        field_name=field_name,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    return entry


def record_changes(
    db: Session,
    issue_id: UUID,
    user_id: Optional[UUID],
    before: dict[str, Optional[str]],
    after: dict[str, Optional[str]],
) -> list[models.IssueHistory]:
    """
    Append one history row per tracked field that changed. Does not commit.

    Returns:
        The history rows written (empty when nothing changed)
    """
    entries = [
        record_event(db, issue_id, user_id, models.ChangeType.UPDATED, field, old, new)
        for field, old, new in diff_snapshots(before, after)
    ]
    if entries:
        logger.debug(f"Recorded {len(entries)} field change(s) on issue {issue_id}")
    return entries


def record_created(db: Session, issue: models.Issue, user_id: Optional[UUID]) -> models.IssueHistory:
    return record_event(
        db, issue.id, user_id, models.ChangeType.CREATED, "create", new_value=ISSUE_CREATED_MESSAGE
    )


def record_moved(
    db: Session,
    issue: models.Issue,
    user_id: Optional[UUID],
    old_status_id: UUID,
    old_position: int,
) -> models.IssueHistory:
    """Append a move row in "status_id:position" form."""
    return record_event(
        db,
        issue.id,
        user_id,
        models.ChangeType.MOVED,
        "move",
        old_value=f"{old_status_id}:{old_position}",
        new_value=f"{issue.status_id}:{issue.position}",
    )


def record_attachment(
    db: Session,
    attachment: models.IssueAttachment,
    user_id: Optional[UUID],
) -> models.IssueHistory:
    return record_event(
        db,
        attachment.issue_id,
        user_id,
        models.ChangeType.ATTACHMENT_ADDED,
        "attachment",
        new_value=attachment.filename,
    )
