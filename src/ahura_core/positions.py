"""Dense position bookkeeping for board buckets and columns.

Issue positions are dense [0..N-1] within each (project_id, status_id)
bucket. Column positions are dense [0..N-1] within each project. Every
function here only issues statements on the caller's session; the caller's
transaction decides whether the whole reindex lands or rolls back.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models
from .errors import InvariantViolationError

logger = logging.getLogger("ahura-core.positions")

Issue = models.Issue


def _bucket(db: Session, project_id: UUID, status_id: UUID):
    return db.query(Issue).filter(Issue.project_id == project_id, Issue.status_id == status_id)


def lock_bucket(db: Session, project_id: UUID, status_id: UUID) -> list[UUID]:
    """
    Lock every issue row in a bucket for the rest of the transaction.

    Uses SELECT ... FOR UPDATE where the backend supports it so concurrent
    reindexes of the same bucket serialize.

    Returns:
        Issue ids in display order
    """
    rows = (
        db.query(Issue.id)
        .filter(Issue.project_id == project_id, Issue.status_id == status_id)
        .order_by(Issue.position)
        .with_for_update()
        .all()
    )
    return [row.id for row in rows]


def bucket_size(db: Session, project_id: UUID, status_id: UUID) -> int:
    """Count the issues in a bucket."""
    return _bucket(db, project_id, status_id).count()


def next_position(db: Session, project_id: UUID, status_id: UUID) -> int:
    """
    Position for an issue appended to the end of a bucket.

    Returns:
        max(position) + 1, or 0 for an empty bucket
    """
    current_max = (
        db.query(func.max(Issue.position))
        .filter(Issue.project_id == project_id, Issue.status_id == status_id)
        .scalar()
    )
    return 0 if current_max is None else current_max + 1


def open_slot(db: Session, project_id: UUID, status_id: UUID, index: int) -> int:
    """
    Shift positions >= index up by one to make room for an insert.

    Returns:
        Number of rows shifted
    """
    shifted = (
        _bucket(db, project_id, status_id)
        .filter(Issue.position >= index)
        .update({Issue.position: Issue.position + 1}, synchronize_session="fetch")
    )
    logger.debug(f"Opened slot {index} in bucket {project_id}/{status_id} ({shifted} shifted)")
    return shifted


def close_gap(db: Session, project_id: UUID, status_id: UUID, position: int) -> int:
    """
    Shift positions > position down by one after an issue leaves the bucket.

    Returns:
        Number of rows shifted
    """
    shifted = (
        _bucket(db, project_id, status_id)
        .filter(Issue.position > position)
        .update({Issue.position: Issue.position - 1}, synchronize_session="fetch")
    )
    logger.debug(f"Closed gap at {position} in bucket {project_id}/{status_id} ({shifted} shifted)")
    return shifted


def clamp_index(index: int, upper: int) -> int:
    """Clamp a requested index into [0, upper]."""
    return max(0, min(index, upper))


def move_within_bucket(db: Session, issue: Issue, index: int) -> int:
    """
    Reorder an issue inside its current bucket.

    Only the rows between the old and new index move, by one step towards
    the vacated slot.

    Returns:
        The issue's new position
    """
    lock_bucket(db, issue.project_id, issue.status_id)
    size = bucket_size(db, issue.project_id, issue.status_id)
    old = issue.position
    new = clamp_index(index, size - 1)
    if new == old:
        return old

    bucket = _bucket(db, issue.project_id, issue.status_id).filter(Issue.id != issue.id)
    if new < old:
        bucket.filter(Issue.position >= new, Issue.position < old).update(
            {Issue.position: Issue.position + 1}, synchronize_session="fetch"
        )
    else:
        bucket.filter(Issue.position > old, Issue.position <= new).update(
            {Issue.position: Issue.position - 1}, synchronize_session="fetch"
        )

    issue.position = new
    logger.debug(f"Reordered {issue.key} within bucket: {old} -> {new}")
    return new


def move_to_bucket(db: Session, issue: Issue, status_id: UUID, index: Optional[int] = None) -> int:
    """
    Move an issue into another status bucket of the same project.

    Closes the gap in the source bucket, opens a slot in the target bucket and
    writes the issue at the target index. A missing index appends to the end.

    Returns:
        The issue's new position
    """
    source_status_id = issue.status_id
    old = issue.position

    lock_bucket(db, issue.project_id, source_status_id)
    lock_bucket(db, issue.project_id, status_id)

    close_gap(db, issue.project_id, source_status_id, old)

    size = bucket_size(db, issue.project_id, status_id)
    new = size if index is None else clamp_index(index, size)
    open_slot(db, issue.project_id, status_id, new)

    issue.status_id = status_id
    issue.position = new
    logger.debug(f"Moved {issue.key} from {source_status_id}:{old} to {status_id}:{new}")
    return new


def place_issue(db: Session, issue: Issue, status_id: UUID, index: Optional[int] = None) -> int:
    """
    Put an issue at an index of a bucket, whichever bucket it is in now.

    Args:
        db: Database session
        issue: Issue already persisted in some bucket
        status_id: Target status column
        index: Target index (None appends; out-of-range values are clamped)

    Returns:
        The issue's new position
    """
    if status_id == issue.status_id:
        if index is None:
            return issue.position
        return move_within_bucket(db, issue, index)
    return move_to_bucket(db, issue, status_id, index)


# ============================================================================
# Column positions
# ============================================================================


def _columns(db: Session, project_id: UUID):
    return db.query(models.IssueStatus).filter(models.IssueStatus.project_id == project_id)


def next_status_position(db: Session, project_id: UUID) -> int:
    """Position for a column appended to the right of the board."""
    current_max = (
        db.query(func.max(models.IssueStatus.position))
        .filter(models.IssueStatus.project_id == project_id)
        .scalar()
    )
    return 0 if current_max is None else current_max + 1


def renumber_statuses(db: Session, project_id: UUID) -> list[models.IssueStatus]:
    """
    Renumber a project's columns to dense [0..N-1], keeping their order.

    Returns:
        Columns in board order
    """
    columns = (
        _columns(db, project_id)
        .order_by(models.IssueStatus.position, models.IssueStatus.created_at)
        .with_for_update()
        .all()
    )
    for index, column in enumerate(columns):
        if column.position != index:
            column.position = index
    db.flush()
    return columns


def reorder_statuses(
    db: Session,
    project_id: UUID,
    requested: Iterable[tuple[UUID, int]],
) -> list[models.IssueStatus]:
    """
    Apply requested column positions, then normalise to a dense sequence.

    Columns not mentioned keep their relative place; ties are broken by the
    previous position.

    Args:
        db: Database session
        project_id: Project UUID
        requested: (status_id, position) pairs

    Returns:
        Columns in their new board order

    Raises:
        InvariantViolationError: If a status id does not belong to the project
    """
    columns = _columns(db, project_id).with_for_update().all()
    by_id = {column.id: column for column in columns}
    wanted = dict(requested)

    unknown = [status_id for status_id in wanted if status_id not in by_id]
    if unknown:
        raise InvariantViolationError("One or more statuses do not belong to this project")

    ordered = sorted(
        columns,
        key=lambda column: (wanted.get(column.id, column.position), column.position),
    )
    for index, column in enumerate(ordered):
        column.position = index
    db.flush()
    return ordered


def ensure_column_deletable(db: Session, status: models.IssueStatus) -> None:
    """
    Check that a column may be removed from its board.

    Raises:
        InvariantViolationError: If it is the last column or still holds issues
    """
    remaining = _columns(db, status.project_id).count()
    if remaining <= 1:
        raise InvariantViolationError("Project must have at least one status column")

    holding = db.query(Issue.id).filter(Issue.status_id == status.id).first()
    if holding:
        raise InvariantViolationError("Move issues out of this column before deleting it")
