"""Lookups and simple reads for workspaces, projects, boards and issues.

Everything that writes goes through mutations.py so it runs inside one
transaction with permission checks and history.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("ahura-core.crud")


# ============================================================================
# Users
# ============================================================================


def get_user(db: Session, user_id: UUID) -> Optional[models.User]:
    """Get a user by ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


# ============================================================================
# Workspaces
# ============================================================================


def get_workspace(db: Session, workspace_id: UUID) -> Optional[models.Workspace]:
    """Get a workspace by ID."""
    return db.query(models.Workspace).filter(models.Workspace.id == workspace_id).first()


def get_workspace_by_slug(db: Session, slug: str) -> Optional[models.Workspace]:
    """Get a workspace by its slug."""
    return db.query(models.Workspace).filter(models.Workspace.slug == slug).first()


def get_workspace_member(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
) -> Optional[models.WorkspaceMember]:
    """Get one user's membership in a workspace."""
    return (
        db.query(models.WorkspaceMember)
        .filter(
            models.WorkspaceMember.workspace_id == workspace_id,
            models.WorkspaceMember.user_id == user_id,
        )
        .first()
    )


def get_workspace_members(db: Session, workspace_id: UUID) -> list[models.WorkspaceMember]:
    """
    Get all members of a workspace.

    Args:
        db: Database session
        workspace_id: Workspace UUID

    Returns:
        List of workspace members, oldest first
    """
    return (
        db.query(models.WorkspaceMember)
        .filter(models.WorkspaceMember.workspace_id == workspace_id)
        .order_by(models.WorkspaceMember.joined_at)
        .all()
    )


def get_workspace_projects(db: Session, workspace_id: UUID) -> list[models.Project]:
    """Get all projects of a workspace ordered by key."""
    return (
        db.query(models.Project)
        .filter(models.Project.workspace_id == workspace_id)
        .order_by(models.Project.key)
        .all()
    )


# ============================================================================
# Projects
# ============================================================================


def get_project(db: Session, project_id: UUID) -> Optional[models.Project]:
    """Get a project by ID."""
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def get_project_by_key(db: Session, key: str) -> Optional[models.Project]:
    """Get a project by its globally unique key."""
    return db.query(models.Project).filter(models.Project.key == key).first()


def get_project_member(
    db: Session,
    project_id: UUID,
    user_id: UUID,
) -> Optional[models.ProjectMember]:
    """Get one user's membership in a project."""
    return (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project_id,
            models.ProjectMember.user_id == user_id,
        )
        .first()
    )


def get_project_members(db: Session, project_id: UUID) -> list[models.ProjectMember]:
    """Get all members of a project, oldest first."""
    return (
        db.query(models.ProjectMember)
        .filter(models.ProjectMember.project_id == project_id)
        .order_by(models.ProjectMember.joined_at)
        .all()
    )


# ============================================================================
# Board
# ============================================================================


def get_status(db: Session, status_id: UUID) -> Optional[models.IssueStatus]:
    """Get a board column by ID."""
    return db.query(models.IssueStatus).filter(models.IssueStatus.id == status_id).first()


def get_project_status(
    db: Session,
    project_id: UUID,
    status_id: UUID,
) -> Optional[models.IssueStatus]:
    """Get a board column only if it belongs to the given project."""
    return (
        db.query(models.IssueStatus)
        .filter(
            models.IssueStatus.id == status_id,
            models.IssueStatus.project_id == project_id,
        )
        .first()
    )


def get_project_statuses(db: Session, project_id: UUID) -> list[models.IssueStatus]:
    """Get a project's board columns, left to right."""
    return (
        db.query(models.IssueStatus)
        .filter(models.IssueStatus.project_id == project_id)
        .order_by(models.IssueStatus.position)
        .all()
    )


def get_bucket_issues(db: Session, project_id: UUID, status_id: UUID) -> list[models.Issue]:
    """Get the issues of one (project, status) bucket in position order."""
    return (
        db.query(models.Issue)
        .filter(
            models.Issue.project_id == project_id,
            models.Issue.status_id == status_id,
        )
        .order_by(models.Issue.position)
        .all()
    )


def get_board(
    db: Session,
    project_id: UUID,
    sprint_id: Optional[UUID] = None,
) -> list[tuple[models.IssueStatus, list[models.Issue]]]:
    """
    Get a project's board: each column with its issues in position order.

    Args:
        db: Database session
        project_id: Project UUID
        sprint_id: Only show issues of this sprint

    Returns:
        List of (column, issues) pairs, left to right
    """
    statuses = get_project_statuses(db, project_id)

    query = db.query(models.Issue).filter(models.Issue.project_id == project_id)
    if sprint_id:
        query = query.filter(models.Issue.sprint_id == sprint_id)

    by_status: dict[UUID, list[models.Issue]] = {status.id: [] for status in statuses}
    for issue in query.order_by(models.Issue.position).all():
        by_status.setdefault(issue.status_id, []).append(issue)

    return [(status, by_status[status.id]) for status in statuses]


# ============================================================================
# Issues
# ============================================================================


def get_issue(db: Session, issue_id: UUID) -> Optional[models.Issue]:
    """Get an issue by ID."""
    return db.query(models.Issue).filter(models.Issue.id == issue_id).first()


def get_issue_by_key(db: Session, key: str) -> Optional[models.Issue]:
    """Get an issue by its key, e.g. "AHU-42"."""
    return db.query(models.Issue).filter(models.Issue.key == key).first()


def get_project_issue(db: Session, project_id: UUID, issue_id: UUID) -> Optional[models.Issue]:
    """Get an issue only if it belongs to the given project."""
    return (
        db.query(models.Issue)
        .filter(models.Issue.id == issue_id, models.Issue.project_id == project_id)
        .first()
    )


def get_issue_history(db: Session, issue_id: UUID) -> list[models.IssueHistory]:
    """Get the audit trail of an issue, newest first."""
    return (
        db.query(models.IssueHistory)
        .filter(models.IssueHistory.issue_id == issue_id)
        .order_by(models.IssueHistory.created_at.desc())
        .all()
    )


def get_issue_attachments(db: Session, issue_id: UUID) -> list[models.IssueAttachment]:
    """Get the attachments of an issue, newest first."""
    return (
        db.query(models.IssueAttachment)
        .filter(models.IssueAttachment.issue_id == issue_id)
        .order_by(models.IssueAttachment.created_at.desc())
        .all()
    )


def get_user_notifications(db: Session, user_id: UUID, unread_only: bool = False) -> list[models.Notification]:
    """Get notification records for a user, newest first."""
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        query = query.filter(models.Notification.is_read.is_(False))
    return query.order_by(models.Notification.created_at.desc()).all()


# ============================================================================
# Sprints
# ============================================================================


def get_sprint(db: Session, sprint_id: UUID) -> Optional[models.Sprint]:
    """Get a sprint by ID."""
    return db.query(models.Sprint).filter(models.Sprint.id == sprint_id).first()


def get_project_sprint(db: Session, project_id: UUID, sprint_id: UUID) -> Optional[models.Sprint]:
    """Get a sprint only if it belongs to the given project."""
    return (
        db.query(models.Sprint)
        .filter(models.Sprint.id == sprint_id, models.Sprint.project_id == project_id)
        .first()
    )


def get_project_sprints(db: Session, project_id: UUID) -> list[models.Sprint]:
    """Get a project's sprints ordered by start date."""
    return (
        db.query(models.Sprint)
        .filter(models.Sprint.project_id == project_id)
        .order_by(models.Sprint.start_date, models.Sprint.created_at)
        .all()
    )


def get_sprint_issues(db: Session, sprint_id: UUID) -> list[models.Issue]:
    """Get the issues currently attached to a sprint."""
    return (
        db.query(models.Issue)
        .filter(models.Issue.sprint_id == sprint_id)
        .order_by(models.Issue.issue_number)
        .all()
    )
