"""Per-project issue numbers and human-readable keys (e.g. "AHU-42").

Numbers are allocated as max(issue_number) + 1 inside the same transaction
that inserts the issue. The project row is locked first where the backend
supports it, and the (project_id, issue_number) and key unique constraints
turn any remaining race into an IntegrityError, which the API reports as a
conflict.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("ahura-core.issue_numbering")


def format_issue_key(project_key: str, issue_number: int) -> str:
    """Build the issue key, e.g. ("AHU", 42) -> "AHU-42"."""
    return f"{project_key}-{issue_number}"


def allocate_issue_number(db: Session, project: models.Project) -> tuple[int, str]:
    """
    Allocate the next issue number and key for a project.

    Must be called inside the transaction that inserts the issue.

    Args:
        db: Database session
        project: Project receiving the issue

    Returns:
        Tuple of (issue_number, key)
    """
    # Serialize concurrent creates on the same project
    db.query(models.Project.id).filter(models.Project.id == project.id).with_for_update().first()

    current_max = (
        db.query(func.max(models.Issue.issue_number))
        .filter(models.Issue.project_id == project.id)
        .scalar()
    )
    issue_number = (current_max or 0) + 1
    key = format_issue_key(project.key, issue_number)
    logger.debug(f"Allocated {key}")
    return issue_number, key
