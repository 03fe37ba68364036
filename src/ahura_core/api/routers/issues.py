"""Issue API endpoints."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import crud, models, mutations, schemas
from ...database import get_db
from ...errors import NotFoundError
from ...permissions import get_project_access
from ..dependencies import get_current_actor

logger = logging.getLogger("ahura-core.issues")

router = APIRouter(tags=["issues"])


def _visible_issue(db: Session, actor: models.User, issue_id: UUID) -> models.Issue:
    issue = crud.get_issue(db, issue_id)
    if not issue:
        raise NotFoundError("Issue not found")
    get_project_access(db, actor, issue.project_id)
    return issue


@router.post("/projects/{project_id}/issues", response_model=schemas.IssueResponse, status_code=201)
def create_issue(
    project_id: UUID,
    issue: schemas.IssueCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Create a new issue. It is appended to the end of its status column.

    - **title**: 3-300 characters
    - **type**: epic, story, task, bug or subtask
    - **status_id**: Board column of this project
    - **parent_id** / **epic_id**: Optional hierarchy links (validated per type)
    - **sprint_id**: Optional sprint; must not be completed
    """
    return mutations.create_issue(db, actor, project_id, issue)


@router.get("/issues/{issue_id}", response_model=schemas.IssueResponse)
def get_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get a specific issue by ID."""
    return _visible_issue(db, actor, issue_id)


@router.patch("/issues/{issue_id}", response_model=schemas.IssueResponse)
def update_issue(
    issue_id: UUID,
    issue_update: schemas.IssueUpdate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Update an issue. Only the fields sent are changed.

    Each changed field is written to the issue history.
    """
    return mutations.update_issue(db, actor, issue_id, issue_update)


@router.patch("/issues/{issue_id}/move", response_model=schemas.IssueResponse)
def move_issue(
    issue_id: UUID,
    move: schemas.IssueMove,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Move an issue to another column and/or position (drag and drop).

    - **status_id**: Target column (defaults to the current one)
    - **position**: Target index, clamped to the column size
    - **sprint_id**: Optional; null moves the issue to the backlog
    """
    return mutations.move_issue(db, actor, issue_id, move)


@router.get("/issues/{issue_id}/history", response_model=List[schemas.IssueHistoryResponse])
def get_issue_history(
    issue_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get the change history of an issue, newest first."""
    issue = _visible_issue(db, actor, issue_id)
    return crud.get_issue_history(db, issue.id)


@router.get("/issues/{issue_id}/attachments", response_model=List[schemas.AttachmentResponse])
def list_attachments(
    issue_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """List attachments of an issue."""
    issue = _visible_issue(db, actor, issue_id)
    return crud.get_issue_attachments(db, issue.id)


@router.post("/issues/{issue_id}/attachments", response_model=schemas.AttachmentResponse, status_code=201)
def add_attachment(
    issue_id: UUID,
    attachment: schemas.AttachmentCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Register an uploaded file as an issue attachment.

    - **key**: Object storage key of the uploaded file
    - **mime_type**: Must be an allowed document or image type
    - **file_size**: At most 25MB
    """
    return mutations.record_attachment(db, actor, issue_id, attachment)
