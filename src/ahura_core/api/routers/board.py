"""Board API endpoints: board view and status columns."""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, models, mutations, schemas
from ...database import get_db
from ...permissions import get_project_access
from ..dependencies import get_current_actor

logger = logging.getLogger("ahura-core.board")

router = APIRouter(tags=["board"])


@router.get("/{project_id}/board", response_model=schemas.BoardResponse)
def get_board(
    project_id: UUID,
    sprint_id: Optional[UUID] = Query(None, description="Only show issues of this sprint"),
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get the project board: columns left to right, issues in position order."""
    project, _ = get_project_access(db, actor, project_id)

    columns = [
        schemas.BoardColumn(
            **schemas.StatusResponse.model_validate(column).model_dump(),
            issues=[schemas.IssueResponse.model_validate(issue) for issue in issues],
        )
        for column, issues in crud.get_board(db, project.id, sprint_id)
    ]
    return schemas.BoardResponse(project_id=project.id, columns=columns)


@router.post("/{project_id}/board/statuses", response_model=schemas.StatusResponse, status_code=201)
def create_status(
    project_id: UUID,
    status_in: schemas.StatusCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Add a board column to the right end of the board.

    - **name**: 2-50 characters, unique within the project
    - **category**: todo, in_progress or done
    - **color**: Optional "#RRGGBB"
    """
    return mutations.create_status(db, actor, project_id, status_in)


@router.put("/{project_id}/board/statuses", response_model=List[schemas.StatusResponse])
def reorder_statuses(
    project_id: UUID,
    reorder: schemas.StatusReorder,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Reorder board columns (and optionally rename or recolor them).

    Positions are normalised to a dense 0..N-1 sequence.
    """
    return mutations.reorder_statuses(db, actor, project_id, reorder)


@router.delete("/{project_id}/board/statuses/{status_id}", response_model=List[schemas.StatusResponse])
def delete_status(
    project_id: UUID,
    status_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Delete an empty board column.

    The last column of a project and columns holding issues cannot be deleted.
    Returns the remaining columns, renumbered.
    """
    return mutations.delete_status(db, actor, project_id, status_id)
