"""Sprint API endpoints."""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ... import crud, models, mutations, schemas
from ...database import get_db
from ...errors import NotFoundError
from ...permissions import get_project_access
from ..dependencies import get_current_actor

logger = logging.getLogger("ahura-core.sprints")

router = APIRouter(tags=["sprints"])


@router.get("/projects/{project_id}/sprints", response_model=List[schemas.SprintResponse])
def list_sprints(
    project_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """List the sprints of a project."""
    project, _ = get_project_access(db, actor, project_id)
    return crud.get_project_sprints(db, project.id)


@router.post("/projects/{project_id}/sprints", response_model=schemas.SprintResponse, status_code=201)
def create_sprint(
    project_id: UUID,
    sprint: schemas.SprintCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Create a sprint in planning state.

    - **start_date** must be before **end_date**
    """
    return mutations.create_sprint(db, actor, project_id, sprint)


@router.get("/sprints/{sprint_id}", response_model=schemas.SprintResponse)
def get_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get a specific sprint by ID."""
    sprint = crud.get_sprint(db, sprint_id)
    if not sprint:
        raise NotFoundError("Sprint not found")
    get_project_access(db, actor, sprint.project_id)
    return sprint


@router.patch("/sprints/{sprint_id}", response_model=schemas.SprintResponse)
def update_sprint(
    sprint_id: UUID,
    sprint_update: schemas.SprintUpdate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Update a sprint.

    Status changes follow planning -> active -> completed.
    """
    return mutations.update_sprint(db, actor, sprint_id, sprint_update)


@router.post("/sprints/{sprint_id}/start", response_model=schemas.SprintResponse)
def start_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Start a planning sprint."""
    return mutations.start_sprint(db, actor, sprint_id)


@router.post("/sprints/{sprint_id}/complete", response_model=schemas.SprintCompleteResponse)
def complete_sprint(
    sprint_id: UUID,
    completion: Optional[schemas.SprintComplete] = Body(None),
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Complete an active sprint.

    Unfinished issues (status category other than done) are moved to
    **next_sprint_id**, or to the backlog when it is omitted.
    """
    sprint, carried_over = mutations.complete_sprint(
        db, actor, sprint_id, completion or schemas.SprintComplete()
    )
    return schemas.SprintCompleteResponse(
        sprint=schemas.SprintResponse.model_validate(sprint),
        carried_over=carried_over,
    )


@router.delete("/sprints/{sprint_id}", response_model=schemas.SprintDeleteResponse)
def delete_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Delete a sprint. Its issues are moved to the backlog."""
    moved = mutations.delete_sprint(db, actor, sprint_id)
    return schemas.SprintDeleteResponse(moved_to_backlog=moved)
