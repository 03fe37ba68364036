"""Project API endpoints: settings and project members."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, mutations, schemas
from ...database import get_db
from ...permissions import get_project_access
from ..dependencies import get_current_actor

logger = logging.getLogger("ahura-core.projects")

router = APIRouter(tags=["projects"])


@router.get("/{project_id}", response_model=schemas.ProjectResponse)
def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get a specific project by ID."""
    project, _ = get_project_access(db, actor, project_id)
    return project


@router.patch("/{project_id}", response_model=schemas.ProjectResponse)
def update_project(
    project_id: UUID,
    project_update: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Update project settings.

    - **lead_id**: Must already be a project member; null clears the lead
    - **status**: active, archived or on_hold
    """
    return mutations.update_project(db, actor, project_id, project_update)


@router.get("/{project_id}/members", response_model=List[schemas.ProjectMemberResponse])
def list_project_members(
    project_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """List all members of a project."""
    project, _ = get_project_access(db, actor, project_id)
    return crud.get_project_members(db, project.id)


@router.post("/{project_id}/members", response_model=schemas.ProjectMemberResponse, status_code=201)
def add_project_member(
    project_id: UUID,
    member: schemas.ProjectMemberCreate,
    response: Response,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Add a workspace member to a project (or change their project role).

    - **user_id**: UUID of the user to add
    - **role**: lead, developer, tester or viewer (default developer)

    Returns 201 when a membership was created, 200 when an existing one was updated.
    """
    result, created = mutations.add_project_member(db, actor, project_id, member)
    if not created:
        response.status_code = status.HTTP_200_OK
    return result


@router.patch("/{project_id}/members/{user_id}", response_model=schemas.ProjectMemberResponse)
def update_project_member(
    project_id: UUID,
    user_id: UUID,
    member_update: schemas.ProjectMemberUpdate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Update a project member's role. Lead changes keep the project lead in sync."""
    return mutations.update_project_member(db, actor, project_id, user_id, member_update)


@router.delete("/{project_id}/members/{user_id}", status_code=204)
def remove_project_member(
    project_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Remove a user from a project."""
    mutations.remove_project_member(db, actor, project_id, user_id)
    return Response(status_code=204)
