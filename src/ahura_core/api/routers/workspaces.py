"""Workspace API endpoints: workspaces, workspace members and project creation."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, mutations, schemas
from ...database import get_db
from ...permissions import get_workspace_access
from ..dependencies import get_current_actor

logger = logging.getLogger("ahura-core.workspaces")

router = APIRouter(tags=["workspaces"])


@router.post("/", response_model=schemas.WorkspaceResponse, status_code=201)
def create_workspace(
    workspace: schemas.WorkspaceCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Create a new workspace. The caller becomes its owner.

    - **name**: Workspace name
    - **slug**: Lowercase letters, numbers and hyphens (immutable)
    - **description**: Optional description
    """
    return mutations.create_workspace(db, actor, workspace)


@router.get("/{workspace_id}", response_model=schemas.WorkspaceResponse)
def get_workspace(
    workspace_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """Get a workspace the caller belongs to."""
    workspace, _ = get_workspace_access(db, actor, workspace_id)
    return workspace


@router.get("/{workspace_id}/members", response_model=List[schemas.WorkspaceMemberResponse])
def list_workspace_members(
    workspace_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """List all members of a workspace."""
    workspace, _ = get_workspace_access(db, actor, workspace_id)
    return crud.get_workspace_members(db, workspace.id)


@router.post("/{workspace_id}/members", response_model=schemas.WorkspaceMemberResponse, status_code=201)
def add_workspace_member(
    workspace_id: UUID,
    member: schemas.WorkspaceMemberCreate,
    response: Response,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Add a user to a workspace (or change the role of an existing member).

    - **user_id**: UUID of the user to add
    - **role**: admin, member or viewer (admin can only be granted by the owner)

    Returns 201 when a membership was created, 200 when an existing one was updated.
    """
    result, created = mutations.add_workspace_member(db, actor, workspace_id, member)
    if not created:
        response.status_code = status.HTTP_200_OK
    return result


@router.patch("/{workspace_id}/members/{user_id}", response_model=schemas.WorkspaceMemberResponse)
def update_workspace_member(
    workspace_id: UUID,
    user_id: UUID,
    member_update: schemas.WorkspaceMemberUpdate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Update a workspace member's role.

    The owner membership cannot be changed through this endpoint.
    """
    return mutations.update_workspace_member(db, actor, workspace_id, user_id, member_update)


@router.delete("/{workspace_id}/members/{user_id}", status_code=204)
def remove_workspace_member(
    workspace_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Remove a user from a workspace and all of its projects.

    The owner cannot be removed.
    """
    mutations.remove_workspace_member(db, actor, workspace_id, user_id)
    return Response(status_code=204)


@router.post("/{workspace_id}/projects", response_model=schemas.ProjectResponse, status_code=201)
def create_project(
    workspace_id: UUID,
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    Create a new project with the default board columns.

    - **key**: 2-10 uppercase alphanumeric characters, starting with a letter (e.g. "AHU")
    - **name**: Project name
    - **type**: software, business or service_desk
    - **lead_id**: Optional lead (defaults to the caller)
    """
    return mutations.create_project(db, actor, workspace_id, project)


@router.get("/{workspace_id}/projects", response_model=List[schemas.ProjectResponse])
def list_workspace_projects(
    workspace_id: UUID,
    db: Session = Depends(get_db),
    actor: models.User = Depends(get_current_actor),
):
    """
    List the projects of a workspace visible to the caller.

    Workspace owners/admins see every project; other members see the
    projects they belong to.
    """
    workspace, decision = get_workspace_access(db, actor, workspace_id)
    projects = crud.get_workspace_projects(db, workspace.id)
    if decision.can_manage_workspace:
        return projects
    return [p for p in projects if crud.get_project_member(db, p.id, actor.id)]
