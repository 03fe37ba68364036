"""Permission resolution across global, workspace and project roles.

Every mutating operation asks one question: given the actor's global role,
their workspace role and their project role, what may they do? The answer
comes from a single decision table (``resolve_access_level``) so that call
sites never compare role strings themselves.

Precedence, highest wins:

    global admin        -> GLOBAL_ADMIN     (bypasses every membership check)
    workspace owner/admin -> WORKSPACE_ADMIN (manages every project in the workspace)
    project lead        -> PROJECT_LEAD     (manages board, members, settings)
    any membership      -> MEMBER           (read; developers/testers also contribute)
    nothing             -> NONE             (forbidden)

Reads are side-effect free. Workspace admins who write to a project they
are not a member of get a viewer membership through the explicit
``ensure_project_membership`` call made by the mutation coordinator.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError, PermissionDeniedError

logger = logging.getLogger("ahura-core.permissions")


class AccessLevel(str, enum.Enum):
    """Effective access level, ordered from most to least privileged."""

    GLOBAL_ADMIN = "global_admin"
    WORKSPACE_ADMIN = "workspace_admin"
    PROJECT_LEAD = "project_lead"
    MEMBER = "member"
    NONE = "none"


# Project roles allowed to create and edit issues and sprints
CONTRIBUTOR_PROJECT_ROLES = {
    models.ProjectRole.LEAD,
    models.ProjectRole.DEVELOPER,
    models.ProjectRole.TESTER,
}

# Global roles allowed to create new workspaces
WORKSPACE_CREATOR_ROLES = {models.GlobalRole.ADMIN, models.GlobalRole.MANAGER}


@dataclass(frozen=True)
class AccessDecision:
    """Capability decision for one actor against one workspace/project."""

    level: AccessLevel
    global_role: Optional[models.GlobalRole] = None
    workspace_role: Optional[models.WorkspaceRole] = None
    project_role: Optional[models.ProjectRole] = None

    @property
    def can_view(self) -> bool:
        return self.level != AccessLevel.NONE

    @property
    def can_contribute(self) -> bool:
        if self.level in (AccessLevel.GLOBAL_ADMIN, AccessLevel.WORKSPACE_ADMIN, AccessLevel.PROJECT_LEAD):
            return True
        return self.project_role in CONTRIBUTOR_PROJECT_ROLES

    @property
    def can_manage_project(self) -> bool:
        return self.level in (AccessLevel.GLOBAL_ADMIN, AccessLevel.WORKSPACE_ADMIN, AccessLevel.PROJECT_LEAD)

    @property
    def can_manage_workspace(self) -> bool:
        return self.level in (AccessLevel.GLOBAL_ADMIN, AccessLevel.WORKSPACE_ADMIN)

    @property
    def can_create_project(self) -> bool:
        """Workspace viewers stay read only."""
        if self.level in (AccessLevel.GLOBAL_ADMIN, AccessLevel.WORKSPACE_ADMIN):
            return True
        return self.workspace_role == models.WorkspaceRole.MEMBER

    @property
    def can_assign_workspace_admin(self) -> bool:
        """Only the workspace owner (or a global admin) hands out or touches admin roles."""
        return (
            self.level == AccessLevel.GLOBAL_ADMIN
            or self.workspace_role == models.WorkspaceRole.OWNER
        )

    @property
    def needs_membership(self) -> bool:
        """True for a workspace admin acting on a project without a membership row."""
        return self.level == AccessLevel.WORKSPACE_ADMIN and self.project_role is None


def resolve_access_level(
    global_role: Optional[models.GlobalRole],
    workspace_role: Optional[models.WorkspaceRole],
    project_role: Optional[models.ProjectRole],
) -> AccessLevel:
    """
    Resolve the effective access level from the three role sources.

    Args:
        global_role: Platform role from the identity provider
        workspace_role: Role in the workspace, None if not a member
        project_role: Role in the project, None if not a member (or no project)

    Returns:
        The highest applicable AccessLevel
    """
    if global_role == models.GlobalRole.ADMIN:
        return AccessLevel.GLOBAL_ADMIN
    if workspace_role in (models.WorkspaceRole.OWNER, models.WorkspaceRole.ADMIN):
        return AccessLevel.WORKSPACE_ADMIN
    if project_role == models.ProjectRole.LEAD:
        return AccessLevel.PROJECT_LEAD
    if project_role is not None or workspace_role is not None:
        return AccessLevel.MEMBER
    return AccessLevel.NONE


def resolve_access(
    global_role: Optional[models.GlobalRole],
    workspace_role: Optional[models.WorkspaceRole],
    project_role: Optional[models.ProjectRole],
) -> AccessDecision:
    """Build the full AccessDecision for the given roles."""
    return AccessDecision(
        level=resolve_access_level(global_role, workspace_role, project_role),
        global_role=global_role,
        workspace_role=workspace_role,
        project_role=project_role,
    )


def can_create_workspace(global_role: Optional[models.GlobalRole]) -> bool:
    """Check if a global role may create workspaces."""
    return global_role in WORKSPACE_CREATOR_ROLES


# ============================================================================
# Database loaders
# ============================================================================


def _workspace_role(db: Session, workspace_id: UUID, user_id: UUID) -> Optional[models.WorkspaceRole]:
    member = (
        db.query(models.WorkspaceMember)
        .filter(
            models.WorkspaceMember.workspace_id == workspace_id,
            models.WorkspaceMember.user_id == user_id,
        )
        .first()
    )
    return member.role if member else None


def _project_role(db: Session, project_id: UUID, user_id: UUID) -> Optional[models.ProjectRole]:
    member = (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project_id,
            models.ProjectMember.user_id == user_id,
        )
        .first()
    )
    return member.role if member else None


def get_workspace_access(
    db: Session,
    actor: models.User,
    workspace_id: UUID,
) -> tuple[models.Workspace, AccessDecision]:
    """
    Load a workspace and resolve the actor's access to it.

    Args:
        db: Database session
        actor: Authenticated user
        workspace_id: Workspace UUID

    Returns:
        Tuple of (workspace, decision)

    Raises:
        NotFoundError: If the workspace does not exist
        PermissionDeniedError: If the actor has no access at all
    """
    workspace = db.query(models.Workspace).filter(models.Workspace.id == workspace_id).first()
    if not workspace:
        raise NotFoundError("Workspace not found")

    decision = resolve_access(
        actor.global_role,
        _workspace_role(db, workspace_id, actor.id),
        None,
    )
    if not decision.can_view:
        logger.warning(f"User {actor.id} denied access to workspace {workspace_id}")
        raise PermissionDeniedError("Forbidden")
    return workspace, decision


def get_project_access(
    db: Session,
    actor: models.User,
    project_id: UUID,
) -> tuple[models.Project, AccessDecision]:
    """
    Load a project and resolve the actor's access to it.

    A workspace membership alone does not grant access to a project unless it
    is an owner/admin membership.

    Args:
        db: Database session
        actor: Authenticated user
        project_id: Project UUID

    Returns:
        Tuple of (project, decision)

    Raises:
        NotFoundError: If the project does not exist
        PermissionDeniedError: If the actor has no access to the project
    """
    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project not found")

    workspace_role = _workspace_role(db, project.workspace_id, actor.id)
    project_role = _project_role(db, project_id, actor.id)
    if project_role is None and workspace_role not in (models.WorkspaceRole.OWNER, models.WorkspaceRole.ADMIN):
        # Plain workspace members only see projects they were added to
        workspace_role = None

    decision = resolve_access(actor.global_role, workspace_role, project_role)
    if not decision.can_view:
        logger.warning(f"User {actor.id} denied access to project {project_id}")
        raise PermissionDeniedError("Forbidden")
    return project, decision


def require(decision: AccessDecision, capability: str, message: str = "Forbidden") -> None:
    """
    Raise PermissionDeniedError unless the decision grants a capability.

    Args:
        decision: Resolved access decision
        capability: Name of an AccessDecision property, e.g. "can_manage_project"
        message: Error message on denial
    """
    if not getattr(decision, capability):
        logger.warning(f"Denied {capability} at level {decision.level.value}: {message}")
        raise PermissionDeniedError(message)


def ensure_project_membership(
    db: Session,
    project_id: UUID,
    user_id: UUID,
    role: models.ProjectRole = models.ProjectRole.VIEWER,
) -> models.ProjectMember:
    """
    Idempotently make sure a user has a membership row in a project.

    Existing memberships are returned untouched (their role is never
    downgraded). Does not commit; the caller owns the transaction.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: User UUID
        role: Role to use when a row has to be created

    Returns:
        The existing or newly created membership
    """
    member = (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project_id,
            models.ProjectMember.user_id == user_id,
        )
        .first()
    )
    if member:
        return member

    member = models.ProjectMember(project_id=project_id, user_id=user_id, role=role)
    db.add(member)
    db.flush()
    logger.info(f"Materialized {role.value} membership for user {user_id} in project {project_id}")
    return member
