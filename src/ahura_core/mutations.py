"""Mutating operations on workspaces, projects, boards, issues and sprints.

Every public function here is one atomic unit of work:

1. resolve the actor's access (permissions) and reject early,
2. open a transaction (database.atomic),
3. validate and write through the hierarchy validator, position reindexer,
   issue number allocator and sprint state machine,
4. append history rows (audit),
5. commit, or roll back everything on the first failure.

Workspace admins who write to a project they are not a member of get an
explicit viewer membership inside the same transaction.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import audit, crud, models, positions, schemas
from .database import atomic
from .errors import ConflictError, InvariantViolationError, NotFoundError, PermissionDeniedError
from .hierarchy_validation import resolve_hierarchy, resolve_hierarchy_for_update
from .html_utils import sanitize_description
from .issue_numbering import allocate_issue_number
from .permissions import (
    AccessDecision,
    can_create_workspace,
    ensure_project_membership,
    get_project_access,
    get_workspace_access,
    require,
)
from .sprint_state_machine import is_terminal_status, validate_sprint_transition
from .storage import public_object_url, validate_attachment

logger = logging.getLogger("ahura-core.mutations")

# Columns every new project starts with: (name, category, color)
DEFAULT_STATUSES: list[tuple[str, models.StatusCategory, str]] = [
    ("Backlog", models.StatusCategory.TODO, "#6B6B73"),
    ("Selected", models.StatusCategory.TODO, "#A0A0A6"),
    ("In Progress", models.StatusCategory.IN_PROGRESS, "#0066FF"),
    ("In Review", models.StatusCategory.IN_PROGRESS, "#FF991F"),
    ("QA", models.StatusCategory.IN_PROGRESS, "#0052CC"),
    ("Done", models.StatusCategory.DONE, "#00875A"),
]

HIERARCHY_FIELDS = {"type", "parent_id", "epic_id"}


# ============================================================================
# Shared helpers
# ============================================================================


def _authorize_project(
    db: Session,
    actor: models.User,
    project_id: UUID,
    capability: str = "can_contribute",
    message: str = "Forbidden",
) -> tuple[models.Project, AccessDecision]:
    project, decision = get_project_access(db, actor, project_id)
    require(decision, capability, message)
    return project, decision


def _materialize_membership(db: Session, project: models.Project, actor: models.User, decision: AccessDecision) -> None:
    if decision.needs_membership:
        ensure_project_membership(db, project.id, actor.id)


def _require_issue(db: Session, issue_id: UUID) -> models.Issue:
    issue = crud.get_issue(db, issue_id)
    if not issue:
        raise NotFoundError("Issue not found")
    return issue


def _require_sprint(db: Session, sprint_id: UUID) -> models.Sprint:
    sprint = crud.get_sprint(db, sprint_id)
    if not sprint:
        raise NotFoundError("Sprint not found")
    return sprint


def _require_status(db: Session, project_id: UUID, status_id: UUID, message: str) -> models.IssueStatus:
    status = crud.get_project_status(db, project_id, status_id)
    if not status:
        raise InvariantViolationError(message)
    return status


def _require_open_sprint(db: Session, project_id: UUID, sprint_id: UUID) -> models.Sprint:
    sprint = crud.get_project_sprint(db, project_id, sprint_id)
    if not sprint:
        raise InvariantViolationError("Invalid sprint for this project")
    if is_terminal_status(sprint.status):
        raise InvariantViolationError("Cannot add issues to a completed sprint")
    return sprint


def _require_assignee(db: Session, project_id: UUID, user_id: UUID) -> None:
    if not crud.get_project_member(db, project_id, user_id):
        raise InvariantViolationError("Assignee must be a project member")


def _notify_assignment(db: Session, issue: models.Issue, actor: models.User) -> None:
    """Write an "assigned" notification unless people assign themselves."""
    if issue.assignee_id is None or issue.assignee_id == actor.id:
        return
    db.add(models.Notification(
        user_id=issue.assignee_id,
        issue_id=issue.id,
        type=models.NotificationType.ASSIGNED,
        message=f"{actor.first_name} assigned you to {issue.key}",
    ))


# ============================================================================
# Workspaces
# ============================================================================


def create_workspace(
    db: Session,
    actor: models.User,
    data: schemas.WorkspaceCreate,
) -> models.Workspace:
    """
    Create a workspace owned by the actor.

    The owner membership is written in the same transaction, so a workspace
    never exists without exactly one owner.

    Raises:
        PermissionDeniedError: If the actor's global role may not create workspaces
        ConflictError: If the slug is taken
    """
    if not can_create_workspace(actor.global_role):
        raise PermissionDeniedError("You are not allowed to create workspaces")

    if crud.get_workspace_by_slug(db, data.slug):
        raise ConflictError("Workspace slug already exists")

    with atomic(db):
        workspace = models.Workspace(
            name=data.name,
            slug=data.slug,
            description=data.description,
            owner_id=actor.id,
        )
        db.add(workspace)
        db.flush()
        db.add(models.WorkspaceMember(
            workspace_id=workspace.id,
            user_id=actor.id,
            role=models.WorkspaceRole.OWNER,
        ))

    db.refresh(workspace)
    logger.info(f"Created workspace '{workspace.slug}' (ID: {workspace.id}) owned by {actor.id}")
    return workspace


def _check_admin_role_change(
    decision: AccessDecision,
    requested_role: models.WorkspaceRole,
    existing: Optional[models.WorkspaceMember],
) -> None:
    if requested_role == models.WorkspaceRole.ADMIN and not decision.can_assign_workspace_admin:
        raise PermissionDeniedError("Only workspace owner can grant admin role")
    if existing and existing.role == models.WorkspaceRole.ADMIN and not decision.can_assign_workspace_admin:
        raise PermissionDeniedError("Only workspace owner can modify admin members")


def add_workspace_member(
    db: Session,
    actor: models.User,
    workspace_id: UUID,
    data: schemas.WorkspaceMemberCreate,
) -> tuple[models.WorkspaceMember, bool]:
    """
    Add a user to a workspace, or change the role of an existing member.

    Args:
        db: Database session
        actor: Authenticated user
        workspace_id: Workspace UUID
        data: User and role (owner is never assignable)

    Returns:
        Tuple of (membership, created)

    Raises:
        NotFoundError: If the workspace or user does not exist
        PermissionDeniedError: If the actor may not manage members or admins
        InvariantViolationError: If the target is the workspace owner
    """
    workspace, decision = get_workspace_access(db, actor, workspace_id)
    require(decision, "can_manage_workspace")

    if not crud.get_user(db, data.user_id):
        raise NotFoundError("User not found")

    existing = crud.get_workspace_member(db, workspace.id, data.user_id)
    if data.user_id == workspace.owner_id or (existing and existing.role == models.WorkspaceRole.OWNER):
        raise InvariantViolationError("Workspace owner role cannot be modified")
    _check_admin_role_change(decision, data.role, existing)

    with atomic(db):
        if existing:
            existing.role = data.role
            member = existing
        else:
            member = models.WorkspaceMember(
                workspace_id=workspace.id,
                user_id=data.user_id,
                role=data.role,
            )
            db.add(member)

    db.refresh(member)
    logger.info(f"Workspace {workspace.slug}: user {data.user_id} is now {data.role.value}")
    return member, existing is None


def update_workspace_member(
    db: Session,
    actor: models.User,
    workspace_id: UUID,
    user_id: UUID,
    data: schemas.WorkspaceMemberUpdate,
) -> models.WorkspaceMember:
    """
    Change a workspace member's role.

    Raises:
        NotFoundError: If the workspace or membership does not exist
        PermissionDeniedError: If the actor may not manage members or admins
        InvariantViolationError: If the target is the workspace owner
    """
    workspace, decision = get_workspace_access(db, actor, workspace_id)
    require(decision, "can_manage_workspace")

    member = crud.get_workspace_member(db, workspace.id, user_id)
    if user_id == workspace.owner_id or (member and member.role == models.WorkspaceRole.OWNER):
        raise InvariantViolationError("Workspace owner role cannot be modified")
    if not member:
        raise NotFoundError("Member not found")
    _check_admin_role_change(decision, data.role, member)

    with atomic(db):
        member.role = data.role

    db.refresh(member)
    logger.info(f"Workspace {workspace.slug}: user {user_id} role changed to {data.role.value}")
    return member


def remove_workspace_member(
    db: Session,
    actor: models.User,
    workspace_id: UUID,
    user_id: UUID,
) -> None:
    """
    Remove a user from a workspace and from every project in it.

    Raises:
        NotFoundError: If the workspace or membership does not exist
        PermissionDeniedError: If the actor may not manage members or admins
        InvariantViolationError: If the target is the workspace owner
    """
    workspace, decision = get_workspace_access(db, actor, workspace_id)
    require(decision, "can_manage_workspace")

    if user_id == workspace.owner_id:
        raise InvariantViolationError("Workspace owner cannot be removed")

    member = crud.get_workspace_member(db, workspace.id, user_id)
    if not member:
        raise NotFoundError("Member not found")
    if member.role == models.WorkspaceRole.ADMIN and not decision.can_assign_workspace_admin:
        raise PermissionDeniedError("Only workspace owner can modify admin members")

    with atomic(db):
        for project in crud.get_workspace_projects(db, workspace.id):
            project_member = crud.get_project_member(db, project.id, user_id)
            if project_member:
                if project.lead_id == user_id:
                    project.lead_id = None
                db.delete(project_member)
        db.delete(member)

    logger.info(f"Workspace {workspace.slug}: removed user {user_id}")


# ============================================================================
# Projects
# ============================================================================


def _sync_lead(db: Session, project: models.Project, member: models.ProjectMember) -> None:
    """
    Keep Project.lead_id and the lead membership role in agreement.

    Promoting a member to lead makes them the project lead and demotes any
    previous lead to developer. Demoting the current lead clears lead_id.
    """
    if member.role == models.ProjectRole.LEAD:
        previous_leads = (
            db.query(models.ProjectMember)
            .filter(
                models.ProjectMember.project_id == project.id,
                models.ProjectMember.role == models.ProjectRole.LEAD,
                models.ProjectMember.user_id != member.user_id,
            )
            .all()
        )
        for previous in previous_leads:
            previous.role = models.ProjectRole.DEVELOPER
        project.lead_id = member.user_id
    elif project.lead_id == member.user_id:
        project.lead_id = None


def create_project(
    db: Session,
    actor: models.User,
    workspace_id: UUID,
    data: schemas.ProjectCreate,
) -> models.Project:
    """
    Create a project with its default board columns.

    The creator becomes the lead unless another workspace member is named as
    lead, in which case the creator joins as developer.

    Raises:
        NotFoundError: If the workspace does not exist
        PermissionDeniedError: If the actor is not a workspace member or only a viewer
        ConflictError: If the project key is taken
        InvariantViolationError: If the named lead is not a workspace member
    """
    workspace, decision = get_workspace_access(db, actor, workspace_id)
    require(decision, "can_create_project", "Workspace viewers cannot create projects")

    if crud.get_project_by_key(db, data.key):
        raise ConflictError("Project key already exists")

    lead_id = data.lead_id or actor.id
    if lead_id != actor.id and not crud.get_workspace_member(db, workspace.id, lead_id):
        raise InvariantViolationError("User must be a workspace member before adding to project")

    with atomic(db):
        project = models.Project(
            workspace_id=workspace.id,
            key=data.key,
            name=data.name,
            description=data.description,
            type=data.type,
            lead_id=lead_id,
            start_date=data.start_date,
            target_end_date=data.target_end_date,
        )
        db.add(project)
        db.flush()

        db.add(models.ProjectMember(
            project_id=project.id,
            user_id=actor.id,
            role=models.ProjectRole.LEAD if lead_id == actor.id else models.ProjectRole.DEVELOPER,
        ))
        if lead_id != actor.id:
            db.add(models.ProjectMember(project_id=project.id, user_id=lead_id, role=models.ProjectRole.LEAD))

        for position, (name, category, color) in enumerate(DEFAULT_STATUSES):
            db.add(models.IssueStatus(
                project_id=project.id,
                name=name,
                category=category,
                color=color,
                position=position,
            ))

    db.refresh(project)
    logger.info(f"Created project '{project.name}' ({project.key}) (ID: {project.id})")
    return project


def update_project(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.ProjectUpdate,
) -> models.Project:
    """
    Update project settings, including the lead field.

    Raises:
        NotFoundError: If the project does not exist
        PermissionDeniedError: If the actor may not manage the project
        InvariantViolationError: If the new lead is not a project member
    """
    project, decision = _authorize_project(db, actor, project_id, "can_manage_project")
    changes = data.model_dump(exclude_unset=True)

    lead_member = None
    if changes.get("lead_id"):
        lead_member = crud.get_project_member(db, project.id, changes["lead_id"])
        if not lead_member:
            raise InvariantViolationError("Lead must be a project member")

    with atomic(db):
        _materialize_membership(db, project, actor, decision)

        if "lead_id" in changes:
            lead_id = changes.pop("lead_id")
            if lead_member:
                lead_member.role = models.ProjectRole.LEAD
                _sync_lead(db, project, lead_member)
            elif project.lead_id:
                current = crud.get_project_member(db, project.id, project.lead_id)
                if current and current.role == models.ProjectRole.LEAD:
                    current.role = models.ProjectRole.DEVELOPER
                project.lead_id = lead_id

        for field, value in changes.items():
            setattr(project, field, value)

    db.refresh(project)
    logger.info(f"Updated project {project.key}: {', '.join(data.model_fields_set) or 'no changes'}")
    return project


def add_project_member(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.ProjectMemberCreate,
) -> tuple[models.ProjectMember, bool]:
    """
    Add a workspace member to a project, or change their project role.

    Returns:
        Tuple of (membership, created)

    Raises:
        NotFoundError: If the project or user does not exist
        PermissionDeniedError: If the actor may not manage the project
        InvariantViolationError: If the user is not a workspace member
    """
    project, decision = _authorize_project(db, actor, project_id, "can_manage_project")

    if not crud.get_user(db, data.user_id):
        raise NotFoundError("User not found")
    if not crud.get_workspace_member(db, project.workspace_id, data.user_id):
        raise InvariantViolationError("User must be a workspace member before adding to project")

    existing = crud.get_project_member(db, project.id, data.user_id)

    with atomic(db):
        if data.user_id != actor.id:
            _materialize_membership(db, project, actor, decision)

        if existing:
            existing.role = data.role
            member = existing
        else:
            member = models.ProjectMember(project_id=project.id, user_id=data.user_id, role=data.role)
            db.add(member)
        db.flush()
        _sync_lead(db, project, member)

    db.refresh(member)
    logger.info(f"Project {project.key}: user {data.user_id} is now {data.role.value}")
    return member, existing is None


def update_project_member(
    db: Session,
    actor: models.User,
    project_id: UUID,
    user_id: UUID,
    data: schemas.ProjectMemberUpdate,
) -> models.ProjectMember:
    """
    Change a project member's role, keeping the lead field in sync.

    Raises:
        NotFoundError: If the project or membership does not exist
        PermissionDeniedError: If the actor may not manage the project
    """
    project, decision = _authorize_project(db, actor, project_id, "can_manage_project")

    member = crud.get_project_member(db, project.id, user_id)
    if not member:
        raise NotFoundError("Member not found")

    with atomic(db):
        if user_id != actor.id:
            _materialize_membership(db, project, actor, decision)
        member.role = data.role
        _sync_lead(db, project, member)

    db.refresh(member)
    logger.info(f"Project {project.key}: user {user_id} role changed to {data.role.value}")
    return member


def remove_project_member(
    db: Session,
    actor: models.User,
    project_id: UUID,
    user_id: UUID,
) -> None:
    """
    Remove a user from a project. Removing the lead clears the lead field.

    Raises:
        NotFoundError: If the project or membership does not exist
        PermissionDeniedError: If the actor may not manage the project
    """
    project, _ = _authorize_project(db, actor, project_id, "can_manage_project")

    member = crud.get_project_member(db, project.id, user_id)
    if not member:
        raise NotFoundError("Member not found")

    with atomic(db):
        if project.lead_id == user_id:
            project.lead_id = None
        db.delete(member)

    logger.info(f"Project {project.key}: removed user {user_id}")


# ============================================================================
# Board columns
# ============================================================================


def create_status(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.StatusCreate,
) -> models.IssueStatus:
    """
    Append a column to the right of a project's board.

    Raises:
        PermissionDeniedError: If the actor may not manage the board
        ConflictError: If a column with this name exists
    """
    project, decision = _authorize_project(
        db, actor, project_id, "can_manage_project",
        "Only project/workspace admins can create board columns",
    )

    duplicate = (
        db.query(models.IssueStatus.id)
        .filter(models.IssueStatus.project_id == project.id, models.IssueStatus.name == data.name)
        .first()
    )
    if duplicate:
        raise ConflictError("Status already exists")

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        status = models.IssueStatus(
            project_id=project.id,
            name=data.name,
            category=data.category,
            color=data.color,
            wip_limit=data.wip_limit,
            position=positions.next_status_position(db, project.id),
        )
        db.add(status)

    db.refresh(status)
    logger.info(f"Project {project.key}: added column '{status.name}' at {status.position}")
    return status


def reorder_statuses(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.StatusReorder,
) -> list[models.IssueStatus]:
    """
    Reorder board columns and optionally rename/recolor them in one go.

    Returns:
        Columns in their new board order, positions dense [0..N-1]

    Raises:
        PermissionDeniedError: If the actor may not manage the board
        InvariantViolationError: If a column does not belong to the project
        ConflictError: If the edits would produce duplicate column names
    """
    project, decision = _authorize_project(
        db, actor, project_id, "can_manage_project",
        "Only project/workspace admins can reorder board columns",
    )

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        ordered = positions.reorder_statuses(
            db, project.id, [(item.id, item.position) for item in data.statuses]
        )

        by_id = {status.id: status for status in ordered}
        final_names = {status.id: status.name for status in ordered}
        for item in data.statuses:
            if item.name:
                final_names[item.id] = item.name
        if len(set(final_names.values())) != len(final_names):
            raise ConflictError("Status already exists")

        for item in data.statuses:
            status = by_id[item.id]
            if item.name:
                status.name = item.name
            if item.category:
                status.category = item.category
            if "color" in item.model_fields_set:
                status.color = item.color

    for status in ordered:
        db.refresh(status)
    logger.info(f"Project {project.key}: reordered {len(ordered)} columns")
    return ordered


def delete_status(
    db: Session,
    actor: models.User,
    project_id: UUID,
    status_id: UUID,
) -> list[models.IssueStatus]:
    """
    Delete an empty board column and renumber the rest.

    Returns:
        Remaining columns, positions dense [0..N-1]

    Raises:
        NotFoundError: If the column does not exist in this project
        PermissionDeniedError: If the actor may not manage the board
        InvariantViolationError: If it is the last column or still holds issues
    """
    project, decision = _authorize_project(
        db, actor, project_id, "can_manage_project",
        "Only project/workspace admins can delete board columns",
    )

    status = crud.get_project_status(db, project.id, status_id)
    if not status:
        raise NotFoundError("Status not found")
    status_name = status.name

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        positions.ensure_column_deletable(db, status)
        db.delete(status)
        db.flush()
        remaining = positions.renumber_statuses(db, project.id)

    logger.info(f"Project {project.key}: deleted column '{status_name}', {len(remaining)} left")
    return crud.get_project_statuses(db, project.id)


# ============================================================================
# Issues
# ============================================================================


def create_issue(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.IssueCreate,
) -> models.Issue:
    """
    Create an issue at the end of its status column.

    Allocates the next issue number/key, validates hierarchy links and
    records a "create" history row.

    Raises:
        NotFoundError: If the project does not exist
        PermissionDeniedError: If the actor may not contribute to the project
        InvariantViolationError: On invalid status, sprint, assignee or hierarchy
    """
    project, decision = _authorize_project(db, actor, project_id)

    with atomic(db):
        _materialize_membership(db, project, actor, decision)

        status = _require_status(db, project.id, data.status_id, "Invalid status")
        if data.assignee_id:
            _require_assignee(db, project.id, data.assignee_id)
        if data.sprint_id:
            _require_open_sprint(db, project.id, data.sprint_id)

        parent_id, epic_id = resolve_hierarchy(
            db, project.id, data.type, parent_id=data.parent_id, epic_id=data.epic_id
        )

        issue_number, key = allocate_issue_number(db, project)
        positions.lock_bucket(db, project.id, status.id)

        issue = models.Issue(
            project_id=project.id,
            issue_number=issue_number,
            key=key,
            type=data.type,
            title=data.title,
            description=sanitize_description(data.description),
            status_id=status.id,
            priority=data.priority,
            assignee_id=data.assignee_id,
            reporter_id=actor.id,
            sprint_id=data.sprint_id,
            parent_id=parent_id,
            epic_id=epic_id,
            story_points=data.story_points,
            due_date=data.due_date,
            position=positions.next_position(db, project.id, status.id),
        )
        db.add(issue)
        db.flush()

        audit.record_created(db, issue, actor.id)
        _notify_assignment(db, issue, actor)

    db.refresh(issue)
    logger.info(f"Created issue {issue.key} ({issue.type.value}) at {status.name}:{issue.position}")
    return issue


def update_issue(
    db: Session,
    actor: models.User,
    issue_id: UUID,
    data: schemas.IssueUpdate,
) -> models.Issue:
    """
    Apply a partial update to an issue.

    Hierarchy is revalidated against the merged state whenever type, parent
    or epic is part of the update. A status change appends the issue to the
    end of the target column. One history row is written per tracked field
    that actually changed.

    Raises:
        NotFoundError: If the issue does not exist
        PermissionDeniedError: If the actor is neither an issue owner nor a project manager
        InvariantViolationError: On invalid status, sprint, assignee or hierarchy
    """
    issue = _require_issue(db, issue_id)
    project, decision = _authorize_project(db, actor, issue.project_id)
    if not decision.can_manage_project and actor.id not in (issue.reporter_id, issue.assignee_id):
        raise PermissionDeniedError("Only issue owner can edit this issue")

    changes = data.model_dump(exclude_unset=True)
    if "description" in changes:
        changes["description"] = sanitize_description(changes["description"])

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        before = audit.snapshot(issue)
        previous_assignee = issue.assignee_id

        new_status_id = changes.pop("status_id", issue.status_id)
        if new_status_id != issue.status_id:
            _require_status(db, project.id, new_status_id, "Invalid status for this project")
        if changes.get("assignee_id") and changes["assignee_id"] != issue.assignee_id:
            _require_assignee(db, project.id, changes["assignee_id"])
        if changes.get("sprint_id") and changes["sprint_id"] != issue.sprint_id:
            _require_open_sprint(db, project.id, changes["sprint_id"])

        if HIERARCHY_FIELDS & changes.keys():
            changes["parent_id"], changes["epic_id"] = resolve_hierarchy_for_update(db, issue, changes)

        if new_status_id != issue.status_id:
            positions.move_to_bucket(db, issue, new_status_id)

        for field, value in changes.items():
            setattr(issue, field, value)
        db.flush()

        entries = audit.record_changes(db, issue.id, actor.id, before, audit.snapshot(issue))
        if issue.assignee_id != previous_assignee:
            _notify_assignment(db, issue, actor)

    db.refresh(issue)
    logger.info(f"Updated issue {issue.key}: {len(entries)} tracked field(s) changed")
    return issue


def move_issue(
    db: Session,
    actor: models.User,
    issue_id: UUID,
    data: schemas.IssueMove,
) -> models.Issue:
    """
    Move an issue on the board (drag and drop).

    Same-column moves shift only the rows between the old and new index.
    Cross-column moves close the gap in the source column and open a slot in
    the target column. The index is clamped to the column size. Sending
    sprint_id (null for backlog) also changes the sprint.

    Raises:
        NotFoundError: If the issue does not exist
        PermissionDeniedError: If the actor may not contribute to the project
        InvariantViolationError: On a status or sprint from another project
    """
    issue = _require_issue(db, issue_id)
    project, decision = _authorize_project(db, actor, issue.project_id)

    with atomic(db):
        _materialize_membership(db, project, actor, decision)

        target_status_id = data.status_id or issue.status_id
        if target_status_id != issue.status_id:
            _require_status(db, project.id, target_status_id, "Invalid status for this project")
        if "sprint_id" in data.model_fields_set:
            if data.sprint_id and data.sprint_id != issue.sprint_id:
                _require_open_sprint(db, project.id, data.sprint_id)
            issue.sprint_id = data.sprint_id

        old_status_id, old_position = issue.status_id, issue.position
        positions.place_issue(db, issue, target_status_id, data.position)
        db.flush()

        audit.record_moved(db, issue, actor.id, old_status_id, old_position)

    db.refresh(issue)
    logger.info(f"Moved issue {issue.key}: {old_status_id}:{old_position} -> {issue.status_id}:{issue.position}")
    return issue


def record_attachment(
    db: Session,
    actor: models.User,
    issue_id: UUID,
    data: schemas.AttachmentCreate,
) -> models.IssueAttachment:
    """
    Register an already uploaded object as an issue attachment.

    Raises:
        NotFoundError: If the issue does not exist
        PermissionDeniedError: If the actor may not contribute to the project
        InvariantViolationError: If the file type or size is not allowed
    """
    issue = _require_issue(db, issue_id)
    project, decision = _authorize_project(db, actor, issue.project_id)
    validate_attachment(data.mime_type, data.file_size)

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        attachment = models.IssueAttachment(
            issue_id=issue.id,
            user_id=actor.id,
            filename=data.file_name,
            file_url=public_object_url(data.key),
            file_size=data.file_size,
            mime_type=data.mime_type,
        )
        db.add(attachment)
        db.flush()
        audit.record_attachment(db, attachment, actor.id)

    db.refresh(attachment)
    logger.info(f"Attached '{attachment.filename}' to {issue.key}")
    return attachment


# ============================================================================
# Sprints
# ============================================================================


def _carry_over(
    db: Session,
    sprint: models.Sprint,
    target_sprint_id: Optional[UUID],
    actor: models.User,
) -> list[models.Issue]:
    """
    Reassign every unfinished issue of a sprint.

    Issues in a done-category column stay on the sprint.

    Returns:
        The issues that were moved
    """
    unfinished = (
        db.query(models.Issue)
        .join(models.IssueStatus, models.Issue.status_id == models.IssueStatus.id)
        .filter(
            models.Issue.sprint_id == sprint.id,
            models.IssueStatus.category != models.StatusCategory.DONE,
        )
        .with_for_update(of=models.Issue)
        .all()
    )
    for issue in unfinished:
        audit.record_event(
            db, issue.id, actor.id, models.ChangeType.UPDATED, "sprint_id",
            old_value=audit.stringify(issue.sprint_id),
            new_value=audit.stringify(target_sprint_id),
        )
        issue.sprint_id = target_sprint_id
    return unfinished


def create_sprint(
    db: Session,
    actor: models.User,
    project_id: UUID,
    data: schemas.SprintCreate,
) -> models.Sprint:
    """
    Create a sprint in planning state.

    Raises:
        PermissionDeniedError: If the actor may not contribute to the project
    """
    project, decision = _authorize_project(db, actor, project_id)

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        sprint = models.Sprint(
            project_id=project.id,
            name=data.name,
            goal=data.goal,
            start_date=data.start_date,
            end_date=data.end_date,
            status=models.SprintStatus.PLANNING,
        )
        db.add(sprint)

    db.refresh(sprint)
    logger.info(f"Project {project.key}: created sprint '{sprint.name}'")
    return sprint


def update_sprint(
    db: Session,
    actor: models.User,
    sprint_id: UUID,
    data: schemas.SprintUpdate,
) -> models.Sprint:
    """
    Update sprint details. A status change follows the lifecycle rules; moving
    to completed this way carries unfinished issues to the backlog.

    Raises:
        NotFoundError: If the sprint does not exist
        PermissionDeniedError: If the actor may not contribute to the project
        SprintStateTransitionError: On a backwards or skipping status change
        InvariantViolationError: If the dates end up out of order
    """
    sprint = _require_sprint(db, sprint_id)
    project, decision = _authorize_project(db, actor, sprint.project_id)
    changes = data.model_dump(exclude_unset=True)

    new_status = changes.pop("status", None)
    if new_status is not None and new_status != sprint.status:
        validate_sprint_transition(sprint.status, new_status)

    start_date = changes.get("start_date", sprint.start_date)
    end_date = changes.get("end_date", sprint.end_date)
    if end_date <= start_date:
        raise InvariantViolationError("endDate must be after startDate")

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        for field, value in changes.items():
            setattr(sprint, field, value)
        if new_status is not None and new_status != sprint.status:
            sprint.status = new_status
            if new_status == models.SprintStatus.COMPLETED:
                _carry_over(db, sprint, None, actor)

    db.refresh(sprint)
    logger.info(f"Updated sprint '{sprint.name}' ({sprint.status.value})")
    return sprint


def start_sprint(db: Session, actor: models.User, sprint_id: UUID) -> models.Sprint:
    """
    Start a planning sprint.

    Raises:
        SprintStateTransitionError: "Only planning sprint can be started"
    """
    sprint = _require_sprint(db, sprint_id)
    project, decision = _authorize_project(db, actor, sprint.project_id)
    validate_sprint_transition(sprint.status, models.SprintStatus.ACTIVE)

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        sprint.status = models.SprintStatus.ACTIVE

    db.refresh(sprint)
    logger.info(f"Project {project.key}: started sprint '{sprint.name}'")
    return sprint


def complete_sprint(
    db: Session,
    actor: models.User,
    sprint_id: UUID,
    data: schemas.SprintComplete,
) -> tuple[models.Sprint, int]:
    """
    Complete an active sprint and carry unfinished issues over.

    Args:
        db: Database session
        actor: Authenticated user
        sprint_id: Sprint to complete
        data: Optional next sprint (same project, not completed, not itself);
            omitted or null sends unfinished issues to the backlog

    Returns:
        Tuple of (sprint, number of issues carried over)

    Raises:
        SprintStateTransitionError: "Only active sprint can be completed"
        InvariantViolationError: "nextSprintId is invalid for this project"
    """
    sprint = _require_sprint(db, sprint_id)
    project, decision = _authorize_project(db, actor, sprint.project_id)
    validate_sprint_transition(sprint.status, models.SprintStatus.COMPLETED)

    next_sprint_id = data.next_sprint_id
    if next_sprint_id:
        next_sprint = crud.get_project_sprint(db, project.id, next_sprint_id)
        if (
            not next_sprint
            or next_sprint.id == sprint.id
            or is_terminal_status(next_sprint.status)
        ):
            raise InvariantViolationError("nextSprintId is invalid for this project")

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        sprint.status = models.SprintStatus.COMPLETED
        moved = _carry_over(db, sprint, next_sprint_id, actor)

    db.refresh(sprint)
    target = next_sprint_id or "backlog"
    logger.info(f"Project {project.key}: completed sprint '{sprint.name}', carried {len(moved)} issue(s) to {target}")
    return sprint, len(moved)


def delete_sprint(db: Session, actor: models.User, sprint_id: UUID) -> int:
    """
    Delete a sprint in any state, sending all of its issues to the backlog.

    Returns:
        Number of issues moved to the backlog

    Raises:
        NotFoundError: If the sprint does not exist
        PermissionDeniedError: If the actor may not contribute to the project
    """
    sprint = _require_sprint(db, sprint_id)
    project, decision = _authorize_project(db, actor, sprint.project_id)
    sprint_name = sprint.name

    with atomic(db):
        _materialize_membership(db, project, actor, decision)
        issues = (
            db.query(models.Issue)
            .filter(models.Issue.sprint_id == sprint.id)
            .with_for_update()
            .all()
        )
        for issue in issues:
            audit.record_event(
                db, issue.id, actor.id, models.ChangeType.UPDATED, "sprint_id",
                old_value=audit.stringify(sprint.id),
                new_value=None,
            )
            issue.sprint_id = None
        db.flush()
        db.delete(sprint)

    logger.info(f"Project {project.key}: deleted sprint '{sprint_name}', {len(issues)} issue(s) to backlog")
    return len(issues)
