"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Annotated, Optional, List
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field, ConfigDict, model_validator

from .models import (
    GlobalRole,
    WorkspaceRole,
    ProjectType,
    ProjectStatus,
    ProjectRole,
    StatusCategory,
    IssueType,
    IssuePriority,
    SprintStatus,
    ChangeType,
    NotificationType,
)
from .storage import MAX_ATTACHMENT_BYTES

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def _reject_explicit_nulls(model: BaseModel, fields: tuple[str, ...]) -> BaseModel:
    """Partial updates may omit these fields but never set them to null."""
    for field in fields:
        if field in model.model_fields_set and getattr(model, field) is None:
            raise ValueError(f"{field} cannot be null")
    return model


# Workspace Schemas

class WorkspaceCreate(BaseModel):
    """Schema for creating a workspace. The creator becomes its owner."""

    name: str = Field(..., min_length=2, max_length=200)
    slug: str = Field(
        ...,
        min_length=2,
        max_length=200,
        pattern=r"^[a-z0-9-]+$",
        description="Lowercase letters, numbers and hyphens; immutable",
    )
    description: Optional[str] = Field(None, max_length=5000)


class WorkspaceResponse(BaseModel):
    """Schema for workspace response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


def _assignable_workspace_role(value: WorkspaceRole) -> WorkspaceRole:
    # Ownership is set when the workspace is created and never reassigned here
    if value == WorkspaceRole.OWNER:
        raise ValueError("role must be one of admin, member, viewer")
    return value


AssignableWorkspaceRole = Annotated[WorkspaceRole, AfterValidator(_assignable_workspace_role)]


class WorkspaceMemberCreate(BaseModel):
    """Schema for adding a workspace member."""

    user_id: UUID
    role: AssignableWorkspaceRole = WorkspaceRole.MEMBER


class WorkspaceMemberUpdate(BaseModel):
    """Schema for changing a workspace member's role."""

    role: AssignableWorkspaceRole


class WorkspaceMemberResponse(BaseModel):
    """Schema for workspace member response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    workspace_id: UUID
    user_id: UUID
    role: WorkspaceRole
    joined_at: datetime


# Project Schemas

class ProjectCreate(BaseModel):
    """Schema for creating a project inside a workspace."""

    key: str = Field(
        ...,
        min_length=2,
        max_length=10,
        pattern=r"^[A-Z][A-Z0-9]*$",
        description="Uppercase alphanumeric, starts with a letter; immutable",
    )
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    type: ProjectType = ProjectType.SOFTWARE
    lead_id: Optional[UUID] = None
    start_date: Optional[date] = None
    target_end_date: Optional[date] = None


class ProjectUpdate(BaseModel):
    """Schema for updating a project. The key is immutable."""

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    type: Optional[ProjectType] = None
    status: Optional[ProjectStatus] = None
    start_date: Optional[date] = None
    target_end_date: Optional[date] = None
    lead_id: Optional[UUID] = None

    @model_validator(mode="after")
    def non_nullable_fields(self):
        return _reject_explicit_nulls(self, ("name", "type", "status"))


class ProjectResponse(BaseModel):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    workspace_id: UUID
    key: str
    name: str
    description: Optional[str] = None
    type: ProjectType
    status: ProjectStatus
    lead_id: Optional[UUID] = None
    start_date: Optional[date] = None
    target_end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ProjectMemberCreate(BaseModel):
    """Schema for adding (or re-roling) a project member."""

    user_id: UUID
    role: ProjectRole = ProjectRole.DEVELOPER


class ProjectMemberUpdate(BaseModel):
    """Schema for changing a project member's role."""

    role: ProjectRole


class ProjectMemberResponse(BaseModel):
    """Schema for project member response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    role: ProjectRole
    joined_at: datetime


# Board Schemas

class StatusCreate(BaseModel):
    """Schema for adding a board column. It is appended to the right."""

    name: str = Field(..., min_length=2, max_length=50)
    category: StatusCategory
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    wip_limit: Optional[int] = Field(None, ge=1)


class StatusReorderItem(BaseModel):
    """One column in a reorder request. Optional fields are edited in place."""

    id: UUID
    position: int = Field(..., ge=0)
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    category: Optional[StatusCategory] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)


class StatusReorder(BaseModel):
    """Schema for reordering board columns."""

    statuses: List[StatusReorderItem] = Field(..., min_length=1)


class StatusResponse(BaseModel):
    """Schema for board column response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    project_id: UUID
    name: str
    category: StatusCategory
    color: Optional[str] = None
    wip_limit: Optional[int] = None
    position: int


# Issue Schemas

class IssueCreate(BaseModel):
    """Schema for creating an issue. Number, key and position are allocated."""

    type: IssueType
    title: str = Field(..., min_length=3, max_length=300)
    description: Optional[str] = Field(None, max_length=20000)
    status_id: UUID
    priority: IssuePriority = IssuePriority.MEDIUM
    assignee_id: Optional[UUID] = None
    sprint_id: Optional[UUID] = None
    story_points: Optional[int] = Field(None, ge=0, le=100)
    due_date: Optional[date] = None
    parent_id: Optional[UUID] = None
    epic_id: Optional[UUID] = None


class IssueUpdate(BaseModel):
    """
    Schema for a partial issue update.

    Only fields present in the request are applied; send null to clear
    nullable fields.
    """

    title: Optional[str] = Field(None, min_length=3, max_length=300)
    description: Optional[str] = Field(None, max_length=20000)
    type: Optional[IssueType] = None
    status_id: Optional[UUID] = None
    priority: Optional[IssuePriority] = None
    assignee_id: Optional[UUID] = None
    sprint_id: Optional[UUID] = None
    story_points: Optional[int] = Field(None, ge=0, le=100)
    due_date: Optional[date] = None
    parent_id: Optional[UUID] = None
    epic_id: Optional[UUID] = None

    @model_validator(mode="after")
    def non_nullable_fields(self):
        return _reject_explicit_nulls(self, ("title", "type", "status_id", "priority"))


class IssueMove(BaseModel):
    """Schema for a drag-and-drop move on the board."""

    status_id: Optional[UUID] = None
    sprint_id: Optional[UUID] = Field(None, description="Omit to keep, null for backlog")
    position: int = Field(..., ge=0)


class IssueResponse(BaseModel):
    """Schema for issue response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    project_id: UUID
    issue_number: int
    key: str
    type: IssueType
    title: str
    description: Optional[str] = None
    status_id: UUID
    priority: IssuePriority
    assignee_id: Optional[UUID] = None
    reporter_id: Optional[UUID] = None
    sprint_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    epic_id: Optional[UUID] = None
    story_points: Optional[int] = None
    due_date: Optional[date] = None
    position: int
    created_at: datetime
    updated_at: datetime


class IssueHistoryResponse(BaseModel):
    """Schema for issue history response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    issue_id: UUID
    user_id: Optional[UUID] = None
    change_type: ChangeType
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime


class AttachmentCreate(BaseModel):
    """Schema for registering an uploaded object as an issue attachment."""

    key: str = Field(..., min_length=3, max_length=1024, description="Object storage key")
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., gt=0, le=MAX_ATTACHMENT_BYTES)
    mime_type: str = Field(..., min_length=1, max_length=100)


class AttachmentResponse(BaseModel):
    """Schema for attachment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    issue_id: UUID
    user_id: Optional[UUID] = None
    filename: str
    file_url: str
    file_size: int
    mime_type: str
    created_at: datetime


class BoardColumn(StatusResponse):
    """A board column with its issues in position order."""

    issues: List[IssueResponse] = Field(default_factory=list)


class BoardResponse(BaseModel):
    """Full board for one project."""

    project_id: UUID
    columns: List[BoardColumn]


# Sprint Schemas

class SprintCreate(BaseModel):
    """Schema for creating a sprint. New sprints start in planning."""

    name: str = Field(..., min_length=2, max_length=200)
    goal: Optional[str] = Field(None, max_length=5000)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class SprintUpdate(BaseModel):
    """Schema for updating a sprint. Status changes go through the lifecycle rules."""

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    goal: Optional[str] = Field(None, max_length=5000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[SprintStatus] = None

    @model_validator(mode="after")
    def non_nullable_fields(self):
        return _reject_explicit_nulls(self, ("name", "start_date", "end_date", "status"))


class SprintComplete(BaseModel):
    """Schema for completing a sprint. Omit or null moves unfinished work to backlog."""

    next_sprint_id: Optional[UUID] = None


class SprintResponse(BaseModel):
    """Schema for sprint response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    project_id: UUID
    name: str
    goal: Optional[str] = None
    start_date: date
    end_date: date
    status: SprintStatus
    created_at: datetime
    updated_at: datetime


class SprintCompleteResponse(BaseModel):
    """Result of completing a sprint."""

    sprint: SprintResponse
    carried_over: int = Field(..., description="Unfinished issues moved to the next sprint or backlog")


class SprintDeleteResponse(BaseModel):
    """Result of deleting a sprint."""

    deleted: bool = True
    moved_to_backlog: int


# User Schemas

class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    email: str
    full_name: Optional[str] = None
    global_role: GlobalRole
    is_active: bool


class NotificationResponse(BaseModel):
    """Schema for notification record response."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    issue_id: Optional[UUID] = None
    type: NotificationType
    message: str
    is_read: bool
    created_at: datetime
