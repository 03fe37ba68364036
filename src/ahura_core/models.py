"""SQLAlchemy database models."""
from datetime import datetime, timezone
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    Boolean,
    Index,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp used for audit columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# ============================================================================
# Enums
# ============================================================================


class GlobalRole(str, enum.Enum):
    """Platform-wide role supplied by the identity provider."""

    ADMIN = "admin"        # Bypasses every membership check
    MANAGER = "manager"    # May create workspaces
    MEMBER = "member"


class WorkspaceRole(str, enum.Enum):
    """Workspace member role enum."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class ProjectType(str, enum.Enum):
    """Project type enum."""

    SOFTWARE = "software"
    BUSINESS = "business"
    SERVICE_DESK = "service_desk"


class ProjectStatus(str, enum.Enum):
    """Project status enum."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    ON_HOLD = "on_hold"


class ProjectRole(str, enum.Enum):
    """Project member role enum."""

    LEAD = "lead"
    DEVELOPER = "developer"
    TESTER = "tester"
    VIEWER = "viewer"


class StatusCategory(str, enum.Enum):
    """Board column category. Sprint carry-over keys off DONE."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class IssueType(str, enum.Enum):
    """
    Issue type enum.

    Hierarchy: epic -> story -> task/bug -> subtask
    """

    EPIC = "epic"
    STORY = "story"
    TASK = "task"
    BUG = "bug"
    SUBTASK = "subtask"


class IssuePriority(str, enum.Enum):
    """Issue priority enum."""

    LOWEST = "lowest"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HIGHEST = "highest"


class SprintStatus(str, enum.Enum):
    """
    Sprint lifecycle status enum.

    Forward only: planning -> active -> completed
    """

    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


class ChangeType(str, enum.Enum):
    """Change type enum for issue history tracking."""

    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"
    ATTACHMENT_ADDED = "attachment_added"


class NotificationType(str, enum.Enum):
    """Notification record type (delivery happens elsewhere)."""

    ASSIGNED = "assigned"
    COMMENTED = "commented"
    MENTIONED = "mentioned"


# ============================================================================
# Tenancy: users, workspaces, projects
# ============================================================================


class User(Base):
    """
    User model.

    Users are provisioned by the identity provider. This service reads them
    to resolve permissions and never manages credentials.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255))
    global_role = Column(
        Enum(GlobalRole, values_callable=_enum_values, name="global_role"),
        nullable=False,
        default=GlobalRole.MEMBER,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def first_name(self) -> str:
        if self.full_name:
            return self.full_name.split()[0]
        return self.email.split("@")[0]

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.global_role.value})>"


class Workspace(Base):
    """
    Workspace model, the top-level tenant.

    Exactly one member holds the owner role and it matches owner_id.
    """

    __tablename__ = "workspaces"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True, index=True)
    description = Column(Text)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id])
    members = relationship("WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="workspace", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Workspace {self.slug}: {self.name}>"


class WorkspaceMember(Base):
    """Junction table linking users to workspaces with roles."""

    __tablename__ = "workspace_members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    workspace_id = Column(Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(WorkspaceRole, values_callable=_enum_values, name="workspace_role"),
        nullable=False,
        default=WorkspaceRole.MEMBER,
        index=True,
    )
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    workspace = relationship("Workspace", back_populates="members")
    user = relationship("User")

    # Constraints
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="unique_workspace_user"),
    )

    def __repr__(self) -> str:
        return f"<WorkspaceMember {self.role.value}>"


class Project(Base):
    """
    Project model, a key-scoped container of issues, statuses and sprints.

    When lead_id is set the lead also holds a ProjectMember row with role lead.
    """

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    workspace_id = Column(Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(10), nullable=False, unique=True, index=True)  # e.g. "AHU", immutable
    name = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(
        Enum(ProjectType, values_callable=_enum_values, name="project_type"),
        nullable=False,
        default=ProjectType.SOFTWARE,
    )
    status = Column(
        Enum(ProjectStatus, values_callable=_enum_values, name="project_status"),
        nullable=False,
        default=ProjectStatus.ACTIVE,
        index=True,
    )
    lead_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    start_date = Column(Date)
    target_end_date = Column(Date)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    workspace = relationship("Workspace", back_populates="projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    statuses = relationship(
        "IssueStatus",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="IssueStatus.position",
    )

    def __repr__(self) -> str:
        return f"<Project {self.key}: {self.name}>"


class ProjectMember(Base):
    """Junction table linking users to projects with roles."""

    __tablename__ = "project_members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(ProjectRole, values_callable=_enum_values, name="project_role"),
        nullable=False,
        default=ProjectRole.DEVELOPER,
        index=True,
    )
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    project = relationship("Project", back_populates="members")
    user = relationship("User")

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="unique_project_user"),
    )

    def __repr__(self) -> str:
        return f"<ProjectMember {self.role.value}>"


# ============================================================================
# Board: statuses, sprints, issues
# ============================================================================


class IssueStatus(Base):
    """
    Board column.

    Column positions are dense [0..N-1] per project. A project always keeps
    at least one column.
    """

    __tablename__ = "issue_statuses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    category = Column(
        Enum(StatusCategory, values_callable=_enum_values, name="status_category"),
        nullable=False,
        default=StatusCategory.TODO,
    )
    color = Column(String(7))
    wip_limit = Column(Integer)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    project = relationship("Project", back_populates="statuses")

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="unique_project_status_name"),
        CheckConstraint("position >= 0", name="status_position_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<IssueStatus {self.name} ({self.category.value}) @{self.position}>"


class Sprint(Base):
    """Time-boxed container of issues with a forward-only lifecycle."""

    __tablename__ = "sprints"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    goal = Column(Text)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        Enum(SprintStatus, values_callable=_enum_values, name="sprint_status"),
        nullable=False,
        default=SprintStatus.PLANNING,
        index=True,
    )

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="sprint_dates_ordered"),
    )

    def __repr__(self) -> str:
        return f"<Sprint {self.name} ({self.status.value})>"


class Issue(Base):
    """
    Issue model.

    parent_id and epic_id are plain self-referencing foreign keys. They are
    validated by querying the referenced rows inside the writing transaction
    (see hierarchy_validation), never through a cached object graph.

    Positions are dense [0..N-1] per (project_id, status_id) bucket and are
    not unique-constrained; bucket reindexing shifts many rows in one statement.
    """

    __tablename__ = "issues"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_number = Column(Integer, nullable=False)
    key = Column(String(32), nullable=False, unique=True, index=True)  # e.g. "AHU-42", immutable
    type = Column(
        Enum(IssueType, values_callable=_enum_values, name="issue_type"),
        nullable=False,
        index=True,
    )
    title = Column(String(300), nullable=False)
    description = Column(Text)
    status_id = Column(Uuid, ForeignKey("issue_statuses.id", ondelete="RESTRICT"), nullable=False, index=True)
    priority = Column(
        Enum(IssuePriority, values_callable=_enum_values, name="issue_priority"),
        nullable=False,
        default=IssuePriority.MEDIUM,
    )
    assignee_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    reporter_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    sprint_id = Column(Uuid, ForeignKey("sprints.id", ondelete="SET NULL"), index=True)
    parent_id = Column(Uuid, ForeignKey("issues.id", ondelete="SET NULL"), index=True)
    epic_id = Column(Uuid, ForeignKey("issues.id", ondelete="SET NULL"), index=True)
    story_points = Column(Integer)
    due_date = Column(Date)
    position = Column(Integer, nullable=False, default=0)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    status = relationship("IssueStatus")

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "issue_number", name="unique_project_issue_number"),
        CheckConstraint("position >= 0", name="issue_position_non_negative"),
        CheckConstraint(
            "story_points IS NULL OR (story_points >= 0 AND story_points <= 100)",
            name="valid_story_points",
        ),
        CheckConstraint("parent_id IS NULL OR parent_id != id", name="no_self_parent"),
        CheckConstraint("epic_id IS NULL OR epic_id != id", name="no_self_epic"),
        Index("ix_issues_bucket", "project_id", "status_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<Issue {self.key}: {self.title}>"


# ============================================================================
# Audit trail and side records
# ============================================================================


class IssueHistory(Base):
    """Append-only audit trail for issue changes."""

    __tablename__ = "issue_history"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    change_type = Column(
        Enum(ChangeType, values_callable=_enum_values, name="issue_change_type"),
        nullable=False,
    )

    # What changed
    field_name = Column(String(100), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<IssueHistory {self.change_type.value} {self.field_name}>"


class Notification(Base):
    """Notification record. Delivery (email/push) is handled elsewhere."""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    type = Column(
        Enum(NotificationType, values_callable=_enum_values, name="notification_type"),
        nullable=False,
    )
    message = Column(String(500), nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Notification {self.type.value} -> {self.user_id}>"


class IssueAttachment(Base):
    """Attachment metadata. File bytes live in object storage."""

    __tablename__ = "issue_attachments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    filename = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(150), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<IssueAttachment {self.filename}>"
