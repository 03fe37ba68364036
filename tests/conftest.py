"""Shared fixtures: an in-memory database and a seeded workspace/project."""
from datetime import date
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ahura_core import crud, models, mutations, schemas
from ahura_core.models import Base

_emails = count(1)


@pytest.fixture
def db():
    """Fresh in-memory SQLite session per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db):
    """Factory creating active users with a given global role."""

    def _make_user(full_name="Test User", global_role=models.GlobalRole.MEMBER, is_active=True):
        user = models.User(
            email=f"user{next(_emails)}@ahurasense.test",
            full_name=full_name,
            global_role=global_role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def owner(make_user):
    """Workspace owner; managers may create workspaces."""
    return make_user("Olivia Owner", models.GlobalRole.MANAGER)


@pytest.fixture
def workspace(db, owner):
    return mutations.create_workspace(
        db, owner, schemas.WorkspaceCreate(name="Ahurasense", slug="ahurasense")
    )


@pytest.fixture
def project(db, owner, workspace):
    """Project AHU led by the workspace owner, with the default columns."""
    return mutations.create_project(
        db, owner, workspace.id, schemas.ProjectCreate(key="AHU", name="Ahurasense Core")
    )


@pytest.fixture
def columns(db, project):
    """Board columns of the seeded project, left to right."""
    return crud.get_project_statuses(db, project.id)


@pytest.fixture
def add_member(db, owner, workspace, project, make_user):
    """Factory creating a user who belongs to the workspace and (optionally) the project."""

    def _add_member(
        full_name="Dana Developer",
        project_role=models.ProjectRole.DEVELOPER,
        workspace_role=models.WorkspaceRole.MEMBER,
    ):
        user = make_user(full_name)
        mutations.add_workspace_member(
            db, owner, workspace.id,
            schemas.WorkspaceMemberCreate(user_id=user.id, role=workspace_role),
        )
        if project_role is not None:
            mutations.add_project_member(
                db, owner, project.id,
                schemas.ProjectMemberCreate(user_id=user.id, role=project_role),
            )
        return user

    return _add_member


@pytest.fixture
def make_issue(db, owner, project, columns):
    """Factory creating issues as the project lead, in the first column by default."""

    def _make_issue(title="Sample issue", issue_type=models.IssueType.TASK, status=None, actor=None, **fields):
        data = schemas.IssueCreate(
            type=issue_type,
            title=title,
            status_id=(status or columns[0]).id,
            **fields,
        )
        return mutations.create_issue(db, actor or owner, project.id, data)

    return _make_issue


@pytest.fixture
def make_sprint(db, owner, project):
    """Factory creating planning sprints."""

    def _make_sprint(name="Sprint 1", actor=None):
        data = schemas.SprintCreate(
            name=name,
            start_date=date(2026, 1, 5),
            end_date=date(2026, 1, 19),
        )
        return mutations.create_sprint(db, actor or owner, project.id, data)

    return _make_sprint
