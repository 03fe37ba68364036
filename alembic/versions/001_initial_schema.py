"""Initial schema: tenancy, board, issues and audit trail.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


global_role = sa.Enum('admin', 'manager', 'member', name='global_role')
workspace_role = sa.Enum('owner', 'admin', 'member', 'viewer', name='workspace_role')
project_type = sa.Enum('software', 'business', 'service_desk', name='project_type')
project_status = sa.Enum('active', 'archived', 'on_hold', name='project_status')
project_role = sa.Enum('lead', 'developer', 'tester', 'viewer', name='project_role')
status_category = sa.Enum('todo', 'in_progress', 'done', name='status_category')
issue_type = sa.Enum('epic', 'story', 'task', 'bug', 'subtask', name='issue_type')
issue_priority = sa.Enum('highest', 'high', 'medium', 'low', 'lowest', name='issue_priority')
sprint_status = sa.Enum('planning', 'active', 'completed', name='sprint_status')
issue_change_type = sa.Enum('created', 'updated', 'moved', 'attachment_added', name='issue_change_type')
notification_type = sa.Enum('assigned', 'commented', 'mentioned', name='notification_type')


def upgrade() -> None:
    # Users (provisioned by the identity provider)
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('global_role', global_role, nullable=False, server_default='member'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_global_role', 'users', ['global_role'])

    # Workspaces
    op.create_table(
        'workspaces',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('owner_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_workspaces_slug', 'workspaces', ['slug'], unique=True)
    op.create_index('ix_workspaces_owner_id', 'workspaces', ['owner_id'])
    op.create_index('ix_workspaces_created_at', 'workspaces', ['created_at'])

    op.create_table(
        'workspace_members',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', workspace_role, nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('workspace_id', 'user_id', name='unique_workspace_user'),
    )
    op.create_index('ix_workspace_members_workspace_id', 'workspace_members', ['workspace_id'])
    op.create_index('ix_workspace_members_user_id', 'workspace_members', ['user_id'])
    op.create_index('ix_workspace_members_role', 'workspace_members', ['role'])

    # Projects
    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('key', sa.String(10), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('type', project_type, nullable=False, server_default='software'),
        sa.Column('status', project_status, nullable=False, server_default='active'),
        sa.Column('lead_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('start_date', sa.Date),
        sa.Column('target_end_date', sa.Date),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_projects_key', 'projects', ['key'], unique=True)
    op.create_index('ix_projects_workspace_id', 'projects', ['workspace_id'])
    op.create_index('ix_projects_status', 'projects', ['status'])
    op.create_index('ix_projects_lead_id', 'projects', ['lead_id'])
    op.create_index('ix_projects_created_at', 'projects', ['created_at'])

    op.create_table(
        'project_members',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', project_role, nullable=False, server_default='developer'),
        sa.Column('joined_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'user_id', name='unique_project_user'),
    )
    op.create_index('ix_project_members_project_id', 'project_members', ['project_id'])
    op.create_index('ix_project_members_user_id', 'project_members', ['user_id'])
    op.create_index('ix_project_members_role', 'project_members', ['role'])

    # Board columns
    op.create_table(
        'issue_statuses',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('category', status_category, nullable=False, server_default='todo'),
        sa.Column('color', sa.String(7)),
        sa.Column('wip_limit', sa.Integer),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'name', name='unique_project_status_name'),
        sa.CheckConstraint('position >= 0', name='status_position_non_negative'),
    )
    op.create_index('ix_issue_statuses_project_id', 'issue_statuses', ['project_id'])

    # Sprints
    op.create_table(
        'sprints',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('goal', sa.Text),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('status', sprint_status, nullable=False, server_default='planning'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('start_date < end_date', name='sprint_dates_ordered'),
    )
    op.create_index('ix_sprints_project_id', 'sprints', ['project_id'])
    op.create_index('ix_sprints_status', 'sprints', ['status'])

    # Issues
    op.create_table(
        'issues',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('issue_number', sa.Integer, nullable=False),
        sa.Column('key', sa.String(32), nullable=False),
        sa.Column('type', issue_type, nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('status_id', sa.Uuid, sa.ForeignKey('issue_statuses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('priority', issue_priority, nullable=False, server_default='medium'),
        sa.Column('assignee_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('reporter_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('sprint_id', sa.Uuid, sa.ForeignKey('sprints.id', ondelete='SET NULL')),
        sa.Column('parent_id', sa.Uuid, sa.ForeignKey('issues.id', ondelete='SET NULL')),
        sa.Column('epic_id', sa.Uuid, sa.ForeignKey('issues.id', ondelete='SET NULL')),
        sa.Column('story_points', sa.Integer),
        sa.Column('due_date', sa.Date),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'issue_number', name='unique_project_issue_number'),
        sa.CheckConstraint('position >= 0', name='issue_position_non_negative'),
        sa.CheckConstraint(
            'story_points IS NULL OR (story_points >= 0 AND story_points <= 100)',
            name='valid_story_points'
        ),
        sa.CheckConstraint('parent_id IS NULL OR parent_id != id', name='no_self_parent'),
        sa.CheckConstraint('epic_id IS NULL OR epic_id != id', name='no_self_epic'),
    )
    op.create_index('ix_issues_key', 'issues', ['key'], unique=True)
    op.create_index('ix_issues_project_id', 'issues', ['project_id'])
    op.create_index('ix_issues_type', 'issues', ['type'])
    op.create_index('ix_issues_status_id', 'issues', ['status_id'])
    op.create_index('ix_issues_assignee_id', 'issues', ['assignee_id'])
    op.create_index('ix_issues_reporter_id', 'issues', ['reporter_id'])
    op.create_index('ix_issues_sprint_id', 'issues', ['sprint_id'])
    op.create_index('ix_issues_parent_id', 'issues', ['parent_id'])
    op.create_index('ix_issues_epic_id', 'issues', ['epic_id'])
    op.create_index('ix_issues_created_at', 'issues', ['created_at'])
    op.create_index('ix_issues_bucket', 'issues', ['project_id', 'status_id', 'position'])

    # Audit trail
    op.create_table(
        'issue_history',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('issue_id', sa.Uuid, sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('change_type', issue_change_type, nullable=False),
        sa.Column('field_name', sa.String(100), nullable=False),
        sa.Column('old_value', sa.Text),
        sa.Column('new_value', sa.Text),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_issue_history_issue_id', 'issue_history', ['issue_id'])
    op.create_index('ix_issue_history_user_id', 'issue_history', ['user_id'])
    op.create_index('ix_issue_history_created_at', 'issue_history', ['created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('issue_id', sa.Uuid, sa.ForeignKey('issues.id', ondelete='CASCADE')),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('message', sa.String(500), nullable=False),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_issue_id', 'notifications', ['issue_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'issue_attachments',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('issue_id', sa.Uuid, sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('file_url', sa.String(1000), nullable=False),
        sa.Column('file_size', sa.Integer, nullable=False),
        sa.Column('mime_type', sa.String(150), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_issue_attachments_issue_id', 'issue_attachments', ['issue_id'])
    op.create_index('ix_issue_attachments_user_id', 'issue_attachments', ['user_id'])


def downgrade() -> None:
    op.drop_table('issue_attachments')
    op.drop_table('notifications')
    op.drop_table('issue_history')
    op.drop_table('issues')
    op.drop_table('sprints')
    op.drop_table('issue_statuses')
    op.drop_table('project_members')
    op.drop_table('projects')
    op.drop_table('workspace_members')
    op.drop_table('workspaces')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        notification_type, issue_change_type, sprint_status, issue_priority, issue_type,
        status_category, project_role, project_status, project_type, workspace_role, global_role,
    ):
        enum_type.drop(bind, checkfirst=True)
