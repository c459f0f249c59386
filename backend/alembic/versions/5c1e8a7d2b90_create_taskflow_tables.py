"""create_taskflow_tables

Revision ID: 5c1e8a7d2b90
Revises:
Create Date: 2026-10-18 10:12:41.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e8a7d2b90'
down_revision = None
branch_labels = None
depends_on = None

TASK_CATEGORIES = ('bug', 'feature', 'improvement', 'documentation', 'other')
TASK_PRIORITIES = ('low', 'medium', 'high')
TASK_STATUSES = ('todo', 'in_progress', 'completed', 'expired')
INVITATION_STATUSES = ('pending', 'accepted', 'expired')


def upgrade() -> None:
    existing_tables = set(sa.inspect(op.get_bind()).get_table_names())

    if 'organizations' not in existing_tables:
        op.create_table(
            'organizations',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('code', sa.String(length=32), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('theme', sa.String(length=20), nullable=False, server_default='light'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_organizations_id', 'organizations', ['id'], unique=False)
        op.create_index('ix_organizations_code', 'organizations', ['code'], unique=True)

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('hashed_password', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='member'),
            sa.Column('organization_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], name='fk_users_organization_id'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_id', 'users', ['id'], unique=False)
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_organization_id', 'users', ['organization_id'], unique=False)

    if 'tasks' not in existing_tables:
        op.create_table(
            'tasks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('category', sa.Enum(*TASK_CATEGORIES, name='task_category'), nullable=False),
            sa.Column('priority', sa.Enum(*TASK_PRIORITIES, name='task_priority'), nullable=False),
            sa.Column('status', sa.Enum(*TASK_STATUSES, name='task_status'), nullable=False),
            sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
            sa.Column('assigned_to', sa.Integer(), nullable=True),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('organization_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], name='fk_tasks_assigned_to'),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], name='fk_tasks_created_by'),
            sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], name='fk_tasks_organization_id'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_tasks_id', 'tasks', ['id'], unique=False)
        op.create_index('ix_tasks_status', 'tasks', ['status'], unique=False)
        op.create_index('ix_tasks_due_date', 'tasks', ['due_date'], unique=False)
        op.create_index('ix_tasks_assigned_to', 'tasks', ['assigned_to'], unique=False)
        op.create_index('ix_tasks_organization_id', 'tasks', ['organization_id'], unique=False)

    if 'organization_invitations' not in existing_tables:
        op.create_table(
            'organization_invitations',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('organization_id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('token', sa.String(length=128), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('status', sa.Enum(*INVITATION_STATUSES, name='invitation_status'), nullable=False),
            sa.Column('pending_email', sa.String(length=255), nullable=True),
            sa.Column('invited_by', sa.Integer(), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], name='fk_organization_invitations_organization_id'),
            sa.ForeignKeyConstraint(['invited_by'], ['users.id'], name='fk_organization_invitations_invited_by'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('organization_id', 'pending_email', name='uq_organization_invitations_pending')
        )
        op.create_index('ix_organization_invitations_id', 'organization_invitations', ['id'], unique=False)
        op.create_index('ix_organization_invitations_email', 'organization_invitations', ['email'], unique=False)
        op.create_index('ix_organization_invitations_organization_id', 'organization_invitations', ['organization_id'], unique=False)
        op.create_index('ix_organization_invitations_token', 'organization_invitations', ['token'], unique=True)
        op.create_index('ix_organization_invitations_expires_at', 'organization_invitations', ['expires_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_organization_invitations_expires_at', table_name='organization_invitations')
    op.drop_index('ix_organization_invitations_token', table_name='organization_invitations')
    op.drop_index('ix_organization_invitations_organization_id', table_name='organization_invitations')
    op.drop_index('ix_organization_invitations_email', table_name='organization_invitations')
    op.drop_index('ix_organization_invitations_id', table_name='organization_invitations')
    op.drop_table('organization_invitations')

    op.drop_index('ix_tasks_organization_id', table_name='tasks')
    op.drop_index('ix_tasks_assigned_to', table_name='tasks')
    op.drop_index('ix_tasks_due_date', table_name='tasks')
    op.drop_index('ix_tasks_status', table_name='tasks')
    op.drop_index('ix_tasks_id', table_name='tasks')
    op.drop_table('tasks')

    op.drop_index('ix_users_organization_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')

    op.drop_index('ix_organizations_code', table_name='organizations')
    op.drop_index('ix_organizations_id', table_name='organizations')
    op.drop_table('organizations')
