"""create_sharing_tables

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-18 10:12:44.201937

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


entity_type = postgresql.ENUM('note', 'folder', name='entity_type', create_type=False)
access_level = postgresql.ENUM('view', 'edit', name='access_level', create_type=False)
invitation_status = postgresql.ENUM('pending', 'accepted', 'declined', name='invitation_status', create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    entity_type.create(bind, checkfirst=True)
    access_level.create(bind, checkfirst=True)
    invitation_status.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'folders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('folders.id', ondelete='CASCADE'), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('public_share_token', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_folders_id', 'folders', ['id'])
    op.create_index('ix_folders_parent_id', 'folders', ['parent_id'])
    op.create_index('ix_folders_public_share_token', 'folders', ['public_share_token'], unique=True)

    op.create_table(
        'notes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('content_markdown', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('folder_id', sa.Integer(), sa.ForeignKey('folders.id', ondelete='CASCADE'), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('public_share_token', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notes_id', 'notes', ['id'])
    op.create_index('ix_notes_folder_id', 'notes', ['folder_id'])
    op.create_index('ix_notes_public_share_token', 'notes', ['public_share_token'], unique=True)

    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('entity_type', entity_type, nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('access_level', access_level, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'entity_type', 'entity_id', name='uq_permission_user_entity'),
    )
    op.create_index('ix_permissions_id', 'permissions', ['id'])
    op.create_index('ix_permissions_entity_id', 'permissions', ['entity_id'])

    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('inviter_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invitee_email', sa.String(length=255), nullable=False),
        sa.Column('entity_type', entity_type, nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('access_level', access_level, nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False, unique=True),
        sa.Column('status', invitation_status, nullable=False, server_default='pending'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_invitations_id', 'invitations', ['id'])
    op.create_index('ix_invitations_invitee_email', 'invitations', ['invitee_email'])
    op.create_index(
        'ix_invitation_entity_invitee', 'invitations', ['entity_type', 'entity_id', 'invitee_email']
    )
    op.create_index(
        'uq_invitation_pending_entity_invitee',
        'invitations',
        ['entity_type', 'entity_id', 'invitee_email'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table('invitations')
    op.drop_table('permissions')
    op.drop_table('notes')
    op.drop_table('folders')
    op.drop_table('users')
    invitation_status.drop(op.get_bind(), checkfirst=True)
    access_level.drop(op.get_bind(), checkfirst=True)
    entity_type.drop(op.get_bind(), checkfirst=True)
