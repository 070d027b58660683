"""create auth session tables

Revision ID: 3a9c41d2e7b0
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql


# revision identifiers, used by Alembic.
revision: str = '3a9c41d2e7b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp() -> sa.types.TypeEngine:
    return sa.DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=6), 'mysql')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('roles', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', _timestamp(), nullable=False),
        sa.Column('updated_at', _timestamp(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_is_blocked', 'users', ['is_blocked'])

    for table in ('access_tokens', 'refresh_tokens'):
        columns = [
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('token', sa.String(length=1024), nullable=False),
            sa.Column('expires_at', _timestamp(), nullable=False),
            sa.Column('created_at', _timestamp(), nullable=False),
        ]
        if table == 'refresh_tokens':
            columns.append(sa.Column('ip_address', sa.String(length=64), nullable=True))
            columns.append(sa.Column('user_agent', sa.String(length=512), nullable=True))
        op.create_table(table, *columns, sa.UniqueConstraint('token', name=f'uq_{table}_token'))
        op.create_index(f'ix_{table}_user_id', table, ['user_id'], unique=True)

    op.create_table(
        'user_blocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('blocked_at', _timestamp(), nullable=False),
        sa.Column('block_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('unblock_at', _timestamp(), nullable=False),
    )
    op.create_index('ix_user_blocks_user_id', 'user_blocks', ['user_id'])
    op.create_index('ix_user_blocks_is_active', 'user_blocks', ['is_active'])
    op.create_index('ix_user_blocks_unblock_at', 'user_blocks', ['unblock_at'])

    op.create_table(
        'user_unblocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', _timestamp(), nullable=False),
    )
    op.create_index('ix_user_unblocks_user_id', 'user_unblocks', ['user_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('user_unblocks')
    op.drop_table('user_blocks')
    op.drop_table('refresh_tokens')
    op.drop_table('access_tokens')
    op.drop_table('users')
