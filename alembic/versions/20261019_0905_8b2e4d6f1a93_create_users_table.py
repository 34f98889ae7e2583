"""create_users_table

Revision ID: 8b2e4d6f1a93
Revises: 3f1a9c2b7d10
Create Date: 2026-10-19 09:05:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = '8b2e4d6f1a93'
down_revision: Union[str, None] = '3f1a9c2b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users table with global role enum."""
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column(
            'global_role',
            sa.Enum('SUPER_ADMIN', 'SCHOOL_ADMIN', 'MARKETER', name='global_role'),
            nullable=False,
            server_default='MARKETER',
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    op.create_index('ix_users_username', 'users', ['username'], unique=True)


def downgrade() -> None:
    """Drop users table and role enum."""
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
    sa.Enum(name='global_role').drop(op.get_bind(), checkfirst=True)
