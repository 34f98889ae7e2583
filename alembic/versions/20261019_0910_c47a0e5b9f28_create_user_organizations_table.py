"""create_user_organizations_table

Revision ID: c47a0e5b9f28
Revises: 8b2e4d6f1a93
Create Date: 2026-10-19 09:10:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = 'c47a0e5b9f28'
down_revision: Union[str, None] = '8b2e4d6f1a93'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user_organizations membership table."""
    op.create_table(
        'user_organizations',
        sa.Column('id', UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', UUID(as_uuid=True), nullable=False),
        sa.Column('role_in_org', sa.Enum('SCHOOL_ADMIN', 'MARKETER', name='org_role'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_user_organizations'),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_user_organizations_user_org'),
    )

    op.create_foreign_key(
        'fk_user_organizations_user_id_users',
        'user_organizations', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'fk_user_organizations_organization_id_organizations',
        'user_organizations', 'organizations',
        ['organization_id'], ['id'],
        ondelete='RESTRICT'
    )

    op.create_index('ix_user_organizations_user_id', 'user_organizations', ['user_id'])
    op.create_index('ix_user_organizations_organization_id', 'user_organizations', ['organization_id'])


def downgrade() -> None:
    """Drop user_organizations table and role enum."""
    op.drop_index('ix_user_organizations_organization_id', table_name='user_organizations')
    op.drop_index('ix_user_organizations_user_id', table_name='user_organizations')
    op.drop_constraint('fk_user_organizations_organization_id_organizations', 'user_organizations', type_='foreignkey')
    op.drop_constraint('fk_user_organizations_user_id_users', 'user_organizations', type_='foreignkey')
    op.drop_table('user_organizations')
    sa.Enum(name='org_role').drop(op.get_bind(), checkfirst=True)
