"""create_organizations_table

Revision ID: 3f1a9c2b7d10
Revises: 
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create organizations table (schools and departments)."""
    op.create_table(
        'organizations',
        sa.Column('id', UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('kind', sa.Enum('SCHOOL', 'DEPARTMENT', name='org_kind'), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_organizations'),
        sa.ForeignKeyConstraint(
            ['parent_id'], ['organizations.id'],
            name='fk_organizations_parent_id_organizations',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint(
            "(kind = 'SCHOOL' AND parent_id IS NULL) "
            "OR (kind = 'DEPARTMENT' AND parent_id IS NOT NULL)",
            name='ck_organizations_kind_matches_parent',
        ),
    )

    op.create_index('ix_organizations_kind', 'organizations', ['kind'])
    op.create_index('ix_organizations_parent_id', 'organizations', ['parent_id'])


def downgrade() -> None:
    """Drop organizations table and kind enum."""
    op.drop_index('ix_organizations_parent_id', table_name='organizations')
    op.drop_index('ix_organizations_kind', table_name='organizations')
    op.drop_table('organizations')
    sa.Enum(name='org_kind').drop(op.get_bind(), checkfirst=True)
