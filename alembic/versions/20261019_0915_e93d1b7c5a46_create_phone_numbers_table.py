"""create_phone_numbers_table

Revision ID: e93d1b7c5a46
Revises: c47a0e5b9f28
Create Date: 2026-10-19 09:15:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = 'e93d1b7c5a46'
down_revision: Union[str, None] = 'c47a0e5b9f28'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create phone_numbers table with reservation, payment and delivery enums."""
    op.create_table(
        'phone_numbers',
        sa.Column('id', UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('number_value', sa.String(length=20), nullable=False),
        sa.Column('is_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('premium_reason', sa.String(length=100), nullable=True),
        sa.Column(
            'reservation_status',
            sa.Enum('UNRESERVED', 'PENDING_REVIEW', 'RESERVED', name='reservation_state'),
            nullable=False,
            server_default='UNRESERVED',
        ),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_amount', sa.Float(), nullable=True),
        sa.Column(
            'payment_method',
            sa.Enum('CASH', 'ALIPAY', 'WECHAT', 'BANK_TRANSFER', 'OTHER', name='payment_method'),
            nullable=True,
        ),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('customer_name', sa.String(length=100), nullable=True),
        sa.Column('customer_contact', sa.String(length=100), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=True),
        sa.Column('assigned_marketer', sa.String(length=100), nullable=True),
        sa.Column('ems_tracking_number', sa.String(length=100), nullable=True),
        sa.Column(
            'delivery_status',
            sa.Enum(
                'EMPTY', 'IN_TRANSIT_UNACTIVATED', 'IN_TRANSIT_ACTIVATED', 'RECEIVED_UNACTIVATED',
                name='delivery_status',
            ),
            nullable=True,
        ),
        sa.Column('school_id', UUID(as_uuid=True), nullable=True),
        sa.Column('department_id', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_phone_numbers'),
    )

    op.create_foreign_key(
        'fk_phone_numbers_school_id_organizations',
        'phone_numbers', 'organizations',
        ['school_id'], ['id'],
        ondelete='SET NULL'
    )
    op.create_foreign_key(
        'fk_phone_numbers_department_id_organizations',
        'phone_numbers', 'organizations',
        ['department_id'], ['id'],
        ondelete='SET NULL'
    )

    op.create_index('ix_phone_numbers_number_value', 'phone_numbers', ['number_value'], unique=True)
    op.create_index('ix_phone_numbers_reservation_status', 'phone_numbers', ['reservation_status'])
    op.create_index('ix_phone_numbers_school_id', 'phone_numbers', ['school_id'])
    op.create_index('ix_phone_numbers_department_id', 'phone_numbers', ['department_id'])
    # Sweep scans pending claims by age
    op.create_index(
        'ix_phone_numbers_pending_claimed_at',
        'phone_numbers',
        ['claimed_at'],
        postgresql_where=sa.text("reservation_status = 'PENDING_REVIEW'"),
    )


def downgrade() -> None:
    """Drop phone_numbers table and its enums."""
    op.drop_index('ix_phone_numbers_pending_claimed_at', table_name='phone_numbers')
    op.drop_index('ix_phone_numbers_department_id', table_name='phone_numbers')
    op.drop_index('ix_phone_numbers_school_id', table_name='phone_numbers')
    op.drop_index('ix_phone_numbers_reservation_status', table_name='phone_numbers')
    op.drop_index('ix_phone_numbers_number_value', table_name='phone_numbers')
    op.drop_constraint('fk_phone_numbers_department_id_organizations', 'phone_numbers', type_='foreignkey')
    op.drop_constraint('fk_phone_numbers_school_id_organizations', 'phone_numbers', type_='foreignkey')
    op.drop_table('phone_numbers')
    for enum_name in ('delivery_status', 'payment_method', 'reservation_state'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
