"""initial schema

Revision ID: 2026_10_19_0000
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '2026_10_19_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create accounts, purchases and the delivery audit tables."""

    # ========================================================================
    # Create customer table
    # ========================================================================
    op.create_table(
        'customer',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('refresh_token_hash', sa.String(64), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('otp_hash', sa.String(64), nullable=True),
        sa.Column('otp_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('email = lower(email)', name='ck_customer_email_lowercase'),
    )
    op.create_index('idx_customer_refresh_token_hash', 'customer', ['refresh_token_hash'])

    # ========================================================================
    # Create staff table
    # ========================================================================
    op.create_table(
        'staff',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='admin'),
        sa.Column('whatsapp_number', sa.String(32), nullable=True),
        sa.Column('refresh_token_hash', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint("role IN ('admin', 'driver')", name='ck_staff_role'),
    )

    # ========================================================================
    # Create purchase table
    # ========================================================================
    op.create_table(
        'purchase',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('customer_id', sa.BigInteger(), sa.ForeignKey('customer.id'), nullable=True),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='unpaid'),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='cod'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_txn_id', sa.String(255), nullable=True),
        sa.Column('current_status', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_purchase_customer_id', 'purchase', ['customer_id'])

    # ========================================================================
    # Create payment_event table (append-only)
    # ========================================================================
    op.create_table(
        'payment_event',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('purchase_id', sa.BigInteger(), sa.ForeignKey('purchase.id'), nullable=False),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('event_status', sa.String(50), nullable=True),
        sa.Column('payment_method', sa.String(20), nullable=True),
        sa.Column('txn_id', sa.String(255), nullable=True),
        sa.Column('metadata', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint(
            "event_type IN ('delivery_attempt', 'delivery_failed', 'delivery_success', "
            "'cod_collected', 'cod_partial', 'delivery_note')",
            name='ck_payment_event_type',
        ),
    )
    op.create_index('ix_payment_event_purchase_id', 'payment_event', ['purchase_id'])
    op.create_index('idx_payment_event_created_at', 'payment_event', ['created_at'])
    op.create_index('idx_payment_event_txn_id', 'payment_event', ['txn_id'], postgresql_where=sa.text('txn_id IS NOT NULL'))

    # ========================================================================
    # Create order_status_history table (append-only)
    # ========================================================================
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('order_id', sa.BigInteger(), sa.ForeignKey('purchase.id'), nullable=False),
        sa.Column('changed_by', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('order_status_history')
    op.drop_table('payment_event')
    op.drop_table('purchase')
    op.drop_table('staff')
    op.drop_table('customer')
