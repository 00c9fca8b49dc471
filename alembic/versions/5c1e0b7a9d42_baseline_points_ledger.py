"""baseline_points_ledger

Revision ID: 5c1e0b7a9d42
Revises: 
Create Date: 2026-10-18 10:12:41.118204

Production-safe migration: Only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c1e0b7a9d42'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # Create user_subscriptions table
    if not table_exists('user_subscriptions'):
        op.create_table('user_subscriptions',
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('stripe_customer_id', sa.String(), nullable=False),
            sa.Column('stripe_subscription_id', sa.String(), nullable=False),
            sa.Column('stripe_price_id', sa.String(), nullable=False),
            sa.Column('stripe_current_period_end', sa.DateTime(), nullable=True),
            sa.Column('stripe_cancel_at_period_end', sa.Boolean(), nullable=False),
            sa.Column('points_balance', sa.Integer(), nullable=False),
            sa.Column('points_allowance', sa.Integer(), nullable=False),
            sa.Column('starter_points_granted_at', sa.DateTime(), nullable=True),
            sa.Column('voice_interviews_used', sa.Integer(), nullable=False),
            sa.Column('voice_interviews_reset_date', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('user_id')
        )
        op.create_index(op.f('ix_user_subscriptions_stripe_customer_id'), 'user_subscriptions', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_user_subscriptions_stripe_subscription_id'), 'user_subscriptions', ['stripe_subscription_id'], unique=False)

    # Create points_transactions table
    if not table_exists('points_transactions'):
        op.create_table('points_transactions',
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('delta', sa.Integer(), nullable=False),
            sa.Column('reason', sa.String(), nullable=False),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_points_transactions_user_id'), 'points_transactions', ['user_id'], unique=False)
        op.create_index('idx_points_tx_user_reason_created', 'points_transactions', ['user_id', 'reason', 'created_at'], unique=False)

    # Create billing_customers table
    if not table_exists('billing_customers'):
        op.create_table('billing_customers',
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('stripe_customer_id', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('user_id')
        )
        op.create_index(op.f('ix_billing_customers_stripe_customer_id'), 'billing_customers', ['stripe_customer_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_billing_customers_stripe_customer_id'), table_name='billing_customers')
    op.drop_table('billing_customers')
    op.drop_index('idx_points_tx_user_reason_created', table_name='points_transactions')
    op.drop_index(op.f('ix_points_transactions_user_id'), table_name='points_transactions')
    op.drop_table('points_transactions')
    op.drop_index(op.f('ix_user_subscriptions_stripe_subscription_id'), table_name='user_subscriptions')
    op.drop_index(op.f('ix_user_subscriptions_stripe_customer_id'), table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
