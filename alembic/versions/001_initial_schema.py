"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-07-01 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'registrants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('mobile', sa.String(length=30), nullable=True),
        sa.Column('company', sa.String(length=200), nullable=True),
        sa.Column('designation', sa.String(length=200), nullable=True),
        sa.Column('ticket_category', sa.String(length=100), nullable=True),
        sa.Column('ticket_code', sa.String(length=32), nullable=True),
        sa.Column('tx_id', sa.String(length=200), nullable=True),
        sa.Column('payment_proof_url', sa.String(length=500), nullable=True),
        sa.Column('ticket_price', sa.Integer(), nullable=True),
        sa.Column('ticket_gst', sa.Integer(), nullable=True),
        sa.Column('ticket_total', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('added_by_admin', sa.Boolean(), nullable=False),
        sa.Column('admin_created_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(length=200), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=200), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('extra', sa.JSON(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_registrants_role', 'registrants', ['role'])
    op.create_index('ix_registrants_email', 'registrants', ['email'])
    op.create_index('ix_registrants_ticket_code', 'registrants', ['ticket_code'], unique=True)

    op.create_table(
        'registration_configs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('page', sa.String(length=50), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('page')
    )

    op.create_table(
        'admin_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key')
    )

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('discount', sa.Integer(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False),
        sa.Column('used_by', sa.String(length=200), nullable=True),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)

    op.create_table(
        'coupon_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=True),
        sa.Column('code', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('actor', sa.String(length=200), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_coupon_logs_coupon_id', 'coupon_logs', ['coupon_id'])

    op.create_table(
        'payment_orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reference_id', sa.String(length=200), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('provider', sa.String(length=30), nullable=False),
        sa.Column('provider_order_id', sa.String(length=200), nullable=True),
        sa.Column('provider_payment_id', sa.String(length=200), nullable=True),
        sa.Column('checkout_url', sa.String(length=1000), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payment_orders_reference_id', 'payment_orders', ['reference_id'])
    op.create_index('ix_payment_orders_provider_order_id', 'payment_orders', ['provider_order_id'])

    op.create_table(
        'mail_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('to', sa.String(length=1000), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attachments_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'uploads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('filename', sa.String(length=300), nullable=False),
        sa.Column('original_name', sa.String(length=300), nullable=True),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('filename')
    )


def downgrade() -> None:
    op.drop_table('uploads')
    op.drop_table('mail_logs')
    op.drop_index('ix_payment_orders_provider_order_id', table_name='payment_orders')
    op.drop_index('ix_payment_orders_reference_id', table_name='payment_orders')
    op.drop_table('payment_orders')
    op.drop_index('ix_coupon_logs_coupon_id', table_name='coupon_logs')
    op.drop_table('coupon_logs')
    op.drop_index('ix_coupons_code', table_name='coupons')
    op.drop_table('coupons')
    op.drop_table('admin_settings')
    op.drop_table('registration_configs')
    op.drop_index('ix_registrants_ticket_code', table_name='registrants')
    op.drop_index('ix_registrants_email', table_name='registrants')
    op.drop_index('ix_registrants_role', table_name='registrants')
    op.drop_table('registrants')
