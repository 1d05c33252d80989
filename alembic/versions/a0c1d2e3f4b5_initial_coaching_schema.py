"""initial coaching schema

Revision ID: a0c1d2e3f4b5
Revises:
Create Date: 2026-10-18 09:12:44.513207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a0c1d2e3f4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy stores enum names (uppercase) in PostgreSQL
user_role = sa.Enum('ADMIN', 'COACH', 'USER', name='userrole')
user_status = sa.Enum('ACTIVE', 'BANNED', 'DISABLED', name='userstatus')
coach_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'COMPLETELY_REJECTED', 'BANNED', name='coachstatus')
subscription_status = sa.Enum('ACTIVE', 'PENDING', 'EXPIRED', 'CANCELLED', name='subscriptionstatus')
payment_type = sa.Enum('SUBSCRIPTION', 'RENEWAL', 'UPGRADE', 'DOWNGRADE', name='paymenttype')
pending_payment_status = sa.Enum('WAITING', 'CONFIRMING', 'COMPLETED', 'FAILED', name='pendingpaymentstatus')
wallet_owner_type = sa.Enum('SYSTEM', 'COACH', 'USER', name='walletownertype')
wallet_status = sa.Enum('ACTIVE', 'FROZEN', name='walletstatus')
transaction_type = sa.Enum('CREDIT', 'DEBIT', name='transactiontype')


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        *_timestamps('created_at'),
        sa.Column('assigned_coach_id', sa.Integer(), nullable=True),
        sa.Column('assigned_coach_name', sa.String(length=255), nullable=True),
        sa.Column('coach_commission_override', sa.Numeric(5, 2), nullable=True),
        sa.Column('ban_reason', sa.Text(), nullable=True),
        sa.Column('banned_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_assigned_coach_id', 'users', ['assigned_coach_id'])

    op.create_table(
        'coaches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True, unique=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('wallet_address', sa.String(length=255), nullable=True),
        sa.Column('status', coach_status, nullable=False),
        sa.Column('default_commission_percentage', sa.Numeric(5, 2), nullable=False, server_default='30'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('rejected_fields', sa.JSON(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ban_reason', sa.Text(), nullable=True),
        sa.Column('banned_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps('created_at'),
    )
    op.create_index('ix_coaches_id', 'coaches', ['id'])
    op.create_index('ix_coaches_email', 'coaches', ['email'])

    op.create_table(
        'strategies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('number', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('cover_photo_url', sa.String(length=1024), nullable=True),
        sa.Column('expected_weeks', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at'),
    )
    op.create_index('ix_strategies_id', 'strategies', ['id'])

    op.create_table(
        'strategy_videos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('strategy_id', sa.Integer(), sa.ForeignKey('strategies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('video_url', sa.String(length=1024), nullable=True),
        sa.Column('is_visible', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at'),
    )
    op.create_index('ix_strategy_videos_id', 'strategy_videos', ['id'])
    op.create_index('ix_strategy_videos_strategy_id', 'strategy_videos', ['strategy_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('live_user_id', sa.Integer(), nullable=True, unique=True),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('strategy_id', sa.Integer(), sa.ForeignKey('strategies.id'), nullable=False),
        sa.Column('strategy_name', sa.String(length=255), nullable=False),
        sa.Column('strategy_number', sa.Integer(), nullable=True),
        sa.Column('status', subscription_status, nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_days', sa.Float(), nullable=False),
        sa.Column('renewal_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('video_ids', sa.JSON(), nullable=False),
        sa.Column('completed_videos', sa.JSON(), nullable=False),
        sa.Column('strategy_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('coach_id', sa.Integer(), nullable=True),
        sa.Column('coach_name', sa.String(length=255), nullable=True),
        sa.Column('coach_commission_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=50), nullable=False, server_default='manual'),
        sa.Column('previous_strategy_id', sa.Integer(), nullable=True),
        sa.Column('previous_strategy_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_strategy_id', 'subscriptions', ['strategy_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_end_date', 'subscriptions', ['end_date'])
    op.create_index('ix_subscriptions_coach_id', 'subscriptions', ['coach_id'])

    op.create_table(
        'pending_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payment_id', sa.String(length=255), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False, server_default='3pay'),
        sa.Column('provider_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('payment_url', sa.String(length=1024), nullable=True),
        sa.Column('test_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('strategy_id', sa.Integer(), sa.ForeignKey('strategies.id'), nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=True),
        sa.Column('type', payment_type, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=20), nullable=False, server_default='USDT-TRC20'),
        sa.Column('coach_id', sa.Integer(), nullable=True),
        sa.Column('coach_name', sa.String(length=255), nullable=True),
        sa.Column('commission_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('status', pending_payment_status, nullable=False),
        *_timestamps('created_at'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_pending_payments_id', 'pending_payments', ['id'])
    op.create_index('ix_pending_payments_payment_id', 'pending_payments', ['payment_id'], unique=True)
    op.create_index('ix_pending_payments_provider_transaction_id', 'pending_payments', ['provider_transaction_id'])
    op.create_index('ix_pending_payments_user_id', 'pending_payments', ['user_id'])
    op.create_index('ix_pending_payments_subscription_id', 'pending_payments', ['subscription_id'])
    op.create_index('ix_pending_payments_status', 'pending_payments', ['status'])

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('owner_type', wallet_owner_type, nullable=False),
        sa.Column('owner_name', sa.String(length=255), nullable=True),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_earned', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', wallet_status, nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.UniqueConstraint('owner_id', 'owner_type', name='uq_wallets_owner'),
    )
    op.create_index('ix_wallets_id', 'wallets', ['id'])
    op.create_index('ix_wallets_owner_id', 'wallets', ['owner_id'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_id', sa.Integer(), sa.ForeignKey('wallets.id'), nullable=False),
        sa.Column('type', transaction_type, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_before', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        *_timestamps('created_at'),
    )
    op.create_index('ix_wallet_transactions_id', 'wallet_transactions', ['id'])
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index('ix_wallet_transactions_reference_id', 'wallet_transactions', ['reference_id'])

    op.create_table(
        'coach_commissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('coach_id', sa.Integer(), nullable=False),
        sa.Column('coach_name', sa.String(length=255), nullable=True),
        sa.Column('strategy_name', sa.String(length=255), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('system_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        *_timestamps('created_at'),
    )
    op.create_index('ix_coach_commissions_id', 'coach_commissions', ['id'])
    op.create_index('ix_coach_commissions_subscription_id', 'coach_commissions', ['subscription_id'])
    op.create_index('ix_coach_commissions_coach_id', 'coach_commissions', ['coach_id'])

    op.create_table(
        'payment_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider', sa.String(length=50), nullable=False, server_default='nowpayments'),
        sa.Column('api_key_encrypted', sa.Text(), nullable=True),
        sa.Column('ipn_secret_encrypted', sa.Text(), nullable=True),
        sa.Column('is_test_mode', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('accepted_currencies', sa.JSON(), nullable=False),
        sa.Column('crypto_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('card_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_tested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_status', sa.String(length=20), nullable=True),
        sa.Column('test_message', sa.Text(), nullable=True),
        *_timestamps('updated_at'),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_payment_settings_id', 'payment_settings', ['id'])

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payment_id', sa.String(length=255), nullable=False),
        sa.Column('order_id', sa.String(length=255), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('subscription_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=20), nullable=False, server_default='usd'),
        sa.Column('pay_currency', sa.String(length=20), nullable=True),
        sa.Column('pay_address', sa.String(length=255), nullable=True),
        sa.Column('pay_amount', sa.Numeric(18, 8), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='waiting'),
        sa.Column('provider_status', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_payment_transactions_id', 'payment_transactions', ['id'])
    op.create_index('ix_payment_transactions_payment_id', 'payment_transactions', ['payment_id'], unique=True)
    op.create_index('ix_payment_transactions_order_id', 'payment_transactions', ['order_id'])
    op.create_index('ix_payment_transactions_user_id', 'payment_transactions', ['user_id'])
    op.create_index('ix_payment_transactions_status', 'payment_transactions', ['status'])

    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('telegram', sa.JSON(), nullable=False),
        sa.Column('banner', sa.JSON(), nullable=False),
        *_timestamps('updated_at'),
    )
    op.create_index('ix_app_settings_id', 'app_settings', ['id'])


def downgrade() -> None:
    for table in (
        'app_settings',
        'payment_transactions',
        'payment_settings',
        'coach_commissions',
        'wallet_transactions',
        'wallets',
        'pending_payments',
        'subscriptions',
        'strategy_videos',
        'strategies',
        'coaches',
        'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        transaction_type,
        wallet_status,
        wallet_owner_type,
        pending_payment_status,
        payment_type,
        subscription_status,
        coach_status,
        user_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
