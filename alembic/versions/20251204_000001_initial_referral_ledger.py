"""Create referral ledger tables

Revision ID: 20251204_000001
Revises: 
Create Date: 2025-12-04

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20251204_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.DECIMAL(18, 8)
JSON_DOC = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users: balances and first qualifying event flags
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('referral_user_type', sa.String(20), nullable=False, server_default='customer'),
        sa.Column('referral_code', sa.String(32), nullable=True),
        sa.Column('referred_by_id', sa.Integer(), nullable=True),
        sa.Column('points_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pending_commission', MONEY, nullable=False, server_default='0'),
        sa.Column('total_commission_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('total_commission_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('has_completed_first_order', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('first_order_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('first_order_event_id', sa.String(64), nullable=True),
        sa.Column('has_completed_first_subscription', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('first_subscription_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('first_subscription_event_id', sa.String(64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['referred_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.CheckConstraint('points_balance >= 0', name='check_user_points_non_negative'),
        sa.CheckConstraint('pending_commission >= 0', name='check_user_pending_commission_non_negative'),
        sa.CheckConstraint('total_commission_paid >= 0', name='check_user_commission_paid_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referral_user_type', 'users', ['referral_user_type'])
    op.create_index('ix_users_referred_by_id', 'users', ['referred_by_id'])

    op.create_table(
        'referral_chain_edges',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=True),
        sa.Column('tier', sa.Integer(), nullable=False),
        sa.Column('referrer_class', sa.String(20), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('user_id', 'tier', name='uq_chain_edge_user_tier'),
        sa.CheckConstraint('tier >= 1 AND tier <= 2', name='check_chain_tier_range'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referral_chain_edges_user_id', 'referral_chain_edges', ['user_id'])
    op.create_index('ix_referral_chain_edges_referrer_id', 'referral_chain_edges', ['referrer_id'])

    op.create_table(
        'referral_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('total_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referral_tier', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_commission_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('pending_commission', MONEY, nullable=False, server_default='0'),
        sa.Column('total_commission_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('referral_tier >= 1 AND referral_tier <= 3', name='check_profile_tier_range'),
        sa.CheckConstraint('pending_commission >= 0', name='check_profile_pending_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referral_profiles_referral_code', 'referral_profiles', ['referral_code'], unique=True)
    op.create_index('ix_referral_profiles_referrer_id', 'referral_profiles', ['referrer_id'], unique=True)

    op.create_table(
        'referred_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tier', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('first_purchase_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('total_spent', MONEY, nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.ForeignKeyConstraint(['profile_id'], ['referral_profiles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('profile_id', 'user_id', name='uq_referred_user_profile'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referred_users_profile_id', 'referred_users', ['profile_id'])
    op.create_index('ix_referred_users_user_id', 'referred_users', ['user_id'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='BANK_TRANSFER'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transaction_id', sa.String(255), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('total_amount > 0', name='check_payout_amount_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payouts_referrer_id', 'payouts', ['referrer_id'])
    op.create_index('ix_payouts_status', 'payouts', ['status'])

    op.create_table(
        'commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referral_profile_id', sa.Integer(), nullable=True),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('referred_user_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('event_kind', sa.String(20), nullable=False),
        sa.Column('order_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('commission_rate', MONEY, nullable=False, server_default='0'),
        sa.Column('commission_amount', MONEY, nullable=False),
        sa.Column('tier', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='BANK_TRANSFER'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payout_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['referral_profile_id'], ['referral_profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['payout_id'], ['payouts.id'], ondelete='SET NULL'),
        sa.CheckConstraint('commission_amount >= 0', name='check_commission_amount_non_negative'),
        sa.CheckConstraint('tier >= 1 AND tier <= 2', name='check_commission_tier_range'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_commissions_referral_profile_id', 'commissions', ['referral_profile_id'])
    op.create_index('ix_commissions_referrer_id', 'commissions', ['referrer_id'])
    op.create_index('ix_commissions_referred_user_id', 'commissions', ['referred_user_id'])
    op.create_index('ix_commissions_order_id', 'commissions', ['order_id'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])
    op.create_index('ix_commissions_payout_id', 'commissions', ['payout_id'])
    op.create_index('ix_commissions_created_at', 'commissions', ['created_at'])

    op.create_table(
        'points_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('previous_balance', sa.Integer(), nullable=False),
        sa.Column('new_balance', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('related_id', sa.String(64), nullable=True),
        sa.Column('related_model', sa.String(32), nullable=True),
        sa.Column('metadata', JSON_DOC, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='COMPLETED'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('new_balance = previous_balance + points', name='check_points_balance_arithmetic'),
        sa.CheckConstraint('new_balance >= 0', name='check_points_new_balance_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_points_transactions_user_id', 'points_transactions', ['user_id'])
    op.create_index('ix_points_transactions_type', 'points_transactions', ['type'])
    op.create_index('ix_points_transactions_created_at', 'points_transactions', ['created_at'])

    op.create_table(
        'referral_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('link_id', sa.String(64), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('short_code', sa.String(16), nullable=False),
        sa.Column('campaign_name', sa.String(100), nullable=False),
        sa.Column('campaign_medium', sa.String(100), nullable=False),
        sa.Column('campaign_source', sa.String(100), nullable=False),
        sa.Column('campaign_content', sa.String(255), nullable=True),
        sa.Column('campaign_term', sa.String(255), nullable=True),
        sa.Column('custom_parameters', JSON_DOC, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_clicked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('link_id'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referral_links_referrer_id', 'referral_links', ['referrer_id'])
    op.create_index('ix_referral_links_referral_code', 'referral_links', ['referral_code'])
    op.create_index('ix_referral_links_short_code', 'referral_links', ['short_code'], unique=True)

    op.create_table(
        'referral_clicks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('link_id', sa.Integer(), nullable=True),
        sa.Column('session_id', sa.String(64), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('referer', sa.Text(), nullable=True),
        sa.Column('source', sa.String(20), nullable=False, server_default='DIRECT'),
        sa.Column('device', JSON_DOC, nullable=True),
        sa.Column('location', JSON_DOC, nullable=True),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('converted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_user_id', sa.Integer(), nullable=True),
        sa.Column('conversion_type', sa.String(20), nullable=True),
        sa.Column('fraud_flags', JSON_DOC, nullable=False),
        sa.Column('risk_score', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['link_id'], ['referral_links.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['converted_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.CheckConstraint('risk_score >= 0 AND risk_score <= 100', name='check_click_risk_score_range'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referral_clicks_referral_code', 'referral_clicks', ['referral_code'])
    op.create_index('ix_referral_clicks_referrer_id', 'referral_clicks', ['referrer_id'])
    op.create_index('ix_referral_clicks_link_id', 'referral_clicks', ['link_id'])
    op.create_index('ix_referral_clicks_session_id', 'referral_clicks', ['session_id'], unique=True)
    op.create_index('ix_referral_clicks_ip_address', 'referral_clicks', ['ip_address'])
    op.create_index('ix_referral_clicks_clicked_at', 'referral_clicks', ['clicked_at'])

    op.create_table(
        'fraud_detections',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('affected_users', JSON_DOC, nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('evidence', JSON_DOC, nullable=True),
        sa.Column('risk_score', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='DETECTED'),
        sa.Column('resolution', JSON_DOC, nullable=True),
        sa.Column('admin_notification_required', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('admin_notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('risk_score >= 0 AND risk_score <= 100', name='check_fraud_risk_score_range'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_fraud_detections_type', 'fraud_detections', ['type'])
    op.create_index('ix_fraud_detections_severity', 'fraud_detections', ['severity'])
    op.create_index('ix_fraud_detections_referral_code', 'fraud_detections', ['referral_code'])
    op.create_index('ix_fraud_detections_status', 'fraud_detections', ['status'])
    op.create_index('ix_fraud_detections_created_at', 'fraud_detections', ['created_at'])

    op.create_table(
        'referral_analytics',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('period_date', sa.Date(), nullable=False),
        sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('signups', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue', MONEY, nullable=False, server_default='0'),
        sa.Column('conversion_rate', MONEY, nullable=False, server_default='0'),
        sa.Column('avg_order_value', MONEY, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('referrer_id', 'period_date', name='uq_analytics_referrer_day'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_referral_analytics_referrer_id', 'referral_analytics', ['referrer_id'])


def downgrade() -> None:
    op.drop_table('referral_analytics')
    op.drop_table('fraud_detections')
    op.drop_table('referral_clicks')
    op.drop_table('referral_links')
    op.drop_table('points_transactions')
    op.drop_table('commissions')
    op.drop_table('payouts')
    op.drop_table('referred_users')
    op.drop_table('referral_profiles')
    op.drop_table('referral_chain_edges')
    op.drop_table('users')
