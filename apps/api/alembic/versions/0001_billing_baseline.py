"""Baseline: tenants, subscriptions, usage tracking, and sales calls.

Revision ID: 0001_billing_baseline
Revises:
Create Date: 2026-10-19

Creates:
- organizations, users, memberships
- subscriptions
- usage_tracking (one row per organization per UTC month)
- sales_calls (with outcome columns)
- call_analysis
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_billing_baseline'
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')


def upgrade() -> None:
    # ==========================================================================
    # Tenants
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('plan_tier', sa.String(20), server_default=sa.text("'starter'"), nullable=False),
        sa.Column('max_seats', sa.Integer(), server_default=sa.text('5'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_organizations'),
        sa.UniqueConstraint('slug', name='uq_organizations_slug'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    op.create_table(
        'memberships',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_memberships_user_id_users', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_memberships_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_memberships'),
        sa.UniqueConstraint('user_id', name='uq_memberships_user_id'),
    )
    op.create_index('idx_memberships_org_id', 'memberships', ['organization_id'])

    # ==========================================================================
    # Billing
    # ==========================================================================
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('provider_subscription_id', sa.String(255), nullable=True),
        sa.Column('provider_customer_id', sa.String(255), nullable=True),
        sa.Column('provider_plan_id', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), server_default=sa.text("'incomplete'"), nullable=False),
        sa.Column('plan_tier', sa.String(20), nullable=False),
        sa.Column('seats', sa.Integer(), server_default=sa.text('5'), nullable=False),
        # NULL = plan catalog default, -1 = unlimited
        sa.Column('calls_per_month', sa.Integer(), nullable=True),
        sa.Column('roleplay_sessions_per_month', sa.Integer(), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_subscriptions_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_subscriptions'),
        sa.UniqueConstraint('provider_subscription_id', name='uq_subscriptions_provider_subscription_id'),
    )
    op.create_index('idx_subscriptions_org_status', 'subscriptions', ['organization_id', 'status'])

    op.create_table(
        'usage_tracking',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('month', sa.String(7), nullable=False),
        sa.Column('calls_used', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('roleplay_sessions_used', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_usage_tracking_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_usage_tracking'),
        # Conflict target of the upsert-increment
        sa.UniqueConstraint('organization_id', 'month', name='uq_usage_tracking_org_month'),
    )

    # ==========================================================================
    # Sales calls
    # ==========================================================================
    op.create_table(
        'sales_calls',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('transcript_json', sa.Text(), nullable=True),

        # Outcome (money in cents)
        sa.Column('result', sa.String(20), nullable=True),
        sa.Column('qualified', sa.Boolean(), nullable=True),
        sa.Column('cash_collected', sa.BigInteger(), nullable=True),
        sa.Column('revenue_generated', sa.BigInteger(), nullable=True),
        sa.Column('reason_for_outcome', sa.Text(), nullable=True),
        sa.Column('call_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('offer_id', sa.String(100), nullable=True),
        sa.Column('prospect_name', sa.String(500), nullable=True),
        sa.Column('call_type', sa.String(20), nullable=True),
        sa.Column('commission_rate_pct', sa.Integer(), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_sales_calls_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_sales_calls_user_id_users', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_sales_calls'),
        sa.CheckConstraint('cash_collected >= 0', name='ck_sales_calls_cash_collected_non_negative'),
        sa.CheckConstraint('revenue_generated >= 0', name='ck_sales_calls_revenue_generated_non_negative'),
        sa.CheckConstraint(
            'commission_rate_pct >= 0 AND commission_rate_pct <= 100',
            name='ck_sales_calls_commission_rate_pct_range',
        ),
    )
    op.create_index('idx_sales_calls_org_user', 'sales_calls', ['organization_id', 'user_id'])

    op.create_table(
        'call_analysis',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('call_id', sa.Uuid(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=True),
        sa.Column('value_score', sa.Integer(), nullable=True),
        sa.Column('trust_score', sa.Integer(), nullable=True),
        sa.Column('fit_score', sa.Integer(), nullable=True),
        sa.Column('logistics_score', sa.Integer(), nullable=True),
        sa.Column('skill_scores', sa.Text(), nullable=True),
        sa.Column('coaching_recommendations', sa.Text(), nullable=True),
        sa.Column('timestamped_feedback', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(
            ['call_id'], ['sales_calls.id'],
            name='fk_call_analysis_call_id_sales_calls', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_call_analysis'),
        sa.UniqueConstraint('call_id', name='uq_call_analysis_call_id'),
    )


def downgrade() -> None:
    op.drop_table('call_analysis')
    op.drop_index('idx_sales_calls_org_user', table_name='sales_calls')
    op.drop_table('sales_calls')
    op.drop_table('usage_tracking')
    op.drop_index('idx_subscriptions_org_status', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('idx_memberships_org_id', table_name='memberships')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('organizations')
