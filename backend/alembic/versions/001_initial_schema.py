"""Initial schema

Revision ID: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None

deal_type = sa.Enum('FLIGHT', 'CRUISE', name='dealtype')
alert_deal_type = sa.Enum('FLIGHT', 'CRUISE', 'BOTH', name='alertdealtype')
notification_type = sa.Enum('EMAIL', 'WEBHOOK', 'BOTH', name='notificationtype')
job_status = sa.Enum('SUCCESS', 'ERROR', 'RUNNING', name='jobstatus')
user_role = sa.Enum('USER', 'ADMIN', name='userrole')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('open_id', sa.String(64), nullable=False, unique=True),
        sa.Column('name', sa.Text()),
        sa.Column('email', sa.String(320)),
        sa.Column('role', user_role, nullable=False, server_default='USER'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('last_signed_in', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'monitoring_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', deal_type, nullable=False),
        sa.Column('origin', sa.String(100)),
        sa.Column('destination', sa.String(100)),
        sa.Column('departure_date', sa.DateTime()),
        sa.Column('return_date', sa.DateTime()),
        sa.Column('min_discount', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('notification_type', notification_type, nullable=False, server_default='EMAIL'),
        sa.Column('notification_email', sa.String(320)),
        sa.Column('notification_webhook', sa.Text()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'deals_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rule_id', sa.Integer(), sa.ForeignKey('monitoring_rules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', deal_type, nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('origin', sa.String(100)),
        sa.Column('destination', sa.String(100)),
        sa.Column('departure_date', sa.DateTime()),
        sa.Column('return_date', sa.DateTime()),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('current_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_percentage', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='USD'),
        sa.Column('offer_url', sa.Text(), nullable=False),
        sa.Column('provider', sa.String(100)),
        sa.Column('details', sa.JSON()),
        sa.Column('is_valid', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('validated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('notified_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'job_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('job_type', sa.String(100), nullable=False),
        sa.Column('status', job_status, nullable=False),
        sa.Column('rules_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deals_found', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notifications_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text()),
        sa.Column('execution_time', sa.Integer()),
        sa.Column('started_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime()),
    )

    op.create_table(
        'push_alerts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', alert_deal_type, nullable=False, server_default='BOTH'),
        sa.Column('origin', sa.String(100)),
        sa.Column('destination', sa.String(100)),
        sa.Column('min_discount', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('max_price', sa.Numeric(10, 2)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('endpoint', sa.String(1024), nullable=False, unique=True),
        sa.Column('p256dh', sa.String(255), nullable=False),
        sa.Column('auth', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('idx_rules_user', 'monitoring_rules', ['user_id'])
    op.create_index('idx_rules_active', 'monitoring_rules', ['is_active'])
    op.create_index('idx_deals_user_created', 'deals_history', ['user_id', 'created_at'])
    op.create_index('idx_deals_rule', 'deals_history', ['rule_id'])
    op.create_index('idx_job_logs_started', 'job_logs', ['started_at'])
    op.create_index('idx_push_alerts_user', 'push_alerts', ['user_id'])
    op.create_index('idx_push_subscriptions_user', 'push_subscriptions', ['user_id'])


def downgrade():
    op.drop_table('push_subscriptions')
    op.drop_table('push_alerts')
    op.drop_table('job_logs')
    op.drop_table('deals_history')
    op.drop_table('monitoring_rules')
    op.drop_table('users')
    for enum_type in (user_role, job_status, notification_type, alert_deal_type, deal_type):
        enum_type.drop(op.get_bind(), checkfirst=True)
