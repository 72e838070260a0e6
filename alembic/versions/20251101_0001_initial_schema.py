"""Create initial schema

Revision ID: 20251101_0001
Revises:
Create Date: 2025-11-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20251101_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def _has_table(bind, name: str) -> bool:
    try:
        insp = inspect(bind)
        return insp.has_table(name)
    except Exception:
        return False

def upgrade() -> None:
    # ### Create all tables and ENUM types ###
    bind = op.get_bind()

    # Define ENUM types for use in table creation
    subscriptionstatus_enum = sa.Enum('PENDING', 'ACTIVE', 'CANCELED', 'EXPIRED', name='subscriptionstatus')
    streamstatus_enum = sa.Enum('SCHEDULED', 'LIVE', 'COMPLETED', 'CANCELLED', name='streamstatus')
    paymentstatus_enum = sa.Enum('PENDING', 'COMPLETED', 'FAILED', 'REFUNDED', name='paymentstatus')

    # Create users table
    if not _has_table(bind, 'users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), server_default='streamer', nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    # Create streamers table; current_stream_id is deliberately not a foreign key
    if not _has_table(bind, 'streamers'):
        op.create_table('streamers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=255), nullable=False),
            sa.Column('full_name', sa.String(length=255), nullable=False),
            sa.Column('current_stream_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_streamers_id'), 'streamers', ['id'], unique=False)
        op.create_index(op.f('ix_streamers_username'), 'streamers', ['username'], unique=True)

    # Create subscription_plans table
    if not _has_table(bind, 'subscription_plans'):
        op.create_table('subscription_plans',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('duration_days', sa.Integer(), nullable=False),
            sa.Column('duration_hours', sa.Numeric(precision=6, scale=2), nullable=False),
            sa.Column('views_delivered', sa.Integer(), nullable=False),
            sa.Column('chat_messages_delivered', sa.Integer(), nullable=False),
            sa.Column('features', sa.JSON(), nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('is_most_popular', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_subscription_plans_id'), 'subscription_plans', ['id'], unique=False)
        op.create_index(op.f('ix_subscription_plans_name'), 'subscription_plans', ['name'], unique=False)

    # Create subscriptions table
    if not _has_table(bind, 'subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('streamer_id', sa.Integer(), nullable=False),
            sa.Column('plan_id', sa.Integer(), nullable=True),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.Column('start_date', sa.DateTime(), nullable=False),
            sa.Column('end_date', sa.DateTime(), nullable=False),
            sa.Column('status', subscriptionstatus_enum, nullable=False),
            sa.Column('auto_renew', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_streamer_id'), 'subscriptions', ['streamer_id'], unique=False)
        op.create_index(op.f('ix_subscriptions_end_date'), 'subscriptions', ['end_date'], unique=False)
        op.create_index('ix_subscriptions_streamer_status_end', 'subscriptions', ['streamer_id', 'status', 'end_date'], unique=False)

    # Create planned_streams table
    if not _has_table(bind, 'planned_streams'):
        op.create_table('planned_streams',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('streamer_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('scheduled_start', sa.DateTime(), nullable=False),
            sa.Column('estimated_duration', sa.Integer(), nullable=False),
            sa.Column('status', streamstatus_enum, nullable=False),
            sa.Column('wordlist_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_planned_streams_id'), 'planned_streams', ['id'], unique=False)
        op.create_index(op.f('ix_planned_streams_streamer_id'), 'planned_streams', ['streamer_id'], unique=False)
        op.create_index(op.f('ix_planned_streams_scheduled_start'), 'planned_streams', ['scheduled_start'], unique=False)
        op.create_index('ix_planned_streams_streamer_start', 'planned_streams', ['streamer_id', 'scheduled_start'], unique=False)
        op.create_index('ix_planned_streams_status', 'planned_streams', ['status'], unique=False)

    # Create payments table
    if not _has_table(bind, 'payments'):
        op.create_table('payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('subscription_id', sa.Integer(), nullable=True),
            sa.Column('payee_id', sa.Integer(), nullable=False),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('currency', sa.String(length=8), server_default='USD', nullable=False),
            sa.Column('payment_method', sa.String(length=50), nullable=True),
            sa.Column('transaction_id', sa.String(length=255), nullable=True),
            sa.Column('status', paymentstatus_enum, nullable=False),
            sa.Column('description', sa.String(length=500), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['payee_id'], ['streamers.id'], ),
            sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('transaction_id')
        )
        op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
        op.create_index(op.f('ix_payments_subscription_id'), 'payments', ['subscription_id'], unique=False)
        op.create_index(op.f('ix_payments_payee_id'), 'payments', ['payee_id'], unique=False)
        op.create_index('ix_payments_subscription_status', 'payments', ['subscription_id', 'status'], unique=False)
    # ### end Alembic commands ###


def downgrade() -> None:
    # ### Drop all tables and ENUM types ###
    op.drop_table('payments')
    op.drop_table('planned_streams')
    op.drop_table('subscriptions')
    op.drop_table('subscription_plans')
    op.drop_table('streamers')
    op.drop_table('users')

    bind = op.get_bind()
    sa.Enum(name='paymentstatus').drop(bind, checkfirst=True)
    sa.Enum(name='streamstatus').drop(bind, checkfirst=True)
    sa.Enum(name='subscriptionstatus').drop(bind, checkfirst=True)
    # ### end Alembic commands ###
