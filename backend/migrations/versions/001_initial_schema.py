"""Initial schema

Revision ID: 001
Revises:
Create Date: 2025-03-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tables may already exist from Base.metadata.create_all on startup
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
            sa.Column('dj_name', sa.String(length=100), nullable=True),
            sa.Column('avatar_url', sa.String(length=500), nullable=True),
            sa.Column('bio', sa.Text(), nullable=True),
            sa.Column('social_links', sa.JSON(), nullable=True),
            sa.Column('subscription_plan', sa.String(length=20), nullable=False, server_default='none'),
            sa.Column('subscription_period', sa.String(length=20), nullable=True),
            sa.Column('subscription_start', sa.DateTime(timezone=True), nullable=True),
            sa.Column('subscription_expires', sa.DateTime(timezone=True), nullable=True),
            sa.Column('subscription_id', sa.String(length=255), nullable=True),
            sa.Column('trial_used', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('subscription_cancelled', sa.Boolean(), nullable=False, server_default='false'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_stripe_customer_id', 'users', ['stripe_customer_id'])
        op.create_index('ix_users_subscription_plan', 'users', ['subscription_plan'])
        op.create_index('ix_users_subscription_expires', 'users', ['subscription_expires'])

    if 'events' not in existing_tables:
        op.create_table(
            'events',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('dj_id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('start_time', sa.String(length=20), nullable=True),
            sa.Column('end_time', sa.String(length=20), nullable=True),
            sa.Column('location', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['dj_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_events_dj_id', 'events', ['dj_id'])

    if 'song_requests' not in existing_tables:
        op.create_table(
            'song_requests',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=False),
            sa.Column('title', sa.String(length=100), nullable=False),
            sa.Column('artist', sa.String(length=100), nullable=False),
            sa.Column('votes', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('played', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('rejected', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('song_link', sa.String(length=500), nullable=True),
            sa.Column('manual_position', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('votes >= 0', name='ck_song_requests_votes_non_negative')
        )
        op.create_index('ix_song_requests_event_id', 'song_requests', ['event_id'])
        op.create_index('ix_song_requests_event_title_artist', 'song_requests', ['event_id', 'title', 'artist'])

    if 'song_votes' not in existing_tables:
        op.create_table(
            'song_votes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('song_request_id', sa.String(length=36), nullable=False),
            sa.Column('attendee_id', sa.String(length=64), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['song_request_id'], ['song_requests.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('song_request_id', 'attendee_id', name='uq_song_votes_song_attendee')
        )
        op.create_index('ix_song_votes_id', 'song_votes', ['id'])
        op.create_index('ix_song_votes_song_request_id', 'song_votes', ['song_request_id'])
        op.create_index('ix_song_votes_attendee_id', 'song_votes', ['attendee_id'])

    if 'notifications' not in existing_tables:
        op.create_table(
            'notifications',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('title', sa.String(length=200), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('read', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
        op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    if 'settings' not in existing_tables:
        op.create_table(
            'settings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('category', sa.String(length=50), nullable=False),
            sa.Column('key', sa.String(length=100), nullable=False),
            sa.Column('value', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_settings_id', 'settings', ['id'])
        op.create_index('ix_settings_user_id', 'settings', ['user_id'])
        op.create_index('ix_settings_user_category', 'settings', ['user_id', 'category'])

    if 'stripe_events' not in existing_tables:
        op.create_table(
            'stripe_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_stripe_events_id', 'stripe_events', ['id'])
        op.create_index('ix_stripe_events_stripe_event_id', 'stripe_events', ['stripe_event_id'], unique=True)
        op.create_index('ix_stripe_events_event_type', 'stripe_events', ['event_type'])

    if 'redemption_codes' not in existing_tables:
        op.create_table(
            'redemption_codes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(length=64), nullable=False),
            sa.Column('plan', sa.String(length=20), nullable=False, server_default='lifetime'),
            sa.Column('redeemed_by', sa.String(length=36), nullable=True),
            sa.Column('redeemed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['redeemed_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_redemption_codes_id', 'redemption_codes', ['id'])
        op.create_index('ix_redemption_codes_code', 'redemption_codes', ['code'], unique=True)


def downgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    for table in (
        'redemption_codes', 'stripe_events', 'settings', 'notifications',
        'song_votes', 'song_requests', 'events', 'users'
    ):
        if table in existing_tables:
            op.drop_table(table)
