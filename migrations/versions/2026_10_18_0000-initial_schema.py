"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - links table: Short code to destination mappings
    - analytics table: One row per resolved redirect
    - rate_limit table: Failed admin-key attempts per IP
    """
    bind = op.get_bind()
    inspector = inspect(bind)
    existing_tables = inspector.get_table_names()

    if 'links' not in existing_tables:
        op.create_table(
            'links',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('short_code', sa.String(length=255), nullable=False),
            sa.Column('destination_url', sa.Text(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('click_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_clicked', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_links_short_code', 'links', ['short_code'], unique=True)
        op.create_index('ix_links_created_at', 'links', ['created_at'])

    if 'analytics' not in existing_tables:
        op.create_table(
            'analytics',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('link_id', sa.Integer(), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=False, server_default=''),
            sa.Column('user_agent', sa.Text(), nullable=False, server_default=''),
            sa.Column('referer', sa.Text(), nullable=False, server_default=''),
            sa.Column('country', sa.String(length=8), nullable=False, server_default=''),
            sa.Column('city', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('region', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('region_code', sa.String(length=16), nullable=False, server_default=''),
            sa.Column('continent', sa.String(length=8), nullable=False, server_default=''),
            sa.Column('timezone', sa.String(length=64), nullable=False, server_default=''),
            sa.Column('postal_code', sa.String(length=32), nullable=False, server_default=''),
            sa.Column('latitude', sa.Float(), nullable=True),
            sa.Column('longitude', sa.Float(), nullable=True),
            sa.Column('asn', sa.Integer(), nullable=True),
            sa.Column('as_organization', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('colo', sa.String(length=16), nullable=False, server_default=''),
            sa.Column('http_protocol', sa.String(length=16), nullable=False, server_default=''),
            sa.Column('tls_version', sa.String(length=16), nullable=False, server_default=''),
            sa.Column('bot_category', sa.String(length=64), nullable=False, server_default=''),
            sa.Column('device_type', sa.String(length=16), nullable=False, server_default='unknown'),
            sa.Column('client_tcp_rtt', sa.Integer(), nullable=True),
            sa.Column('timestamp', sa.String(length=40), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            # Declared inline: SQLite cannot add foreign keys to an existing table
            sa.ForeignKeyConstraint(['link_id'], ['links.id'], ondelete='CASCADE'),
        )
        op.create_index('ix_analytics_link_id', 'analytics', ['link_id'])
        op.create_index('ix_analytics_country', 'analytics', ['country'])
        op.create_index('ix_analytics_timestamp', 'analytics', ['timestamp'])

    if 'rate_limit' not in existing_tables:
        op.create_table(
            'rate_limit',
            sa.Column('ip_address', sa.String(length=45), nullable=False),
            sa.Column('failed_attempts', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('first_attempt_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('blocked_until', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('ip_address')
        )


def downgrade() -> None:
    """
    Drop all tables and indexes.
    """
    op.drop_table('rate_limit')

    op.drop_index('ix_analytics_timestamp', table_name='analytics')
    op.drop_index('ix_analytics_country', table_name='analytics')
    op.drop_index('ix_analytics_link_id', table_name='analytics')
    op.drop_table('analytics')

    op.drop_index('ix_links_created_at', table_name='links')
    op.drop_index('ix_links_short_code', table_name='links')
    op.drop_table('links')
