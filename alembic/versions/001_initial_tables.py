"""Initial tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

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
    # Teams
    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sport', sa.String(length=50), nullable=False, server_default='Tackle Football'),
        sa.Column('age_group', sa.String(length=50), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('spond_group_id', sa.String(length=32), nullable=True),
        sa.Column('spond_parent_group_id', sa.String(length=32), nullable=True),
        sa.Column('spond_data', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_teams_spond_group_id', 'teams', ['spond_group_id'])

    # Sites and fields
    op.create_table(
        'sites',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'fields',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['site_id'], ['sites.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_fields_site_id', 'fields', ['site_id'])

    # Events
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column(
            'event_type',
            sa.Enum('Game', 'Practice', 'Meeting', 'Other', name='eventtype'),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('Planned', 'Confirmed', 'Cancelled', 'Completed', name='eventstatus'),
            nullable=False,
        ),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.Column('team_ids', sa.JSON(), nullable=True),
        sa.Column('field_id', sa.Integer(), nullable=True),
        sa.Column('spond_id', sa.String(length=32), nullable=True),
        sa.Column('spond_group_id', sa.String(length=32), nullable=True),
        sa.Column('spond_data', sa.Text(), nullable=True),
        sa.Column('attendance_accepted', sa.Integer(), nullable=True),
        sa.Column('attendance_declined', sa.Integer(), nullable=True),
        sa.Column('attendance_unanswered', sa.Integer(), nullable=True),
        sa.Column('attendance_waiting', sa.Integer(), nullable=True),
        sa.Column('attendance_unconfirmed', sa.Integer(), nullable=True),
        sa.Column('attendance_estimated', sa.Integer(), nullable=True),
        sa.Column('attendance_last_sync', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attendance_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['field_id'], ['fields.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_events_start_time', 'events', ['start_time'])
    op.create_index('ix_events_team_id', 'events', ['team_id'])
    op.create_index('ix_events_field_id', 'events', ['field_id'])
    op.create_index('ix_events_spond_id', 'events', ['spond_id'], unique=True)
    op.create_index('ix_events_spond_group_id', 'events', ['spond_group_id'])

    # Attendance
    op.create_table(
        'event_participants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('spond_member_id', sa.String(length=32), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('response', sa.String(length=20), nullable=False),
        sa.Column('response_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_organizer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'spond_member_id', name='uq_event_participants_member')
    )
    op.create_index('ix_event_participants_event_id', 'event_participants', ['event_id'])
    op.create_index('ix_event_participants_response', 'event_participants', ['response'])

    # Spond integration
    op.create_table(
        'spond_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('auto_sync', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sync_interval_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_sync', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_spond_config_is_active', 'spond_config', ['is_active'])

    op.create_table(
        'spond_sync_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sync_type', sa.String(length=50), nullable=False),
        sa.Column('direction', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('items_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_imported', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_index('ix_spond_config_is_active')
    op.drop_index('ix_event_participants_response')
    op.drop_index('ix_event_participants_event_id')
    op.drop_index('ix_events_spond_group_id')
    op.drop_index('ix_events_spond_id')
    op.drop_index('ix_events_field_id')
    op.drop_index('ix_events_team_id')
    op.drop_index('ix_events_start_time')
    op.drop_index('ix_fields_site_id')
    op.drop_index('ix_teams_spond_group_id')

    op.drop_table('spond_sync_log')
    op.drop_table('spond_config')
    op.drop_table('event_participants')
    op.drop_table('events')
    op.drop_table('fields')
    op.drop_table('sites')
    op.drop_table('teams')

    sa.Enum(name='eventstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='eventtype').drop(op.get_bind(), checkfirst=True)
