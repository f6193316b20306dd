"""Import jobs, run audit trail, unmatched tracks, activity log

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '002_import_jobs_audit'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'import_jobs',
        sa.Column('job_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('artist_name', sa.String(255), nullable=False),
        sa.Column('collection_id', sa.String(255), nullable=False),
        sa.Column('limit', sa.Integer()),
        sa.Column('offset', sa.Integer()),
        sa.Column('dry_run', sa.Boolean(), default=False),
        sa.Column('total_shows', sa.Integer(), default=0),
        sa.Column('processed_shows', sa.Integer(), default=0),
        sa.Column('tracks_created', sa.Integer(), default=0),
        sa.Column('tracks_updated', sa.Integer(), default=0),
        sa.Column('tracks_skipped', sa.Integer(), default=0),
        sa.Column('error_count', sa.Integer(), default=0),
        sa.Column('errors', sa.JSON()),
        sa.Column('message', sa.String(500)),
        sa.Column('correlation_id', sa.String(36)),
        sa.Column('celery_task_id', sa.String(255)),
        sa.Column('started_at', sa.DateTime(timezone=True)),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint('job_id')
    )
    op.create_index('ix_import_jobs_status', 'import_jobs', ['status'])
    op.create_index('ix_import_jobs_artist_name', 'import_jobs', ['artist_name'])
    op.create_index('ix_import_jobs_correlation_id', 'import_jobs', ['correlation_id'])
    op.create_index('ix_import_jobs_created_at', 'import_jobs', ['created_at'])

    op.create_table(
        'import_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('correlation_id', sa.String(36), nullable=False),
        sa.Column('job_id', sa.String(64)),
        sa.Column('artist_name', sa.String(255)),
        sa.Column('collection_id', sa.String(255)),
        sa.Column('command_name', sa.String(100), nullable=False),
        sa.Column('command_args', sa.JSON()),
        sa.Column('started_by', sa.String(100)),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('exit_code', sa.Integer()),
        sa.Column('total_items', sa.Integer(), default=0),
        sa.Column('items_processed', sa.Integer(), default=0),
        sa.Column('items_successful', sa.Integer(), default=0),
        sa.Column('items_failed', sa.Integer(), default=0),
        sa.Column('items_skipped', sa.Integer(), default=0),
        sa.Column('duration_seconds', sa.Float()),
        sa.Column('throughput_per_sec', sa.Float()),
        sa.Column('avg_item_time_ms', sa.Float()),
        sa.Column('memory_peak_mb', sa.Float()),
        sa.Column('error_message', sa.Text()),
        sa.Column('errors', sa.JSON()),
        sa.Column('error_stacktrace', sa.Text()),
        sa.Column('log_reference', sa.String(1000)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid')
    )
    op.create_index('ix_import_runs_id', 'import_runs', ['id'])
    op.create_index('ix_import_runs_correlation_id', 'import_runs', ['correlation_id'])
    op.create_index('ix_import_runs_job_id', 'import_runs', ['job_id'])
    op.create_index('ix_import_runs_artist_name', 'import_runs', ['artist_name'])
    op.create_index('ix_import_runs_status', 'import_runs', ['status'])

    op.create_table(
        'unmatched_tracks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('artist_name', sa.String(255), nullable=False),
        sa.Column('track_title', sa.String(500), nullable=False),
        sa.Column('normalized_title', sa.String(500), nullable=False),
        sa.Column('show_identifier', sa.String(255)),
        sa.Column('show_date', sa.String(32)),
        sa.Column('track_number', sa.Integer()),
        sa.Column('track_file', sa.String(500)),
        sa.Column('suggested_match', sa.String(255)),
        sa.Column('suggested_algorithm', sa.String(20)),
        sa.Column('match_confidence', sa.Integer()),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('mapped_track_key', sa.String(255)),
        sa.Column('occurrence_count', sa.Integer(), nullable=False, default=1),
        sa.Column('first_seen_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('artist_name', 'normalized_title', name='uq_unmatched_artist_title')
    )
    op.create_index('ix_unmatched_tracks_id', 'unmatched_tracks', ['id'])
    op.create_index('ix_unmatched_tracks_artist_name', 'unmatched_tracks', ['artist_name'])
    op.create_index('ix_unmatched_tracks_status', 'unmatched_tracks', ['status'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor', sa.String(100)),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', sa.String(255)),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_activity_log_id', 'activity_log', ['id'])
    op.create_index('ix_activity_log_action', 'activity_log', ['action'])
    op.create_index('ix_activity_log_created_at', 'activity_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('unmatched_tracks')
    op.drop_table('import_runs')
    op.drop_table('import_jobs')
