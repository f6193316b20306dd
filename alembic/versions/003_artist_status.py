"""Per-artist import status

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '003_artist_status'
down_revision: Union[str, None] = '002_import_jobs_audit'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'artist_status',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('artist_name', sa.String(255), nullable=False),
        sa.Column('collection_id', sa.String(255)),
        sa.Column('imported_tracks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('matched_tracks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unmatched_tracks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('match_rate_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_shows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_venues', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_hours', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_job_id', sa.String(64)),
        sa.Column('last_status', sa.String(20)),
        sa.Column('last_import_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_artist_status_id', 'artist_status', ['id'])
    op.create_index('ix_artist_status_artist_name', 'artist_status', ['artist_name'], unique=True)


def downgrade() -> None:
    op.drop_table('artist_status')
