"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Attribute options (year, venue, taper, transferer, location, collection)
    op.create_table(
        'attribute_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attribute_code', sa.String(64), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('attribute_code', 'label', name='uq_attribute_option_label')
    )
    op.create_index('ix_attribute_options_id', 'attribute_options', ['id'])
    op.create_index('ix_attribute_options_attribute_code', 'attribute_options', ['attribute_code'])

    # Catalog entries, one per track file
    op.create_table(
        'catalog_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(128), nullable=False),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('url_key', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('artist_name', sa.String(255), nullable=False),
        sa.Column('show_identifier', sa.String(255)),
        sa.Column('show_title', sa.String(500)),
        sa.Column('show_date', sa.String(32)),
        sa.Column('lineage', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('rating', sa.Float()),
        sa.Column('num_reviews', sa.Integer(), default=0),
        sa.Column('track_number', sa.Integer()),
        sa.Column('file_name', sa.String(500)),
        sa.Column('file_format', sa.String(50)),
        sa.Column('file_size', sa.BigInteger()),
        sa.Column('file_sha1', sa.String(40)),
        sa.Column('length_seconds', sa.Float()),
        sa.Column('length_display', sa.String(16)),
        sa.Column('song_url', sa.String(1000)),
        sa.Column('year_option_id', sa.Integer()),
        sa.Column('venue_option_id', sa.Integer()),
        sa.Column('taper_option_id', sa.Integer()),
        sa.Column('transferer_option_id', sa.Integer()),
        sa.Column('location_option_id', sa.Integer()),
        sa.Column('collection_option_id', sa.Integer()),
        sa.Column('canonical_track_key', sa.String(255)),
        sa.Column('match_algorithm', sa.String(20)),
        sa.Column('match_confidence', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.ForeignKeyConstraint(['year_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['venue_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['taper_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['transferer_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['location_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['collection_option_id'], ['attribute_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('url_key')
    )
    op.create_index('ix_catalog_entries_id', 'catalog_entries', ['id'])
    op.create_index('ix_catalog_entries_sku', 'catalog_entries', ['sku'], unique=True)
    op.create_index('ix_catalog_entries_title', 'catalog_entries', ['title'])
    op.create_index('ix_catalog_entries_artist_name', 'catalog_entries', ['artist_name'])
    op.create_index('ix_catalog_entries_show_identifier', 'catalog_entries', ['show_identifier'])
    op.create_index('ix_catalog_entries_collection_option_id', 'catalog_entries', ['collection_option_id'])
    op.create_index('ix_catalog_entries_canonical_track_key', 'catalog_entries', ['canonical_track_key'])
    op.create_index('ix_catalog_entries_created_at', 'catalog_entries', ['created_at'])

    # Classification tree (artist nodes, show nodes)
    op.create_table(
        'classification_nodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer()),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url_key', sa.String(64)),
        sa.Column('level', sa.Integer(), default=1),
        sa.Column('external_identifier', sa.String(255)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['parent_id'], ['classification_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parent_id', 'external_identifier', name='uq_node_parent_identifier')
    )
    op.create_index('ix_classification_nodes_id', 'classification_nodes', ['id'])
    op.create_index('ix_classification_nodes_parent_id', 'classification_nodes', ['parent_id'])
    op.create_index('ix_classification_nodes_external_identifier', 'classification_nodes', ['external_identifier'])

    op.create_table(
        'entry_node_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('node_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, default=0),
        sa.ForeignKeyConstraint(['entry_id'], ['catalog_entries.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['node_id'], ['classification_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_id', 'node_id', name='uq_entry_node')
    )
    op.create_index('ix_entry_node_links_id', 'entry_node_links', ['id'])
    op.create_index('ix_entry_node_links_entry_id', 'entry_node_links', ['entry_id'])
    op.create_index('ix_entry_node_links_node_id', 'entry_node_links', ['node_id'])

    # Search index and indexer modes
    op.create_table(
        'indexer_states',
        sa.Column('indexer_id', sa.String(64), nullable=False),
        sa.Column('mode', sa.String(20), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint('indexer_id')
    )

    op.create_table(
        'catalog_search_index',
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('artist_name', sa.String(255)),
        sa.Column('search_text', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['entry_id'], ['catalog_entries.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('entry_id')
    )
    op.create_index('ix_catalog_search_index_artist_name', 'catalog_search_index', ['artist_name'])


def downgrade() -> None:
    op.drop_table('catalog_search_index')
    op.drop_table('indexer_states')
    op.drop_table('entry_node_links')
    op.drop_table('classification_nodes')
    op.drop_table('catalog_entries')
    op.drop_table('attribute_options')
