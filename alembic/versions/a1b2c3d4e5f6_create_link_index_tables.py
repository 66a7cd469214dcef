"""create link index tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 10:00:00.000000

Hey future me - this is the whole local index:

- cache_entries: one row per durable record (record_pointer is unique), with the
  work identity (isrc:/upc:/meta: key) and the freshness timestamps.
- input_links: normalized links (and isrc:/upc: keys) pointing at a cache entry.
  A link is unique across the table, so it can never belong to two entries.
  ON DELETE CASCADE: dropping an entry drops its links.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # === Cache entries ===
    op.create_table(
        'cache_entries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('record_pointer', sa.String(512), nullable=False),
        sa.Column('work_key', sa.String(512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_looked_up_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('record_pointer', name='uq_cache_entries_record_pointer'),
    )
    op.create_index('ix_cache_entries_work_key', 'cache_entries', ['work_key'])

    # === Input links ===
    op.create_table(
        'input_links',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('link', sa.String(1024), nullable=False),
        sa.Column(
            'cache_entry_id',
            sa.String(36),
            sa.ForeignKey('cache_entries.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('link', name='uq_input_links_link'),
    )
    op.create_index('ix_input_links_cache_entry_id', 'input_links', ['cache_entry_id'])


def downgrade() -> None:
    op.drop_index('ix_input_links_cache_entry_id', table_name='input_links')
    op.drop_table('input_links')

    op.drop_index('ix_cache_entries_work_key', table_name='cache_entries')
    op.drop_table('cache_entries')
