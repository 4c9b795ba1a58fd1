"""chapters and translation jobs

Revision ID: 3c5e9a1b7d20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c5e9a1b7d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    job_status_enum = sa.Enum(
        'QUEUED', 'RUNNING', 'PARTIAL', 'COMPLETED', 'FAILED',
        name='translation_job_status_enum'
    )

    # Pages are embedded documents on the chapter row
    op.create_table('chapters',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('manga_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('chapter_number', sa.Float(), nullable=False),
        sa.Column('original_language', sa.String(length=32), server_default='ja', nullable=False),
        sa.Column('pages', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('view_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('is_translated', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('translated_languages', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('manga_id', 'chapter_number', name='uq_chapters_manga_number'),
    )
    op.create_index(op.f('ix_chapters_manga_id'), 'chapters', ['manga_id'], unique=False)
    op.create_index(op.f('ix_chapters_is_translated'), 'chapters', ['is_translated'], unique=False)
    op.create_index(op.f('ix_chapters_created_at'), 'chapters', ['created_at'], unique=False)

    op.create_table('translation_jobs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('chapter_id', sa.UUID(), nullable=False),
        sa.Column('language', sa.String(length=32), nullable=False),
        sa.Column('status', job_status_enum, nullable=False),
        sa.Column('total_pages', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('pages_done', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('pages_skipped', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('pages_failed', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_translation_jobs_chapter_id'), 'translation_jobs', ['chapter_id'], unique=False)
    op.create_index(op.f('ix_translation_jobs_language'), 'translation_jobs', ['language'], unique=False)
    op.create_index(op.f('ix_translation_jobs_status'), 'translation_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_translation_jobs_created_at'), 'translation_jobs', ['created_at'], unique=False)
    op.create_index(
        'uq_translation_jobs_running', 'translation_jobs', ['chapter_id', 'language'],
        unique=True, postgresql_where=sa.text("status = 'RUNNING'")
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_translation_jobs_running', table_name='translation_jobs')
    op.drop_index(op.f('ix_translation_jobs_created_at'), table_name='translation_jobs')
    op.drop_index(op.f('ix_translation_jobs_status'), table_name='translation_jobs')
    op.drop_index(op.f('ix_translation_jobs_language'), table_name='translation_jobs')
    op.drop_index(op.f('ix_translation_jobs_chapter_id'), table_name='translation_jobs')
    op.drop_table('translation_jobs')
    op.drop_index(op.f('ix_chapters_created_at'), table_name='chapters')
    op.drop_index(op.f('ix_chapters_is_translated'), table_name='chapters')
    op.drop_index(op.f('ix_chapters_manga_id'), table_name='chapters')
    op.drop_table('chapters')

    op.execute("DROP TYPE IF EXISTS translation_job_status_enum")
