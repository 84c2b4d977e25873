"""Initial schema for episodes and speech synthesis jobs

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
    # Create episodes table
    op.create_table(
        'episodes',
        sa.Column('id', sa.String(128), primary_key=True),
        sa.Column('style', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('title', sa.String(512), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('source_count', sa.Integer, nullable=True),
        sa.Column('script_text', sa.Text, nullable=True),
        sa.Column('word_count', sa.Integer, nullable=True),
        sa.Column('duration_seconds', sa.Float, nullable=True),
        sa.Column('file_size_bytes', sa.Integer, nullable=True),
        sa.Column('is_async', sa.Boolean, nullable=True),
        sa.Column('tts_job_id', sa.String(256), nullable=True),
        sa.Column('script_url', sa.String(2048), nullable=True),
        sa.Column('audio_url', sa.String(2048), nullable=True),
        sa.Column('srt_url', sa.String(2048), nullable=True),
        sa.Column('vtt_url', sa.String(2048), nullable=True),
        sa.Column('transcript_url', sa.String(2048), nullable=True),
        sa.Column('error', sa.Text, nullable=True),
        sa.Column('metadata_json', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_episodes_status', 'episodes', ['status'])
    op.create_index('ix_episodes_style', 'episodes', ['style'])
    op.create_index('ix_episodes_created_at', 'episodes', ['created_at'])

    # Create tts_jobs table
    op.create_table(
        'tts_jobs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('episode_id', sa.String(128), sa.ForeignKey('episodes.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('external_job_id', sa.String(256), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='submitted'),
        sa.Column('artifact_ref', sa.String(2048), nullable=True),
        sa.Column('error', sa.Text, nullable=True),
        sa.Column('poll_count', sa.Integer, nullable=True),
        sa.Column('last_polled_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_tts_jobs_status', 'tts_jobs', ['status'])


def downgrade() -> None:
    op.drop_table('tts_jobs')
    op.drop_table('episodes')
