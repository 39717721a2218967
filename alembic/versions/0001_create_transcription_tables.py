"""create transcription tables

Revision ID: 0001
Revises:
Create Date: 2026-01-12 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """User profiles, tier limits and transcription jobs."""
    op.create_table(
        'user_profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('tier', sa.String(20), nullable=False, server_default='free'),
        sa.Column('usage_reset_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_user_profiles_email', 'user_profiles', ['email'])

    op.create_table(
        'tier_limits',
        sa.Column('tier', sa.String(20), primary_key=True),
        sa.Column('monthly_transcription_limit', sa.Integer(), nullable=False),
        sa.Column('max_file_size_mb', sa.Integer(), nullable=False),
        sa.Column('max_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('features', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'transcription_jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('filename', sa.String(1000), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='processing'),
        sa.Column('tier', sa.String(20), nullable=False),
        sa.Column('usage_cost', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('provider_job_id', sa.String(100), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed', 'cancelled')",
            name='ck_transcription_jobs_status',
        ),
    )
    op.create_index('idx_transcription_jobs_user_created', 'transcription_jobs', ['user_id', 'created_at'])
    op.create_index('idx_transcription_jobs_user_filename', 'transcription_jobs', ['user_id', 'filename'])
    op.create_index('idx_transcription_jobs_status', 'transcription_jobs', ['status'])


def downgrade() -> None:
    op.drop_index('idx_transcription_jobs_status', table_name='transcription_jobs')
    op.drop_index('idx_transcription_jobs_user_filename', table_name='transcription_jobs')
    op.drop_index('idx_transcription_jobs_user_created', table_name='transcription_jobs')
    op.drop_table('transcription_jobs')
    op.drop_table('tier_limits')
    op.drop_index('ix_user_profiles_email', table_name='user_profiles')
    op.drop_table('user_profiles')
