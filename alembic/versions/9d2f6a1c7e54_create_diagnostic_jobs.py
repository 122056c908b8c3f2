"""create_diagnostic_jobs

Revision ID: 9d2f6a1c7e54
Revises: 4b7e1c9a2f30
Create Date: 2026-10-17 15:40:03.117902

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9d2f6a1c7e54'
down_revision: Union[str, Sequence[str], None] = '4b7e1c9a2f30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the diagnostic_jobs queue table."""
    op.create_table(
        'diagnostic_jobs',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('job_id', sa.String(length=64), nullable=False),
        sa.Column('target_id', sa.String(length=100), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('available_at', sa.DateTime(), nullable=False),
        sa.Column('locked_by', sa.String(length=64), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_diagnostic_jobs_job_id', 'diagnostic_jobs', ['job_id'], unique=False)
    op.create_index('ix_diagnostic_jobs_available_at', 'diagnostic_jobs', ['available_at'], unique=False)


def downgrade() -> None:
    """Drop the diagnostic_jobs queue table."""
    op.drop_index('ix_diagnostic_jobs_available_at', table_name='diagnostic_jobs')
    op.drop_index('ix_diagnostic_jobs_job_id', table_name='diagnostic_jobs')
    op.drop_table('diagnostic_jobs')
