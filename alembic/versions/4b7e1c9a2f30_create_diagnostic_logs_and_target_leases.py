"""create_diagnostic_logs_and_target_leases

Revision ID: 4b7e1c9a2f30
Revises: 
Create Date: 2026-10-17 09:12:41.508214

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b7e1c9a2f30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create diagnostic_logs and target_leases tables."""
    op.create_table(
        'diagnostic_logs',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('target_id', sa.String(length=100), nullable=False),
        sa.Column('target_type', sa.Enum('DEVICE', 'USER', name='targettype'), nullable=True),
        sa.Column('steps', sa.JSON(), nullable=False),
        sa.Column('final_conclusion', sa.Text(), nullable=False),
        sa.Column('job_id', sa.String(length=64), nullable=True),
        sa.Column('trigger_source', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_diagnostic_logs_target_id', 'diagnostic_logs', ['target_id'], unique=False)
    op.create_index('ix_diagnostic_logs_created_at', 'diagnostic_logs', ['created_at'], unique=False)

    # One row per target; the primary key makes INSERT the set-if-absent
    op.create_table(
        'target_leases',
        sa.Column('target_id', sa.String(length=100), primary_key=True),
        sa.Column('owner_token', sa.String(length=64), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_target_leases_expires_at', 'target_leases', ['expires_at'], unique=False)


def downgrade() -> None:
    """Drop diagnostic_logs and target_leases tables."""
    op.drop_index('ix_target_leases_expires_at', table_name='target_leases')
    op.drop_table('target_leases')

    op.drop_index('ix_diagnostic_logs_created_at', table_name='diagnostic_logs')
    op.drop_index('ix_diagnostic_logs_target_id', table_name='diagnostic_logs')
    op.drop_table('diagnostic_logs')
