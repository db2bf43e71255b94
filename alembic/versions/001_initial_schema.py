"""Initial schema

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
    op.create_table(
        'discovered_services',
        sa.Column('id', sa.String(length=512), nullable=False),
        sa.Column('namespace', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('cluster_ip', sa.String(length=64), nullable=False),
        sa.Column('cluster_port', sa.Integer(), nullable=False),
        sa.Column('description_path', sa.String(length=512), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('discovered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('namespace', 'name', name='uq_service_namespace_name')
    )
    op.create_index('idx_services_namespace', 'discovered_services', ['namespace'])
    op.create_index('idx_services_status', 'discovered_services', ['status'])

    op.create_table(
        'service_specifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('service_id', sa.String(length=512), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=True),
        sa.Column('version', sa.String(length=100), nullable=True),
        sa.Column('raw_document', sa.Text(), nullable=False),
        sa.Column('operations', sa.JSON(), nullable=False),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['service_id'], ['discovered_services.id'], ondelete='CASCADE'
        ),
        sa.UniqueConstraint('service_id')
    )


def downgrade() -> None:
    op.drop_table('service_specifications')
    op.drop_index('idx_services_status', 'discovered_services')
    op.drop_index('idx_services_namespace', 'discovered_services')
    op.drop_table('discovered_services')
