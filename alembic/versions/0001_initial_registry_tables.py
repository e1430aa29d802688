"""initial_registry_tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_FARMER_STATUSES = ('active', 'inactive')
_PROJECT_STATUSES = ('active', 'completed', 'planned', 'planning', 'harvesting')


def upgrade() -> None:
    op.create_table(
        'cooperatives',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False, unique=True),
        sa.Column('registration_number', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone_number', sa.String(30), nullable=True),
        sa.Column('region', sa.String(50), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'farmers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'cooperative_id',
            sa.Uuid(),
            sa.ForeignKey('cooperatives.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=False),
        sa.Column('location', sa.String(200), nullable=False),
        sa.Column('language', sa.String(50), nullable=True),
        sa.Column('area_ha', sa.Float(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*_FARMER_STATUSES, name='farmer_status_enum'),
            nullable=False,
            server_default='active',
        ),
        sa.Column('qr_code', sa.String(20), nullable=False, unique=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('cooperative_id', 'phone_number', name='uq_farmer_coop_phone'),
        sa.UniqueConstraint('cooperative_id', 'full_name', name='uq_farmer_coop_name'),
    )
    op.create_index('ix_farmers_cooperative_id', 'farmers', ['cooperative_id'])
    op.create_index('ix_farmers_status', 'farmers', ['status'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'farmer_id',
            sa.Uuid(),
            sa.ForeignKey('farmers.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('crop_name', sa.String(100), nullable=False),
        sa.Column('area_ha', sa.Float(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*_PROJECT_STATUSES, name='project_status_enum'),
            nullable=False,
            server_default='active',
        ),
        sa.Column('planting_date', sa.Date(), nullable=True),
        sa.Column('expected_harvest_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_projects_farmer_id', 'projects', ['farmer_id'])


def downgrade() -> None:
    op.drop_index('ix_projects_farmer_id', table_name='projects')
    op.drop_table('projects')
    op.drop_index('ix_farmers_status', table_name='farmers')
    op.drop_index('ix_farmers_cooperative_id', table_name='farmers')
    op.drop_table('farmers')
    op.drop_table('cooperatives')
    sa.Enum(name='project_status_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='farmer_status_enum').drop(op.get_bind(), checkfirst=True)
