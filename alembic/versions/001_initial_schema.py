"""Initial schema - drivers, delivery requests and tracking updates

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE vehicletype AS ENUM ('car', 'van', 'motorbike', 'bicycle')")
    op.execute("CREATE TYPE driverstatus AS ENUM ('available', 'on_delivery', 'offline')")
    op.execute("CREATE TYPE deliverystatus AS ENUM ('pending', 'in_progress', 'completed', 'declined')")

    # Create drivers table
    op.create_table(
        'drivers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('vehicle_type', postgresql.ENUM('car', 'van', 'motorbike', 'bicycle', name='vehicletype', create_type=False), nullable=False, server_default='car'),
        sa.Column('status', postgresql.ENUM('available', 'on_delivery', 'offline', name='driverstatus', create_type=False), nullable=False, server_default='available'),
        sa.Column('current_delivery_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_drivers_current_delivery_id', 'drivers', ['current_delivery_id'])

    # Create delivery_requests table
    op.create_table(
        'delivery_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tracking_id', sa.String(32), nullable=False),
        sa.Column('status', postgresql.ENUM('pending', 'in_progress', 'completed', 'declined', name='deliverystatus', create_type=False), nullable=False, server_default='pending'),
        sa.Column('pickup_location', sa.Text(), nullable=False),
        sa.Column('delivery_location', sa.Text(), nullable=False),
        sa.Column('pickup_lat', sa.Float(), nullable=True),
        sa.Column('pickup_lng', sa.Float(), nullable=True),
        sa.Column('delivery_lat', sa.Float(), nullable=True),
        sa.Column('delivery_lng', sa.Float(), nullable=True),
        sa.Column('current_lat', sa.Float(), nullable=True),
        sa.Column('current_lng', sa.Float(), nullable=True),
        sa.Column('assigned_driver_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('drivers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_delivery_requests_tracking_id', 'delivery_requests', ['tracking_id'], unique=True)
    op.create_index('ix_delivery_requests_assigned_driver_id', 'delivery_requests', ['assigned_driver_id'])

    # Create tracking_updates table
    op.create_table(
        'tracking_updates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('delivery_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('delivery_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(100), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('location', sa.Text(), nullable=False),
        sa.Column('note', sa.Text(), nullable=False, server_default=''),
    )
    op.create_index('ix_tracking_updates_delivery_id', 'tracking_updates', ['delivery_id'])


def downgrade() -> None:
    op.drop_table('tracking_updates')
    op.drop_table('delivery_requests')
    op.drop_table('drivers')

    op.execute("DROP TYPE IF EXISTS deliverystatus")
    op.execute("DROP TYPE IF EXISTS driverstatus")
    op.execute("DROP TYPE IF EXISTS vehicletype")
