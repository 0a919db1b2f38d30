"""initial booking schema: tenants, services, staff, customers, appointments, slot claims

Revision ID: 20241101_0001
Revises:
Create Date: 2024-11-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20241101_0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('slug', sa.String(80), nullable=False, unique=True),
        sa.Column('business_name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(254)),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('logo', sa.String(500)),
        sa.Column('primary_color', sa.String(16)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'services',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.BigInteger(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('require_staff', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('duration_minutes > 0 AND duration_minutes <= 1440', name='ck_services_duration_range'),
        sa.CheckConstraint('buffer_minutes >= 0', name='ck_services_buffer_non_negative'),
    )
    op.create_index('ix_services_tenant_id', 'services', ['tenant_id'])

    op.create_table(
        'staff',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.BigInteger(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(254)),
        sa.Column('phone', sa.String(20)),
        sa.Column('weekly_schedule', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_staff_tenant_id', 'staff', ['tenant_id'])

    op.create_table(
        'staff_holidays',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('staff_id', sa.BigInteger(), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(200)),
    )
    op.create_index('ix_staff_holidays_staff_id_date', 'staff_holidays', ['staff_id', 'date'])

    op.create_table(
        'customers',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.BigInteger(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('phone', sa.String(20)),
        sa.Column('timezone', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_customers_tenant_id_email'),
    )

    op.create_table(
        'appointments',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.BigInteger(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.BigInteger(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('customer_id', sa.BigInteger(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('staff_id', sa.BigInteger(), sa.ForeignKey('staff.id')),
        sa.Column('resource_key', sa.String(120)),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('occupied_until', sa.DateTime(timezone=True), nullable=False),
        sa.Column('customer_timezone', sa.String(64), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.Text()),
        sa.Column('payment_option', sa.String(16), nullable=False),
        sa.Column('payment_status', sa.String(16), nullable=False, server_default='unpaid'),
        sa.Column('payment_id', sa.String(255)),
        sa.Column('amount', sa.Numeric(10, 2)),
        sa.Column('reschedule_token', sa.String(128), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_appointments_tenant_id_start_time', 'appointments', ['tenant_id', 'start_time'])
    op.create_index('ix_appointments_resource_key_start_time', 'appointments', ['resource_key', 'start_time'])
    op.create_index('ix_appointments_staff_id_start_time', 'appointments', ['staff_id', 'start_time'])

    # One row per occupied minute; the unique constraint rejects double booking
    op.create_table(
        'slot_claims',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('appointment_id', sa.BigInteger(), sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('resource_key', sa.String(120), nullable=False),
        sa.Column('minute', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('resource_key', 'minute', name='uq_slot_claims_resource_minute'),
    )
    op.create_index('ix_slot_claims_appointment_id', 'slot_claims', ['appointment_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_slot_claims_appointment_id', table_name='slot_claims')
    op.drop_table('slot_claims')
    op.drop_index('ix_appointments_staff_id_start_time', table_name='appointments')
    op.drop_index('ix_appointments_resource_key_start_time', table_name='appointments')
    op.drop_index('ix_appointments_tenant_id_start_time', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('customers')
    op.drop_index('ix_staff_holidays_staff_id_date', table_name='staff_holidays')
    op.drop_table('staff_holidays')
    op.drop_index('ix_staff_tenant_id', table_name='staff')
    op.drop_table('staff')
    op.drop_index('ix_services_tenant_id', table_name='services')
    op.drop_table('services')
    op.drop_table('tenants')
