"""init staybook schema

Revision ID: 2025_11_04_0001
Revises: 
Create Date: 2025-11-04 00:01:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '2025_11_04_0001'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)
ACTIVE_DAY = sa.text("status IN ('pending', 'confirmed')")


def upgrade() -> None:
    # profiles (ids are issued by the identity provider)
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=128), primary_key=True, nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('phone_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # properties
    op.create_table(
        'properties',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=256), nullable=False),
        sa.Column('city', sa.String(length=64), nullable=True),
        sa.Column('state', sa.String(length=64), nullable=True),
        sa.Column('zip_code', sa.String(length=16), nullable=True),
        sa.Column('base_price_per_night', MONEY, nullable=False),
        sa.Column('per_head_price', MONEY, nullable=False, server_default='0'),
        sa.Column('cleaning_fee', MONEY, nullable=False, server_default='0'),
        sa.Column('service_fee', MONEY, nullable=False, server_default='0'),
        sa.Column('max_guests', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('facilities', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('videos', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('base_price_per_night >= 0', name='ck_properties_base_price_nonneg'),
        sa.CheckConstraint('max_guests >= 1', name='ck_properties_max_guests_min'),
    )
    op.create_index(op.f('ix_properties_city'), 'properties', ['city'], unique=False)

    # blackout dates
    op.create_table(
        'property_blackouts',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(length=256), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('property_id', 'date', name='uq_property_blackouts_property_date'),
    )

    # bookings
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=False),
        sa.Column('customer_id', sa.String(length=128), nullable=False),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('num_guests', sa.Integer(), nullable=False),
        sa.Column('base_amount', MONEY, nullable=False),
        sa.Column('guest_charges', MONEY, nullable=False, server_default='0'),
        sa.Column('extra_fees', MONEY, nullable=False, server_default='0'),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('advance_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('advance_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('verification_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('id_proofs', sa.JSON(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='manual'),
        sa.Column('manual_reference', sa.String(length=128), nullable=True),
        sa.Column('payment_screenshot_url', sa.String(length=1024), nullable=True),
        sa.Column('food_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('food_preference', sa.String(length=16), nullable=True),
        sa.Column('allergies', sa.Text(), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled', 'completed')", name='ck_bookings_status'),
        sa.CheckConstraint("verification_status IN ('pending', 'approved', 'rejected')", name='ck_bookings_verification'),
        sa.CheckConstraint("food_preference IS NULL OR food_preference IN ('veg', 'non-veg', 'both')", name='ck_bookings_food_pref'),
        sa.CheckConstraint('check_out_date >= check_in_date', name='ck_bookings_date_order'),
    )
    op.create_index(op.f('ix_bookings_property_id'), 'bookings', ['property_id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_id'), 'bookings', ['customer_id'], unique=False)
    op.create_index(
        'uq_bookings_active_property_day',
        'bookings',
        ['property_id', 'check_in_date'],
        unique=True,
        postgresql_where=ACTIVE_DAY,
        sqlite_where=ACTIVE_DAY,
    )


def downgrade() -> None:
    op.drop_index('uq_bookings_active_property_day', table_name='bookings')
    op.drop_index(op.f('ix_bookings_customer_id'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_property_id'), table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('property_blackouts')
    op.drop_index(op.f('ix_properties_city'), table_name='properties')
    op.drop_table('properties')
    op.drop_table('profiles')
