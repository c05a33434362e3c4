"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('active_trip_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'trips',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('destination', sa.String(255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('purpose', sa.String(500), nullable=False),
        sa.Column('travelers_men', sa.Integer(), nullable=False),
        sa.Column('travelers_women', sa.Integer(), nullable=False),
        sa.Column('travelers_children', sa.Integer(), nullable=False),
        sa.Column('travelers_seniors', sa.Integer(), nullable=False),
        sa.Column('summary_image_uri', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_trips_user_id', 'trips', ['user_id'])

    op.create_table(
        'daily_plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('optimized_route', sa.Text(), nullable=False),
        sa.Column('estimated_time_savings', sa.Text(), nullable=False),
        sa.Column('estimated_cost_savings', sa.Text(), nullable=False),
        sa.Column('day_image_uri', sa.Text(), nullable=True),
        sa.UniqueConstraint('trip_id', 'date', name='uq_daily_plan_trip_date'),
    )
    op.create_index('ix_daily_plans_trip_id', 'daily_plans', ['trip_id'])

    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('city_region', sa.String(255), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('origin_location', sa.String(255), nullable=True),
        sa.Column('origin_city_region', sa.String(255), nullable=True),
        sa.Column('origin_address', sa.String(500), nullable=True),
        sa.Column('origin_latitude', sa.Float(), nullable=True),
        sa.Column('origin_longitude', sa.Float(), nullable=True),
        sa.Column('destination_location', sa.String(255), nullable=True),
        sa.Column('destination_city_region', sa.String(255), nullable=True),
        sa.Column('destination_address', sa.String(500), nullable=True),
        sa.Column('destination_latitude', sa.Float(), nullable=True),
        sa.Column('destination_longitude', sa.Float(), nullable=True),
        sa.Column('reservation_info', sa.String(500), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('start_time', sa.String(5), nullable=True),
        sa.Column('end_time', sa.String(5), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('meal_type', sa.String(20), nullable=True),
        sa.Column('cuisine_type', sa.String(150), nullable=True),
        sa.Column('dietary_notes', sa.String(500), nullable=True),
        sa.Column('activity_category', sa.String(150), nullable=True),
        sa.Column('shopping_category', sa.String(150), nullable=True),
        sa.Column('transportation_mode', sa.String(20), nullable=True),
        sa.Column('gasoline_budget', sa.Float(), nullable=True),
        sa.Column('tolls_budget', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activities_trip_id', 'activities', ['trip_id'])

    op.create_table(
        'packing_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('packed', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_packing_items_trip_id', 'packing_items', ['trip_id'])

    op.create_table(
        'preparation_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('checklist', sa.Text(), nullable=True),
    )
    op.create_index('ix_preparation_items_trip_id', 'preparation_items', ['trip_id'])


def downgrade() -> None:
    op.drop_table('preparation_items')
    op.drop_table('packing_items')
    op.drop_table('activities')
    op.drop_table('daily_plans')
    op.drop_table('trips')
    op.drop_table('users')
