"""initial tables: users, daily_slots, bookings

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='MEMBER'),
        sa.Column('is_active_flag', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('daily_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('slot_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('current_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('slot_date', 'start_time', name='uq_daily_slots_date_start'),
        sa.CheckConstraint('current_bookings >= 0', name='ck_daily_slots_bookings_non_negative'),
        sa.CheckConstraint('current_bookings <= max_capacity', name='ck_daily_slots_bookings_le_capacity'),
        sa.CheckConstraint('start_time < end_time', name='ck_daily_slots_interval'),
    )
    op.create_index('ix_daily_slots_slot_date', 'daily_slots', ['slot_date'])

    op.create_table('bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slot_id', sa.Integer(), sa.ForeignKey('daily_slots.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('booking_code', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'slot_id', name='uq_bookings_user_slot'),
        sa.UniqueConstraint('booking_code', name='uq_bookings_code'),
    )
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_slot_id', 'bookings', ['slot_id'])

def downgrade():
    op.drop_index('ix_bookings_slot_id', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_daily_slots_slot_date', table_name='daily_slots')
    op.drop_table('daily_slots')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
