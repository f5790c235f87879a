"""Initial migration - baseline schema

Revision ID: 001_initial
Revises: 
Create Date: 2025-03-02

Events, registrations, waiting list, payments, registration history and users.
For existing databases, stamp this revision without running it.
For new databases, this will create all tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kinde_id', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='USER'),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('payment_preference', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_kinde_id'), 'users', ['kinde_id'], unique=True)

    # Events table
    op.create_table('events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('place', sa.String(length=255), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('from', sa.DateTime(), nullable=False),
        sa.Column('to', sa.DateTime(), nullable=False),
        sa.Column('visible', sa.Boolean(), nullable=True),
        sa.Column('bank_account_id', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_events_from'), 'events', ['from'], unique=False)
    op.create_index(op.f('ix_events_id'), 'events', ['id'], unique=False)
    op.create_index(op.f('ix_events_visible'), 'events', ['visible'], unique=False)

    # Registrations table
    op.create_table('registrations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='CASH'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_registrations_email'), 'registrations', ['email'], unique=False)
    op.create_index(op.f('ix_registrations_event_id'), 'registrations', ['event_id'], unique=False)
    op.create_index(op.f('ix_registrations_id'), 'registrations', ['id'], unique=False)

    # Waiting list table
    op.create_table('waiting_list',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='CASH'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_waiting_list_email'), 'waiting_list', ['email'], unique=False)
    op.create_index(op.f('ix_waiting_list_event_id'), 'waiting_list', ['event_id'], unique=False)
    op.create_index(op.f('ix_waiting_list_id'), 'waiting_list', ['id'], unique=False)

    # Payments table (cascade added in 003)
    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('registration_id', sa.Integer(), nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('variable_symbol', sa.String(length=20), nullable=False),
        sa.Column('qr_data', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['registration_id'], ['registrations.id'], name='payments_registration_id_fkey'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
    op.create_index(op.f('ix_payments_registration_id'), 'payments', ['registration_id'], unique=True)
    op.create_index(op.f('ix_payments_variable_symbol'), 'payments', ['variable_symbol'], unique=False)

    # Registration history table
    op.create_table('registration_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('registration_id', sa.Integer(), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('action_type', sa.String(length=40), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_registration_history_action_type'), 'registration_history', ['action_type'], unique=False)
    op.create_index(op.f('ix_registration_history_event_id'), 'registration_history', ['event_id'], unique=False)
    op.create_index(op.f('ix_registration_history_id'), 'registration_history', ['id'], unique=False)
    op.create_index(op.f('ix_registration_history_registration_id'), 'registration_history', ['registration_id'], unique=False)
    op.create_index(op.f('ix_registration_history_timestamp'), 'registration_history', ['timestamp'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_registration_history_timestamp'), table_name='registration_history')
    op.drop_index(op.f('ix_registration_history_registration_id'), table_name='registration_history')
    op.drop_index(op.f('ix_registration_history_id'), table_name='registration_history')
    op.drop_index(op.f('ix_registration_history_event_id'), table_name='registration_history')
    op.drop_index(op.f('ix_registration_history_action_type'), table_name='registration_history')
    op.drop_table('registration_history')
    op.drop_index(op.f('ix_payments_variable_symbol'), table_name='payments')
    op.drop_index(op.f('ix_payments_registration_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_id'), table_name='payments')
    op.drop_table('payments')
    op.drop_index(op.f('ix_waiting_list_id'), table_name='waiting_list')
    op.drop_index(op.f('ix_waiting_list_event_id'), table_name='waiting_list')
    op.drop_index(op.f('ix_waiting_list_email'), table_name='waiting_list')
    op.drop_table('waiting_list')
    op.drop_index(op.f('ix_registrations_id'), table_name='registrations')
    op.drop_index(op.f('ix_registrations_event_id'), table_name='registrations')
    op.drop_index(op.f('ix_registrations_email'), table_name='registrations')
    op.drop_table('registrations')
    op.drop_index(op.f('ix_events_visible'), table_name='events')
    op.drop_index(op.f('ix_events_id'), table_name='events')
    op.drop_index(op.f('ix_events_from'), table_name='events')
    op.drop_table('events')
    op.drop_index(op.f('ix_users_kinde_id'), table_name='users')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
