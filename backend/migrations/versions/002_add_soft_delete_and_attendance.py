"""Add soft delete and attendance to registrations, event title to history

Revision ID: 002_add_soft_delete_and_attendance
Revises: 001_initial
Create Date: 2025-04-14

Unregistering now flips registrations.deleted instead of removing the row,
so a later registration with the same identity reactivates it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_add_soft_delete_and_attendance'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('registrations', sa.Column('attended', sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column('registrations', sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()))
    op.create_index(op.f('ix_registrations_deleted'), 'registrations', ['deleted'], unique=False)

    op.add_column('registration_history', sa.Column('event_title', sa.String(length=255), nullable=True))
    op.add_column('registration_history', sa.Column('waiting_list_id', sa.Integer(), nullable=True))


def downgrade() -> None:
    op.drop_column('registration_history', 'waiting_list_id')
    op.drop_column('registration_history', 'event_title')

    op.drop_index(op.f('ix_registrations_deleted'), table_name='registrations')
    op.drop_column('registrations', 'deleted')
    op.drop_column('registrations', 'attended')
