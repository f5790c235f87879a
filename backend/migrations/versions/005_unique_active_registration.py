"""Enforce one active registration and one waiting-list entry per identity

Revision ID: 005_unique_active_registration
Revises: 004_add_no_shows
Create Date: 2025-09-03

Existing duplicates must be cleaned up (fix_registration_data.py reports
them) before this revision will apply.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '005_unique_active_registration'
down_revision: Union[str, None] = '004_add_no_shows'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index(
        'uq_registrations_active_identity',
        'registrations',
        ['event_id', 'email', 'first_name', 'last_name'],
        unique=True,
        postgresql_where=sa.text('NOT deleted'),
        sqlite_where=sa.text('deleted = 0'),
    )
    with op.batch_alter_table('waiting_list') as batch_op:
        batch_op.create_unique_constraint(
            'uq_waiting_list_identity', ['event_id', 'email', 'first_name', 'last_name']
        )


def downgrade() -> None:
    with op.batch_alter_table('waiting_list') as batch_op:
        batch_op.drop_constraint('uq_waiting_list_identity', type_='unique')
    op.drop_index('uq_registrations_active_identity', table_name='registrations')
