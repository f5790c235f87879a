"""Compare registration and waiting-list identities case-insensitively

Revision ID: 006_case_insensitive_identity
Revises: 005_unique_active_registration
Create Date: 2025-09-17

Rows differing only in letter case must be merged before this revision
will apply (fix_registration_data.py reports active duplicates).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '006_case_insensitive_identity'
down_revision: Union[str, None] = '005_unique_active_registration'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IDENTITY_EXPRESSIONS = [
    sa.text('event_id'),
    sa.text('lower(email)'),
    sa.text('lower(first_name)'),
    sa.text('lower(last_name)'),
]


def upgrade() -> None:
    op.drop_index('uq_registrations_active_identity', table_name='registrations')
    op.create_index(
        'uq_registrations_active_identity',
        'registrations',
        IDENTITY_EXPRESSIONS,
        unique=True,
        postgresql_where=sa.text('NOT deleted'),
        sqlite_where=sa.text('deleted = 0'),
    )

    with op.batch_alter_table('waiting_list') as batch_op:
        batch_op.drop_constraint('uq_waiting_list_identity', type_='unique')
    op.create_index('uq_waiting_list_identity', 'waiting_list', IDENTITY_EXPRESSIONS, unique=True)


def downgrade() -> None:
    op.drop_index('uq_waiting_list_identity', table_name='waiting_list')
    with op.batch_alter_table('waiting_list') as batch_op:
        batch_op.create_unique_constraint(
            'uq_waiting_list_identity', ['event_id', 'email', 'first_name', 'last_name']
        )

    op.drop_index('uq_registrations_active_identity', table_name='registrations')
    op.create_index(
        'uq_registrations_active_identity',
        'registrations',
        ['event_id', 'email', 'first_name', 'last_name'],
        unique=True,
        postgresql_where=sa.text('NOT deleted'),
        sqlite_where=sa.text('deleted = 0'),
    )
