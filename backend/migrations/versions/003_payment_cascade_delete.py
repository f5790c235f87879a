"""Cascade payment deletes from registrations

Revision ID: 003_payment_cascade_delete
Revises: 002_add_soft_delete_and_attendance
Create Date: 2025-05-20

Deleting a registration used to fail while a payment row referenced it.
Batch mode recreates the table on SQLite, which cannot alter constraints.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '003_payment_cascade_delete'
down_revision: Union[str, None] = '002_add_soft_delete_and_attendance'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('payments') as batch_op:
        batch_op.drop_constraint('payments_registration_id_fkey', type_='foreignkey')
        batch_op.create_foreign_key(
            'payments_registration_id_fkey', 'registrations',
            ['registration_id'], ['id'], ondelete='CASCADE'
        )


def downgrade() -> None:
    with op.batch_alter_table('payments') as batch_op:
        batch_op.drop_constraint('payments_registration_id_fkey', type_='foreignkey')
        batch_op.create_foreign_key(
            'payments_registration_id_fkey', 'registrations',
            ['registration_id'], ['id']
        )
