"""Add no_shows table

Revision ID: 004_add_no_shows
Revises: 003_payment_cascade_delete
Create Date: 2025-07-08
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '004_add_no_shows'
down_revision: Union[str, None] = '003_payment_cascade_delete'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('no_shows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('event_title', sa.String(length=255), nullable=False),
        sa.Column('event_date', sa.DateTime(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('fee_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_no_shows_email'), 'no_shows', ['email'], unique=False)
    op.create_index(op.f('ix_no_shows_event_id'), 'no_shows', ['event_id'], unique=False)
    op.create_index(op.f('ix_no_shows_id'), 'no_shows', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_no_shows_id'), table_name='no_shows')
    op.drop_index(op.f('ix_no_shows_event_id'), table_name='no_shows')
    op.drop_index(op.f('ix_no_shows_email'), table_name='no_shows')
    op.drop_table('no_shows')
