"""Initial migration - create the local key-value table

Revision ID: 001_initial
Revises: None
Create Date: 2024-01-15

Creates the storage_entries table: one row per persisted key
(erp_students, erp_hostel_data, erp_user_data, ...) holding the
serialized JSON payload as text.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Storage Entries Table ─────────────────────────────────
    op.create_table(
        'storage_entries',
        sa.Column('key', sa.String(128), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('storage_entries')
