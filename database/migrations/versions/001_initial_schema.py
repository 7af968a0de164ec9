"""Key-value entries table

Revision ID: 001
Revises: 
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'kv_entries',
        sa.Column('key', sa.String(length=255), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_kv_entries_created', 'kv_entries', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_kv_entries_created', table_name='kv_entries')
    op.drop_table('kv_entries')
