"""add_active_session_unique_index

At most one active adaptive session per (user, section). Both SQLite and
PostgreSQL support the partial index.

Revision ID: 8f2e6a1d5c90
Revises: 3b9d0c4e7a21
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "8f2e6a1d5c90"
down_revision: Union[str, Sequence[str], None] = "3b9d0c4e7a21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_adaptive_sessions_one_active "
        "ON adaptive_quiz_sessions(user_id, section_id) WHERE status = 'active'"
    ))


def downgrade() -> None:
    op.execute(sa.text("DROP INDEX IF EXISTS idx_adaptive_sessions_one_active"))
