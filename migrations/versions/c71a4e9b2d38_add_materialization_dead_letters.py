"""add_materialization_dead_letters

Sessions whose transcript could not be turned into a quiz, kept for replay.

Revision ID: c71a4e9b2d38
Revises: 8f2e6a1d5c90
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "c71a4e9b2d38"
down_revision: Union[str, Sequence[str], None] = "8f2e6a1d5c90"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text("""
        CREATE TABLE IF NOT EXISTS adaptive_quiz_dead_letters (
            id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL REFERENCES adaptive_quiz_sessions(id),
            error TEXT,
            attempts INTEGER NOT NULL DEFAULT 1,
            resolved BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_adaptive_dead_letters_open "
        "ON adaptive_quiz_dead_letters(resolved, created_at)"
    ))


def downgrade() -> None:
    op.execute(sa.text("DROP TABLE IF EXISTS adaptive_quiz_dead_letters"))
