"""initial_adaptive_quiz_schema

Catalog, adaptive session, transcript and materialized quiz tables.
Executes adaptive_quiz/db/schema.sql. Every statement is CREATE ... IF NOT EXISTS, so
it also runs against a database that already holds the catalog tables.

Revision ID: 3b9d0c4e7a21
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "3b9d0c4e7a21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    schema_path = Path(__file__).resolve().parents[2] / "adaptive_quiz" / "db" / "schema.sql"
    schema_sql = schema_path.read_text()
    # op.execute runs one statement at a time
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(cleaned))


def downgrade() -> None:
    """Drop engine-owned tables; catalog tables belong to the platform."""
    for table in [
        "quiz_options",
        "quiz_questions",
        "quizzes",
        "adaptive_quiz_responses",
        "adaptive_quiz_sessions",
    ]:
        op.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
