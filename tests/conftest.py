"""Shared fixtures: in-memory SQLite with the engine schema and a small catalog."""

import os
from unittest.mock import AsyncMock, Mock

# Settings are read at import time
os.environ["ENV"] = "dev"
os.environ["JWT_SECRET"] = "test-secret-for-adaptive-quiz-engine-0123456789"
os.environ["ALLOW_UNVERIFIED_JWT"] = "false"
os.environ["GENERATOR_BACKEND"] = "http"
os.environ["SECTION_TOPIC_ORDER"] = "desc"
os.environ["DEFAULT_TARGET_LENGTH"] = "10"

import pytest

from adaptive_quiz.services.question_generator import GeneratedQuestion, GenerationResult

TEST_JWT_SECRET = os.environ["JWT_SECRET"]

# Tables added by migrations on top of schema.sql
MIGRATION_DDL = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_adaptive_sessions_one_active
    ON adaptive_quiz_sessions(user_id, section_id) WHERE status = 'active';

CREATE TABLE IF NOT EXISTS adaptive_quiz_dead_letters (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES adaptive_quiz_sessions(id),
    error TEXT,
    attempts INTEGER NOT NULL DEFAULT 1,
    resolved BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CATALOG_SEED = """
INSERT INTO courses (id, title, slug) VALUES ('course-1', 'Intro to Biology', NULL);
INSERT INTO subjects (id, course_id, title) VALUES ('subject-1', 'course-1', 'Biology');

INSERT INTO modules (id, subject_id, title, order_index) VALUES ('module-1', 'subject-1', 'Foundations', 1);
INSERT INTO modules (id, subject_id, title, order_index) VALUES ('module-2', 'subject-1', 'Populations', 2);

INSERT INTO sections (id, module_id, title, overview, order_index)
    VALUES ('section-cells', 'module-1', 'Cells', 'What cells are made of', 1);
INSERT INTO sections (id, module_id, title, overview, order_index)
    VALUES ('section-genetics', 'module-1', 'Genetics', 'How traits are inherited', 2);
INSERT INTO sections (id, module_id, title, overview, order_index)
    VALUES ('section-evolution', 'module-2', 'Evolution', 'How species change', 1);
INSERT INTO sections (id, module_id, title, overview, order_index)
    VALUES ('section-ecology', 'module-2', 'Ecology', NULL, 2);

INSERT INTO section_topics (id, section_id, topic_name, topic_hierarchy, future_topic, order_index)
    VALUES ('topic-1', 'section-cells', 'Cell structure', 'Biology > Cells', NULL, 1);
INSERT INTO section_topics (id, section_id, topic_name, topic_hierarchy, future_topic, order_index)
    VALUES ('topic-2', 'section-genetics', 'Mendel', 'Biology > Genetics > Mendel', 'DNA replication', 1);
INSERT INTO section_topics (id, section_id, topic_name, topic_hierarchy, future_topic, order_index)
    VALUES ('topic-3', 'section-genetics', 'Punnett squares', 'Biology > Genetics > Punnett', NULL, 2);
INSERT INTO section_topics (id, section_id, topic_name, topic_hierarchy, future_topic, order_index)
    VALUES ('topic-4', 'section-evolution', 'Natural selection', '  ', 'Speciation', 1);
"""

COURSE_ID = "course-1"
SUBJECT_ID = "subject-1"
SECTION_ID = "section-genetics"


@pytest.fixture
async def db():
    """In-memory database with the full engine schema and a seeded catalog."""
    import aiosqlite
    from adaptive_quiz.db.database import SCHEMA_PATH

    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.executescript(SCHEMA_PATH.read_text())
    await conn.executescript(MIGRATION_DDL)
    await conn.executescript(CATALOG_SEED)
    await conn.commit()
    yield conn
    await conn.close()


def make_question(difficulty="Medium", text="What is a gene?", options=None, correct_option=None):
    options = options or [
        {"label": "A", "text": "A unit of heredity"},
        {"label": "B", "text": "A type of cell"},
        {"label": "C", "text": "An organ"},
        {"label": "D", "text": "A protein"},
    ]
    return GenerationResult(
        question=GeneratedQuestion(
            question=text,
            difficulty=difficulty,
            options=options,
            correct_option=correct_option or options[0],
            explanation="Genes carry hereditary information.",
        )
    )


def make_stop(summary=None):
    return GenerationResult(stop=True, summary=summary or {"reason": "Mastery reached"})


@pytest.fixture
def generator():
    """Question generator double; tests set generate.side_effect to script its answers."""
    fake = Mock()
    fake.generate = AsyncMock()
    return fake
