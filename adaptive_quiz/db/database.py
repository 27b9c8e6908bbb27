"""Database access for SQLite (aiosqlite, default) and PostgreSQL (asyncpg).

DATABASE_URL starting with "postgresql://" selects asyncpg; otherwise the
SQLite file at DATABASE_PATH is used. Queries are written once in SQLite
dialect. On PostgreSQL, PgConnection rewrites `?` placeholders to `$n` and
`datetime('now')` to `NOW()`, and rows come back as PgRow mappings so
`dict(row)` and `row["col"]` behave the same on both backends.

fetch_one / fetch_all / execute turn driver errors into StorageFailure
(DuplicateRecord for unique violations).
"""

import itertools
import logging
import re
import sqlite3
from collections.abc import AsyncGenerator, Mapping
from datetime import date
from pathlib import Path

import aiosqlite
import asyncpg
from alembic import command
from alembic.config import Config

from adaptive_quiz.config import settings
from adaptive_quiz.errors import DuplicateRecord, StorageFailure

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

STORAGE_ERRORS = (sqlite3.Error, asyncpg.PostgresError, asyncpg.InterfaceError)

_pg_pool = None


def _is_postgres() -> bool:
    return settings.database_url.startswith("postgresql://")


async def _connect_sqlite():
    db = await aiosqlite.connect(settings.database_path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    return db


async def _get_pg_pool():
    global _pg_pool
    if _pg_pool is None:
        _pg_pool = await asyncpg.create_pool(settings.database_url, min_size=2, max_size=10)
    return _pg_pool


# ── PostgreSQL compatibility ─────────────────────────────────────────

# Quoted literals are matched first so a ? inside a string is left alone
_PLACEHOLDER_RE = re.compile(r"'[^']*'|\?")
_NOW_RE = re.compile(r"datetime\(\s*'now'\s*\)", re.IGNORECASE)


def translate_sql(sql: str) -> str:
    """Rewrite an SQLite-dialect statement for asyncpg."""
    numbers = itertools.count(1)

    def _number(match):
        token = match.group(0)
        return token if token.startswith("'") else f"${next(numbers)}"

    return _NOW_RE.sub("NOW()", _PLACEHOLDER_RE.sub(_number, sql))


def _as_sqlite_value(value):
    # SQLite hands timestamps back as text
    if isinstance(value, date):
        return value.isoformat()
    return value


class PgRow(Mapping):
    """Read-only view of an asyncpg Record with SQLite-style values."""

    __slots__ = ("_record",)

    def __init__(self, record):
        self._record = record

    def __getitem__(self, key):
        return _as_sqlite_value(self._record[key])

    def __iter__(self):
        return iter(self._record.keys())

    def __len__(self):
        return len(self._record)


class PgCursor:
    """The subset of the aiosqlite cursor the query helpers use."""

    def __init__(self, records=()):
        self._rows = [PgRow(r) for r in records]

    async def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    async def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class PgConnection:
    """asyncpg connection exposing execute/commit/close like aiosqlite."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=()):
        statement = translate_sql(sql)
        args = tuple(params or ())
        head = statement.lstrip().upper()
        if head.startswith("SELECT") or "RETURNING" in head:
            return PgCursor(await self._conn.fetch(statement, *args))
        await self._conn.execute(statement, *args)
        return PgCursor()

    async def commit(self):
        # Pooled connections run in autocommit mode
        pass

    async def close(self):
        pass


# ── Query helpers ────────────────────────────────────────────────────

def is_unique_violation(exc: BaseException) -> bool:
    if isinstance(exc, asyncpg.UniqueViolationError):
        return True
    return isinstance(exc, sqlite3.IntegrityError) and "UNIQUE" in str(exc).upper()


async def fetch_one(db, sql: str, params: tuple = ()):
    try:
        cursor = await db.execute(sql, params)
        return await cursor.fetchone()
    except STORAGE_ERRORS as exc:
        logger.error("Query failed: %s", exc)
        raise StorageFailure() from exc


async def fetch_all(db, sql: str, params: tuple = ()) -> list:
    try:
        cursor = await db.execute(sql, params)
        return list(await cursor.fetchall())
    except STORAGE_ERRORS as exc:
        logger.error("Query failed: %s", exc)
        raise StorageFailure() from exc


async def execute(db, sql: str, params: tuple = ()) -> None:
    """Run a write statement and commit it."""
    try:
        await db.execute(sql, params)
        await db.commit()
    except STORAGE_ERRORS as exc:
        if is_unique_violation(exc):
            raise DuplicateRecord() from exc
        logger.error("Write failed: %s", exc)
        raise StorageFailure() from exc


# ── Lifecycle ────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator:
    """FastAPI dependency yielding one connection per request."""
    if _is_postgres():
        pool = await _get_pg_pool()
        conn = await pool.acquire()
        try:
            yield PgConnection(conn)
        finally:
            await pool.release(conn)
        return

    db = await _connect_sqlite()
    try:
        yield db
    finally:
        await db.close()


def _alembic_url() -> str:
    if _is_postgres():
        return settings.database_url
    return f"sqlite:///{settings.database_path}"


def _run_alembic_upgrade():
    """Upgrade the schema to head. Synchronous; runs once at startup."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", _alembic_url())
    command.upgrade(alembic_cfg, "head")


async def init_db():
    if _is_postgres():
        logger.info("Using PostgreSQL backend: %s", settings.database_url.split("@")[-1])
    else:
        # Docker volume mounts may not have created the directory yet
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Using SQLite backend: %s", settings.database_path)

    _run_alembic_upgrade()


async def close_db():
    global _pg_pool
    if _pg_pool is not None:
        await _pg_pool.close()
        _pg_pool = None
