"""
PostgreSQL ledger adapter - Implements SubmissionLedger protocol.

This module provides the PostgreSQL implementation of the domain's ledger
port using psycopg3 (async pool) with raw SQL.

Concurrency Design - Per-Key Atomic Merge:
------------------------------------------
Unlike the JSON document ledger, records are rows, so there is no shared
document to serialize access to. upsert is one statement:

    INSERT ... ON CONFLICT (identity) DO UPDATE
    SET stage_data = submissions.stage_data || EXCLUDED.stage_data

The jsonb concatenation replaces only the submitted stage key and keeps the
others, and the row lock taken by ON CONFLICT makes concurrent merges into
the same record apply one after the other. Creation order is kept by the
BIGSERIAL seq column.
"""

import logging
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from src.domain.exceptions import StoreWriteError
from src.domain.models import SubmissionRecord

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
    INSERT INTO submissions (identity, created_at, stage_data)
    VALUES (%s, NOW(), %s)
    ON CONFLICT (identity) DO UPDATE
    SET stage_data = submissions.stage_data || EXCLUDED.stage_data,
        last_updated_at = NOW()
    RETURNING identity, created_at, last_updated_at, stage_data
"""

_SELECT_ALL_SQL = """
    SELECT identity, created_at, last_updated_at, stage_data
    FROM submissions
    ORDER BY seq
"""

_SELECT_ONE_SQL = """
    SELECT identity, created_at, last_updated_at, stage_data
    FROM submissions
    WHERE identity = %s
"""


def _to_record(row: dict[str, Any]) -> SubmissionRecord:
    return SubmissionRecord(
        identity=row["identity"],
        created_at=row["created_at"],
        last_updated_at=row["last_updated_at"],
        stage_data=dict(row["stage_data"] or {}),
    )


class PostgresSubmissionLedger:
    """
    Implements SubmissionLedger protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """
        Initialize ledger with connection pool.

        Args:
            pool: psycopg3 AsyncConnectionPool for database connections
        """
        self._pool = pool

    async def upsert(self, identity: str, stage_name: str, payload: Any) -> SubmissionRecord:
        try:
            async with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                await cursor.execute(_UPSERT_SQL, (identity, Jsonb({stage_name: payload})))
                row = await cursor.fetchone()
                await conn.commit()
        except (psycopg.Error, TypeError) as e:
            logger.error("Failed to upsert %s for identity %s: %s", stage_name, identity, e)
            raise StoreWriteError("Failed to save submission") from e

        logger.info("Saved %s for identity %s", stage_name, identity)
        return _to_record(row)

    async def load_all(self) -> list[SubmissionRecord]:
        try:
            async with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                await cursor.execute(_SELECT_ALL_SQL)
                rows = await cursor.fetchall()
        except psycopg.Error as e:
            logger.warning("Cannot read submissions - continuing with an empty ledger: %s", e)
            return []
        return [_to_record(row) for row in rows]

    async def find_by_identity(self, identity: str) -> SubmissionRecord | None:
        try:
            async with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                await cursor.execute(_SELECT_ONE_SQL, (identity,))
                row = await cursor.fetchone()
        except psycopg.Error as e:
            logger.warning("Cannot read submission %s: %s", identity, e)
            return None
        return _to_record(row) if row is not None else None

    async def start(self) -> None:
        await self._pool.open()
        await run_migrations(self._pool)

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Database connection pool closed")


async def run_migrations(pool: AsyncConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 AsyncConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            async with pool.connection() as conn:
                await conn.execute(sql_content)
                await conn.commit()

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
