"""
Schema bootstrap for the school database.

- Creates every table from schema.sql (idempotent).
- Removes duplicate attendance rows so that (student_id, date) can be unique.
  The newest row wins: latest recorded_at, then highest id.
- Adds the uq_attendance_student_date constraint the attendance upsert relies on.

Run once, or on every deploy:
  python -m schoolhub.backend.db.migrations
"""
import asyncio
import logging
from pathlib import Path

import asyncpg

from ..config.config import settings
from ..logging.logging_config import setup_logging
from .db_client import rows_affected

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

DEDUPLICATE_ATTENDANCE = """
DELETE FROM attendance a
USING (
    SELECT id,
           row_number() OVER (
               PARTITION BY student_id, date
               ORDER BY recorded_at DESC NULLS LAST, id DESC
           ) AS position
    FROM attendance
) ranked
WHERE a.id = ranked.id AND ranked.position > 1;
"""

ADD_ATTENDANCE_UNIQUE = """
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM pg_constraint WHERE conname = 'uq_attendance_student_date'
    ) THEN
        ALTER TABLE attendance ADD CONSTRAINT uq_attendance_student_date UNIQUE (student_id, date);
    END IF;
EXCEPTION WHEN duplicate_object THEN NULL;
END $$;
"""


async def run_migrations(pool: asyncpg.Pool) -> int:
    """Applies the schema and returns the number of duplicate attendance rows removed."""
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.acquire() as connection:
        async with connection.transaction():
            await connection.execute(schema_sql)
            # Lock out concurrent writers between the cleanup and the constraint.
            await connection.execute("LOCK TABLE attendance IN SHARE ROW EXCLUSIVE MODE;")
            status = await connection.execute(DEDUPLICATE_ATTENDANCE)
            await connection.execute(ADD_ATTENDANCE_UNIQUE)

    removed = rows_affected(status)
    if removed:
        logger.warning(f"Removed {removed} duplicate attendance rows before enforcing (student_id, date) uniqueness.")
    logger.info("Database schema is up to date.")
    return removed


async def _main():
    pool = await asyncpg.create_pool(dsn=settings.DATABASE_URL, min_size=1, max_size=1)
    try:
        await run_migrations(pool)
    finally:
        await pool.close()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(_main())
