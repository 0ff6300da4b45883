import logging
from datetime import date, datetime, timezone
from typing import Optional

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Role
from ..services.teacher_service import TeacherService

logger = logging.getLogger(__name__)


async def attendance_snapshot_task(db_client: AsyncPostgresClient, today: Optional[date] = None) -> int:
    """
    Stores today's attendance aggregate of every teacher in attendance_daily_stats.
    A teacher whose aggregate cannot be computed is skipped; the rest still run.
    Returns the number of snapshots written.
    """
    today = today or datetime.now(timezone.utc).date()
    logger.info(f"Running attendance_snapshot_task for {today}...")

    teachers = await db_client.get_profiles(Role.TEACHER)
    service = TeacherService(db_client=db_client)
    written = 0
    for teacher in teachers:
        try:
            stats = await service.get_teacher_stats(teacher.id, today)
            await db_client.upsert_daily_stats(teacher.id, today, stats)
            written += 1
        except Exception as e:
            logger.error(f"Failed to snapshot attendance for teacher {teacher.id}: {e}", exc_info=True)

    logger.info(f"Stored {written}/{len(teachers)} attendance snapshots for {today}.")
    return written


async def mark_overdue_invoices_task(db_client: AsyncPostgresClient, today: Optional[date] = None) -> int:
    """Flips pending invoices whose due date has passed to 'overdue'."""
    today = today or datetime.now(timezone.utc).date()
    logger.info("Running mark_overdue_invoices_task...")
    try:
        updated = await db_client.mark_overdue_invoices(today)
    except Exception as e:
        logger.error(f"Failed to mark overdue invoices: {e}", exc_info=True)
        return 0
    if updated:
        logger.info(f"Marked {updated} invoice(s) as overdue.")
    return updated
