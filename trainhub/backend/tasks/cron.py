import logging
from datetime import datetime, timezone

from ..db.db_client import AsyncPostgresClient

logger = logging.getLogger(__name__)


async def complete_finished_schedules_task(db_client: AsyncPostgresClient):
    """
    Runs periodically. Closes schedules whose end_time has passed and completes
    their active enrollments. Failures are logged and retried on the next run.
    """
    logger.info("Running complete_finished_schedules_task...")
    try:
        schedules, enrollments = await db_client.complete_finished_schedules(datetime.now(timezone.utc))
    except Exception:
        logger.error("complete_finished_schedules_task failed.", exc_info=True)
        return

    if schedules:
        logger.info(f"Completed {schedules} finished schedules and {enrollments} enrollments.")
    else:
        logger.info("No finished schedules to complete.")
