import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..db.db_client import AsyncPostgresClient
from ..exceptions import NotFoundError
from ..models.db_models import ScheduleDetail, User
from . import enrollment_rules
from .access import STAFF_ROLES, require_admin_or_owner, require_role

logger = logging.getLogger(__name__)


class ScheduleService:
    """
    Creates, updates and deletes schedules. Updates run under the schedule row
    lock so that a capacity change cannot race an opt-in.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _ensure_references(self, course_id: Optional[int], instructor_id: Optional[int]):
        if course_id is not None and await self.db_client.get_course(course_id) is None:
            raise NotFoundError(f"Course ({course_id}) not found.")
        if instructor_id is not None and await self.db_client.get_instructor(instructor_id) is None:
            raise NotFoundError(f"Instructor ({instructor_id}) not found.")

    async def list_schedules(self) -> List[ScheduleDetail]:
        return await self.db_client.list_schedules()

    async def get_schedule(self, schedule_id: int) -> ScheduleDetail:
        schedule = await self.db_client.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Schedule ({schedule_id}) not found.")
        return schedule

    async def create_schedule(self, actor: User, fields: Dict[str, Any]) -> ScheduleDetail:
        require_role(actor, *STAFF_ROLES)
        course = await self.db_client.get_course(fields["course_id"])
        if course is None:
            raise NotFoundError(f"Course ({fields['course_id']}) not found.")
        await self._ensure_references(None, fields["instructor_id"])
        enrollment_rules.ensure_time_order(fields["start_time"], fields["end_time"])

        fields = dict(fields)
        if fields.get("max_enrollments") is None:
            fields["max_enrollments"] = course.max_students

        schedule = await self.db_client.create_schedule(fields)
        logger.info(f"Schedule ({schedule.id}) created for course ({course.id}) by user ({actor.id}).")
        return await self.db_client.get_schedule(schedule.id)

    async def update_schedule(self, actor: User, schedule_id: int, fields: Dict[str, Any]) -> ScheduleDetail:
        async with self.db_client.locked_schedule(schedule_id) as tx:
            if tx.schedule is None:
                raise NotFoundError(f"Schedule ({schedule_id}) not found.")
            await require_admin_or_owner(self.db_client, actor, tx.schedule)
            enrollment_rules.ensure_not_null(
                fields, "course_id", "instructor_id", "title", "start_time", "end_time", "mode", "is_recurring", "status"
            )
            await self._ensure_references(fields.get("course_id"), fields.get("instructor_id"))

            enrollment_rules.ensure_time_order(
                fields.get("start_time") or tx.schedule.start_time,
                fields.get("end_time") or tx.schedule.end_time,
            )
            if fields.get("max_enrollments") is not None:
                active = await tx.count_active_enrollments()
                enrollment_rules.ensure_capacity_not_below_active(fields["max_enrollments"], active)

            previous_status = tx.schedule.status
            await tx.update_schedule(fields)
            closed_as = enrollment_rules.ENROLLMENT_STATUS_ON_CLOSE.get(tx.schedule.status)
            if closed_as is not None and tx.schedule.status != previous_status:
                closed = await tx.close_active_enrollments(closed_as, datetime.now(timezone.utc))
                logger.info(f"Schedule ({schedule_id}) is now {tx.schedule.status.value}; {closed} active enrollments moved to {closed_as.value}.")
        logger.info(f"Schedule ({schedule_id}) updated by user ({actor.id}).")
        return await self.db_client.get_schedule(schedule_id)

    async def delete_schedule(self, actor: User, schedule_id: int):
        """Hard delete. Enrollments and attendance rows are removed with it."""
        schedule = await self.get_schedule(schedule_id)
        await require_admin_or_owner(self.db_client, actor, schedule)
        if not await self.db_client.delete_schedule(schedule_id):
            raise NotFoundError(f"Schedule ({schedule_id}) not found.")
        logger.info(f"Schedule ({schedule_id}) deleted by user ({actor.id}).")
