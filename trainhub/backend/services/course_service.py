import logging
from typing import Any, Dict, List, Tuple

from ..db.db_client import AsyncPostgresClient
from ..exceptions import NotFoundError
from ..models.db_models import Course, ScheduleDetail, User
from .access import STAFF_ROLES, require_role

logger = logging.getLogger(__name__)


class CourseService:
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def list_courses(self) -> List[Course]:
        return await self.db_client.list_courses()

    async def get_course(self, course_id: int) -> Tuple[Course, List[ScheduleDetail]]:
        """Returns the course together with its schedules."""
        course = await self.db_client.get_course(course_id)
        if course is None:
            raise NotFoundError(f"Course ({course_id}) not found.")
        schedules = await self.db_client.list_schedules(course_id=course_id)
        return course, schedules

    async def create_course(self, actor: User, fields: Dict[str, Any]) -> Course:
        require_role(actor, *STAFF_ROLES)
        course = await self.db_client.create_course(fields)
        logger.info(f"Course ({course.id}) '{course.title}' created by user ({actor.id}).")
        return course

    async def update_course(self, actor: User, course_id: int, fields: Dict[str, Any]) -> Course:
        require_role(actor, *STAFF_ROLES)
        course = await self.db_client.update_course(course_id, fields)
        if course is None:
            raise NotFoundError(f"Course ({course_id}) not found.")
        logger.info(f"Course ({course_id}) updated by user ({actor.id}).")
        return course

    async def delete_course(self, actor: User, course_id: int):
        require_role(actor, *STAFF_ROLES)
        if not await self.db_client.delete_course(course_id):
            raise NotFoundError(f"Course ({course_id}) not found.")
        logger.info(f"Course ({course_id}) deleted by user ({actor.id}).")
