import logging
from typing import Any, Dict, List, Optional, Tuple

from ..db.db_client import AsyncPostgresClient
from ..exceptions import ConflictError, NotFoundError
from ..models.db_models import InstructorDetail, Role, ScheduleDetail, User
from .access import STAFF_ROLES, require_role
from ..db.redis_client import RedisClient
from .student_service import end_session_if_deactivated, split_profile_update

logger = logging.getLogger(__name__)

INSTRUCTOR_FIELDS = {"designation", "bio", "expertise", "is_active"}


class InstructorService:
    def __init__(self, db_client: AsyncPostgresClient, redis_client: Optional[RedisClient] = None):
        self.db_client = db_client
        self.redis_client = redis_client

    async def list_instructors(self) -> List[InstructorDetail]:
        return await self.db_client.list_instructors()

    async def get_instructor(self, instructor_id: int) -> Tuple[InstructorDetail, List[ScheduleDetail]]:
        """Returns the instructor together with the schedules they teach."""
        instructor = await self.db_client.get_instructor(instructor_id)
        if instructor is None:
            raise NotFoundError(f"Instructor ({instructor_id}) not found.")
        schedules = await self.db_client.list_schedules(instructor_id=instructor_id)
        return instructor, schedules

    async def create_instructor(
        self,
        actor: User,
        user_id: int,
        designation: str,
        bio: Optional[str] = None,
        expertise: Optional[List[str]] = None,
        is_active: bool = True,
    ) -> InstructorDetail:
        require_role(actor, *STAFF_ROLES)
        user = await self.db_client.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User ({user_id}) not found.")
        if user.role != Role.INSTRUCTOR:
            raise ConflictError(f"User ({user_id}) does not have the instructor role.")

        instructor = await self.db_client.create_instructor(user_id, designation, bio, expertise or [], is_active)
        logger.info(f"Instructor profile ({instructor.id}) created for user ({user_id}).")
        return await self.db_client.get_instructor(instructor.id)

    async def update_instructor(self, actor: User, instructor_id: int, fields: Dict[str, Any]) -> InstructorDetail:
        require_role(actor, *STAFF_ROLES)
        profile_fields, user_fields = split_profile_update(fields, INSTRUCTOR_FIELDS)
        instructor = await self.db_client.update_instructor(instructor_id, profile_fields, user_fields)
        if instructor is None:
            raise NotFoundError(f"Instructor ({instructor_id}) not found.")
        await end_session_if_deactivated(self.redis_client, instructor.user_id, user_fields)
        logger.info(f"Instructor ({instructor_id}) updated by user ({actor.id}).")
        return instructor

    async def delete_instructor(self, actor: User, instructor_id: int):
        require_role(actor, *STAFF_ROLES)
        if not await self.db_client.delete_instructor(instructor_id):
            raise NotFoundError(f"Instructor ({instructor_id}) not found.")
        logger.info(f"Instructor ({instructor_id}) deleted by user ({actor.id}).")
