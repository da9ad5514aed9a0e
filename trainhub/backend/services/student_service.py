import logging
from typing import Any, Dict, List, Optional, Tuple

from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..exceptions import ConflictError, NotFoundError, ServiceError
from ..models.db_models import EnrollmentDetail, Role, StudentDetail, User
from .access import STAFF_ROLES, require_role

logger = logging.getLogger(__name__)

USER_FIELDS = {"name", "email", "phone", "is_active"}
STUDENT_FIELDS = {"student_code", "phone", "is_active"}


def split_profile_update(fields: Dict[str, Any], profile_keys: set) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Splits a partial update into (profile fields, user fields). Shared keys go to both."""
    profile = {k: v for k, v in fields.items() if k in profile_keys}
    user = {k: v for k, v in fields.items() if k in USER_FIELDS}
    return profile, user


async def end_session_if_deactivated(redis_client: Optional[RedisClient], user_id: int, user_fields: Dict[str, Any]):
    """Sessions carry a user snapshot, so deactivating a user must drop their live session."""
    if redis_client is None or user_fields.get("is_active") is not False:
        return
    try:
        await redis_client.delete_user_session(user_id)
    except Exception as e:
        logger.error(f"Could not end the session of deactivated user ({user_id}).", exc_info=True)
        raise ServiceError("User was deactivated but their session could not be ended.") from e
    logger.info(f"Session of deactivated user ({user_id}) ended.")


class StudentService:
    """
    Service layer for the student roster.
    """
    def __init__(self, db_client: AsyncPostgresClient, redis_client: Optional[RedisClient] = None):
        self.db_client = db_client
        self.redis_client = redis_client

    async def list_students(self, actor: User) -> List[StudentDetail]:
        require_role(actor, *STAFF_ROLES)
        return await self.db_client.list_students()

    async def get_student(self, actor: User, student_id: int) -> Tuple[StudentDetail, List[EnrollmentDetail]]:
        require_role(actor, *STAFF_ROLES)
        student = await self.db_client.get_student(student_id)
        if student is None:
            raise NotFoundError(f"Student ({student_id}) not found.")
        enrollments = await self.db_client.list_enrollments(student_id=student_id)
        return student, enrollments

    async def create_student(
        self,
        actor: User,
        user_id: int,
        student_code: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> StudentDetail:
        require_role(actor, Role.ADMIN)
        user = await self.db_client.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User ({user_id}) not found.")
        if user.role != Role.STUDENT:
            raise ConflictError(f"User ({user_id}) does not have the student role.")

        student = await self.db_client.create_student(user_id, student_code, phone, is_active)
        logger.info(f"Student profile ({student.id}) created for user ({user_id}).")
        return await self.db_client.get_student(student.id)

    async def update_student(self, actor: User, student_id: int, fields: Dict[str, Any]) -> StudentDetail:
        require_role(actor, Role.ADMIN)
        profile_fields, user_fields = split_profile_update(fields, STUDENT_FIELDS)
        student = await self.db_client.update_student(student_id, profile_fields, user_fields)
        if student is None:
            raise NotFoundError(f"Student ({student_id}) not found.")
        await end_session_if_deactivated(self.redis_client, student.user_id, user_fields)
        logger.info(f"Student ({student_id}) updated by user ({actor.id}).")
        return student

    async def delete_student(self, actor: User, student_id: int):
        require_role(actor, Role.ADMIN)
        if not await self.db_client.delete_student(student_id):
            raise NotFoundError(f"Student ({student_id}) not found.")
        logger.info(f"Student ({student_id}) deleted by user ({actor.id}).")
