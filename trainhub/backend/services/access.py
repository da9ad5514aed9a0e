import logging
from typing import Optional

from ..db.db_client import AsyncPostgresClient
from ..exceptions import AuthorizationError
from ..models.db_models import Role, Schedule, StudentDetail, User

logger = logging.getLogger(__name__)

STAFF_ROLES = (Role.ADMIN, Role.INSTRUCTOR)


def require_role(actor: User, *roles: Role):
    if actor.role not in roles:
        logger.warning(f"User ({actor.id}) with role '{actor.role.value}' denied; requires one of {[r.value for r in roles]}.")
        raise AuthorizationError("You do not have permission to perform this action.")


async def owns_schedule(db_client: AsyncPostgresClient, actor: User, schedule: Schedule) -> bool:
    if actor.role != Role.INSTRUCTOR:
        return False
    instructor = await db_client.get_instructor_by_user(actor.id)
    return instructor is not None and instructor.id == schedule.instructor_id


async def require_admin_or_owner(db_client: AsyncPostgresClient, actor: User, schedule: Schedule):
    """Admins pass; instructors pass only for schedules they teach."""
    if actor.role == Role.ADMIN:
        return
    if await owns_schedule(db_client, actor, schedule):
        return
    logger.warning(f"User ({actor.id}) is not allowed to manage schedule ({schedule.id}).")
    raise AuthorizationError("Only an admin or the schedule's instructor can perform this action.")


async def require_student_profile(db_client: AsyncPostgresClient, actor: User) -> StudentDetail:
    require_role(actor, Role.STUDENT)
    student: Optional[StudentDetail] = await db_client.get_student_by_user(actor.id)
    if student is None:
        raise AuthorizationError("Student profile not found for this user.")
    return student
