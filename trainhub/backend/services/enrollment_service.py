import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..db.db_client import AsyncPostgresClient
from ..exceptions import AlreadyEnrolledError, AuthorizationError, CapacityExceededError, NotFoundError
from ..models.db_models import Enrollment, EnrollmentDetail, EnrollmentStatus, Role, User
from . import enrollment_rules
from .access import require_role, require_student_profile

logger = logging.getLogger(__name__)


class EnrollmentService:
    """
    The enrollment engine: student opt-in/opt-out and the admin enrollment CRUD.

    Every operation that can add an active enrollment runs inside
    `locked_schedule`, so the capacity check and the insert are atomic with
    respect to other writers on the same schedule.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    # ===== Student self-service =====

    async def opt_in(self, actor: User, schedule_id: int) -> Enrollment:
        student = await require_student_profile(self.db_client, actor)
        async with self.db_client.locked_schedule(schedule_id) as tx:
            if tx.schedule is None:
                raise NotFoundError(f"Schedule ({schedule_id}) not found.")
            enrollment_rules.ensure_open_for_enrollment(tx.schedule)

            existing = await tx.get_active_enrollment(student.id)
            if existing is not None:
                logger.warning(f"Student ({student.id}) tried to opt in twice to schedule ({schedule_id}).")
                raise AlreadyEnrolledError(
                    "You are already enrolled in this schedule.",
                    record=existing.model_dump(mode="json"),
                )

            active = await tx.count_active_enrollments()
            try:
                enrollment_rules.ensure_capacity(tx.schedule, active)
            except CapacityExceededError:
                logger.warning(f"Schedule ({schedule_id}) is full; opt-in by student ({student.id}) rejected.")
                raise

            enrollment = await tx.insert_enrollment(
                student.id, EnrollmentStatus.ENROLLED, enrolled_at=datetime.now(timezone.utc)
            )
        logger.info(f"Student ({student.id}) opted in to schedule ({schedule_id}); enrollment ({enrollment.id}).")
        return enrollment

    async def opt_out(self, actor: User, schedule_id: int) -> Enrollment:
        """Cancels the caller's active enrollment. The row is kept for history."""
        student = await require_student_profile(self.db_client, actor)
        async with self.db_client.locked_schedule(schedule_id) as tx:
            if tx.schedule is None:
                raise NotFoundError(f"Schedule ({schedule_id}) not found.")
            existing = await tx.get_active_enrollment(student.id)
            if existing is None:
                raise NotFoundError("You are not enrolled in this schedule.")
            enrollment = await tx.set_enrollment_status(existing.id, EnrollmentStatus.CANCELLED)
        logger.info(f"Student ({student.id}) opted out of schedule ({schedule_id}).")
        return enrollment

    # ===== Reads =====

    async def list_enrollments(self, actor: User) -> List[EnrollmentDetail]:
        if actor.role == Role.STUDENT:
            student = await require_student_profile(self.db_client, actor)
            return await self.db_client.list_enrollments(student_id=student.id)
        return await self.db_client.list_enrollments()

    async def get_enrollment(self, actor: User, enrollment_id: int) -> EnrollmentDetail:
        enrollment = await self.db_client.get_enrollment(enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"Enrollment ({enrollment_id}) not found.")
        if actor.role == Role.STUDENT:
            student = await require_student_profile(self.db_client, actor)
            if enrollment.student_id != student.id:
                raise AuthorizationError("You can only view your own enrollments.")
        return enrollment

    # ===== Admin CRUD =====

    async def create_enrollment(
        self,
        actor: User,
        student_id: int,
        schedule_id: int,
        status: EnrollmentStatus = EnrollmentStatus.ENROLLED,
        enrolled_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> EnrollmentDetail:
        """
        Active ('enrolled') rows go through the same capacity and uniqueness
        checks as opt-in. Historical completed/cancelled rows skip the capacity check.
        """
        require_role(actor, Role.ADMIN)
        if await self.db_client.get_student(student_id) is None:
            raise NotFoundError(f"Student ({student_id}) not found.")

        now = datetime.now(timezone.utc)
        enrolled_at = enrolled_at or now
        if status == EnrollmentStatus.COMPLETED and completed_at is None:
            completed_at = now
        enrollment_rules.ensure_completion_order(enrolled_at, completed_at)

        async with self.db_client.locked_schedule(schedule_id) as tx:
            if tx.schedule is None:
                raise NotFoundError(f"Schedule ({schedule_id}) not found.")
            if status == EnrollmentStatus.ENROLLED:
                existing = await tx.get_active_enrollment(student_id)
                if existing is not None:
                    raise AlreadyEnrolledError(
                        "Student is already enrolled in this schedule.",
                        record=existing.model_dump(mode="json"),
                    )
                enrollment_rules.ensure_capacity(tx.schedule, await tx.count_active_enrollments())
            enrollment = await tx.insert_enrollment(student_id, status, enrolled_at, completed_at, notes)

        logger.info(f"Enrollment ({enrollment.id}) created by admin ({actor.id}) with status '{status.value}'.")
        return await self.db_client.get_enrollment(enrollment.id)

    async def update_enrollment(self, actor: User, enrollment_id: int, fields: Dict[str, Any]) -> EnrollmentDetail:
        """Partial update. student_id and schedule_id are never changed here."""
        require_role(actor, Role.ADMIN)
        current = await self.db_client.get_enrollment(enrollment_id)
        if current is None:
            raise NotFoundError(f"Enrollment ({enrollment_id}) not found.")

        fields = dict(fields)
        enrollment_rules.ensure_not_null(fields, "status", "enrolled_at")
        target = fields.get("status") or current.status
        enrollment_rules.ensure_transition(current.status, target)

        enrolled_at = fields.get("enrolled_at") or current.enrolled_at
        completed_at = fields.get("completed_at", current.completed_at)
        if target == EnrollmentStatus.COMPLETED and completed_at is None:
            completed_at = fields["completed_at"] = datetime.now(timezone.utc)
        enrollment_rules.ensure_completion_order(enrolled_at, completed_at)

        await self.db_client.update_enrollment(enrollment_id, fields)
        if target != current.status:
            logger.info(f"Enrollment ({enrollment_id}) moved from '{current.status.value}' to '{target.value}'.")
        return await self.db_client.get_enrollment(enrollment_id)

    async def delete_enrollment(self, actor: User, enrollment_id: int):
        require_role(actor, Role.ADMIN)
        if not await self.db_client.delete_enrollment(enrollment_id):
            raise NotFoundError(f"Enrollment ({enrollment_id}) not found.")
        logger.info(f"Enrollment ({enrollment_id}) deleted by admin ({actor.id}).")
