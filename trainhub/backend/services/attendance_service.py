import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..exceptions import NotFoundError, ServiceError
from ..models.db_models import (
    Attendance, AttendanceDetail, AttendanceStatus, EnrollmentDetail, Role, ScheduleDetail, User,
)
from ..reports.attendance_pdf import render_attendance_pdf
from .access import require_admin_or_owner, require_student_profile

logger = logging.getLogger(__name__)


# --- Result models ---

class AttendanceMark(BaseModel):
    student_id: int
    status: AttendanceStatus
    notes: Optional[str] = None

class AttendanceMarkResult(BaseModel):
    student_id: int
    success: bool
    record: Optional[Attendance] = None
    error: Optional[str] = None

class BulkMarkResult(BaseModel):
    schedule_id: int
    results: List[AttendanceMarkResult]
    succeeded: int
    failed: int

class AttendanceSummary(BaseModel):
    present: int = 0
    absent: int = 0
    total: int = 0

class ScheduleAttendance(BaseModel):
    schedule: ScheduleDetail
    enrollments: List[EnrollmentDetail]
    attendance: List[AttendanceDetail]
    summary: AttendanceSummary


def summarize(records: List[Attendance]) -> AttendanceSummary:
    present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT)
    return AttendanceSummary(present=present, absent=len(records) - present, total=len(records))


class AttendanceService:
    """
    Attendance reconciliation. Marking is an upsert keyed by (student, schedule),
    so re-submitting the same sheet overwrites instead of duplicating.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _get_schedule(self, schedule_id: int) -> ScheduleDetail:
        schedule = await self.db_client.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Schedule ({schedule_id}) not found.")
        return schedule

    async def bulk_mark(self, actor: User, schedule_id: int, entries: List[AttendanceMark]) -> BulkMarkResult:
        today = datetime.now(timezone.utc).date()
        results: List[AttendanceMarkResult] = []

        async with self.db_client.locked_schedule(schedule_id) as tx:
            if tx.schedule is None:
                raise NotFoundError(f"Schedule ({schedule_id}) not found.")
            await require_admin_or_owner(self.db_client, actor, tx.schedule)

            for entry in entries:
                try:
                    record = await tx.upsert_attendance(entry.student_id, entry.status, entry.notes, today)
                    results.append(AttendanceMarkResult(student_id=entry.student_id, success=True, record=record))
                except ServiceError as e:
                    logger.warning(f"Attendance for student ({entry.student_id}) on schedule ({schedule_id}) failed: {e}")
                    results.append(AttendanceMarkResult(student_id=entry.student_id, success=False, error=str(e)))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Attendance marked for schedule ({schedule_id}): {succeeded} succeeded, {len(results) - succeeded} failed.")
        return BulkMarkResult(
            schedule_id=schedule_id, results=results, succeeded=succeeded, failed=len(results) - succeeded
        )

    async def update_attendance(
        self, actor: User, attendance_id: int, status: AttendanceStatus, notes: Optional[str]
    ) -> Attendance:
        attendance = await self.db_client.get_attendance(attendance_id)
        if attendance is None:
            raise NotFoundError(f"Attendance ({attendance_id}) not found.")
        schedule = await self._get_schedule(attendance.schedule_id)
        await require_admin_or_owner(self.db_client, actor, schedule)

        updated = await self.db_client.update_attendance(attendance_id, status, notes)
        if updated is None:
            raise NotFoundError(f"Attendance ({attendance_id}) not found.")
        logger.info(f"Attendance ({attendance_id}) set to '{status.value}' by user ({actor.id}).")
        return updated

    async def list_by_schedule(self, actor: User, schedule_id: int) -> ScheduleAttendance:
        """Students only get their own enrollment and attendance rows."""
        schedule = await self._get_schedule(schedule_id)
        student_id = None
        if actor.role == Role.STUDENT:
            student_id = (await require_student_profile(self.db_client, actor)).id

        enrollments = await self.db_client.list_enrollments(student_id=student_id, schedule_id=schedule_id)
        attendance = await self.db_client.list_attendance(schedule_id, student_id=student_id)
        return ScheduleAttendance(
            schedule=schedule, enrollments=enrollments, attendance=attendance, summary=summarize(attendance)
        )

    async def export_pdf(self, actor: User, schedule_id: int) -> bytes:
        schedule = await self._get_schedule(schedule_id)
        await require_admin_or_owner(self.db_client, actor, schedule)
        attendance = await self.db_client.list_attendance(schedule_id)
        summary: Dict[str, int] = summarize(attendance).model_dump()
        logger.info(f"Attendance PDF exported for schedule ({schedule_id}) by user ({actor.id}).")
        return render_attendance_pdf(schedule, attendance, summary)
