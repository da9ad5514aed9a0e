import pytest
import pytest_asyncio
from datetime import datetime, timezone, timedelta, date
from unittest.mock import AsyncMock

from trainhub.backend.services.attendance_service import AttendanceService, AttendanceMark, summarize
from trainhub.backend.exceptions import AuthorizationError, NotFoundError
from trainhub.backend.models.db_models import (
    Attendance, AttendanceDetail, AttendanceStatus, InstructorDetail, Role, ScheduleDetail, ScheduleMode, StudentDetail,
)


# --- Fixtures ---

@pytest.fixture
def marked_env(memory_db, instructor_user, user_factory):
    """Schedule taught by `instructor_user` with three registered students."""
    instructor = memory_db.add_instructor(instructor_user)
    schedule = memory_db.add_schedule(instructor.id)
    students = [memory_db.add_student(user_factory(40 + i, Role.STUDENT)) for i in range(3)]
    return AttendanceService(db_client=memory_db), memory_db, schedule, students

@pytest.fixture
def schedule_detail() -> ScheduleDetail:
    start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    return ScheduleDetail(
        id=7, course_id=1, instructor_id=5, title="Safety Basics", start_time=start, end_time=start + timedelta(hours=3),
        mode=ScheduleMode.OFFLINE, course_title="Workplace Safety", instructor_name="Ian Instructor",
    )

def _attendance_detail(record_id: int, student_id: int, status: AttendanceStatus, user_factory) -> AttendanceDetail:
    user = user_factory(student_id + 100, Role.STUDENT)
    student = StudentDetail(id=student_id, user_id=user.id, student_code=f"STU2026{user.id:05d}", user=user)
    return AttendanceDetail(
        id=record_id, student_id=student_id, schedule_id=7, status=status, date=date(2026, 3, 2), student=student,
    )

@pytest_asyncio.fixture
async def service_instance():
    """AttendanceService over a mocked db client."""
    mock_db_client = AsyncMock()
    return AttendanceService(db_client=mock_db_client), mock_db_client


# --- Bulk marking ---

@pytest.mark.asyncio
class TestBulkMark:

    async def test_resubmitting_sheet_overwrites(self, marked_env, admin_user):
        """Scenario: Schedule 7's sheet is submitted twice; the second submission wins and no rows duplicate."""
        service, db, schedule, students = marked_env
        first = [AttendanceMark(student_id=s.id, status=AttendanceStatus.PRESENT) for s in students]
        second = [
            AttendanceMark(student_id=students[0].id, status=AttendanceStatus.ABSENT, notes="Sick"),
            AttendanceMark(student_id=students[1].id, status=AttendanceStatus.PRESENT),
            AttendanceMark(student_id=students[2].id, status=AttendanceStatus.PRESENT),
        ]

        await service.bulk_mark(admin_user, schedule.id, first)
        result = await service.bulk_mark(admin_user, schedule.id, second)

        assert result.succeeded == 3 and result.failed == 0
        assert len(db.attendance) == 3
        overwritten = db.attendance[(students[0].id, schedule.id)]
        assert overwritten.status == AttendanceStatus.ABSENT
        assert overwritten.notes == "Sick"
        assert overwritten.date == datetime.now(timezone.utc).date()

    async def test_unknown_student_fails_only_that_entry(self, marked_env, instructor_user):
        """Scenario: The owning instructor marks a sheet containing one unknown student id."""
        service, db, schedule, students = marked_env
        entries = [
            AttendanceMark(student_id=students[0].id, status=AttendanceStatus.PRESENT),
            AttendanceMark(student_id=987654, status=AttendanceStatus.PRESENT),
        ]

        result = await service.bulk_mark(instructor_user, schedule.id, entries)

        assert result.succeeded == 1 and result.failed == 1
        failed = result.results[1]
        assert failed.student_id == 987654
        assert failed.success is False
        assert "not found" in failed.error
        assert result.results[0].record.student_id == students[0].id

    async def test_other_instructor_is_forbidden(self, marked_env, user_factory):
        service, db, schedule, students = marked_env
        outsider = user_factory(77, Role.INSTRUCTOR)
        db.add_instructor(outsider)

        with pytest.raises(AuthorizationError):
            await service.bulk_mark(outsider, schedule.id, [AttendanceMark(student_id=students[0].id, status=AttendanceStatus.PRESENT)])
        assert db.attendance == {}

    async def test_missing_schedule(self, marked_env, admin_user):
        service, _, _, _ = marked_env
        with pytest.raises(NotFoundError):
            await service.bulk_mark(admin_user, 31337, [])


# --- Reads, single update and export ---

@pytest.mark.asyncio
class TestAttendanceReads:

    async def test_list_by_schedule_for_staff(self, service_instance, admin_user, schedule_detail, user_factory):
        service, mock_db_client = service_instance
        mock_db_client.get_schedule.return_value = schedule_detail
        mock_db_client.list_enrollments.return_value = []
        mock_db_client.list_attendance.return_value = [
            _attendance_detail(1, 11, AttendanceStatus.PRESENT, user_factory),
            _attendance_detail(2, 12, AttendanceStatus.ABSENT, user_factory),
            _attendance_detail(3, 13, AttendanceStatus.PRESENT, user_factory),
        ]

        result = await service.list_by_schedule(admin_user, 7)

        assert result.summary.model_dump() == {"present": 2, "absent": 1, "total": 3}
        mock_db_client.list_attendance.assert_awaited_once_with(7, student_id=None)

    async def test_list_by_schedule_scopes_students_to_own_rows(self, service_instance, student_user, schedule_detail):
        service, mock_db_client = service_instance
        mock_db_client.get_schedule.return_value = schedule_detail
        mock_db_client.get_student_by_user.return_value = StudentDetail(
            id=55, user_id=student_user.id, student_code="STU202600003", user=student_user
        )
        mock_db_client.list_enrollments.return_value = []
        mock_db_client.list_attendance.return_value = []

        await service.list_by_schedule(student_user, 7)

        mock_db_client.list_enrollments.assert_awaited_once_with(student_id=55, schedule_id=7)
        mock_db_client.list_attendance.assert_awaited_once_with(7, student_id=55)

    async def test_update_attendance_by_owner(self, service_instance, instructor_user, schedule_detail):
        service, mock_db_client = service_instance
        mock_db_client.get_attendance.return_value = Attendance(
            id=9, student_id=11, schedule_id=7, status=AttendanceStatus.ABSENT, date=date(2026, 3, 2)
        )
        mock_db_client.get_schedule.return_value = schedule_detail
        mock_db_client.get_instructor_by_user.return_value = InstructorDetail(
            id=schedule_detail.instructor_id, user_id=instructor_user.id, designation="Trainer", user=instructor_user
        )
        mock_db_client.update_attendance.return_value = Attendance(
            id=9, student_id=11, schedule_id=7, status=AttendanceStatus.PRESENT, notes="Late", date=date(2026, 3, 2)
        )

        updated = await service.update_attendance(instructor_user, 9, AttendanceStatus.PRESENT, "Late")

        assert updated.status == AttendanceStatus.PRESENT
        mock_db_client.update_attendance.assert_awaited_once_with(9, AttendanceStatus.PRESENT, "Late")

    async def test_update_missing_attendance(self, service_instance, admin_user):
        service, mock_db_client = service_instance
        mock_db_client.get_attendance.return_value = None
        with pytest.raises(NotFoundError):
            await service.update_attendance(admin_user, 404, AttendanceStatus.PRESENT, None)
        mock_db_client.update_attendance.assert_not_awaited()

    async def test_export_pdf_renders_document(self, service_instance, admin_user, schedule_detail, user_factory):
        service, mock_db_client = service_instance
        mock_db_client.get_schedule.return_value = schedule_detail
        mock_db_client.list_attendance.return_value = [_attendance_detail(1, 11, AttendanceStatus.PRESENT, user_factory)]

        pdf_bytes = await service.export_pdf(admin_user, 7)

        assert pdf_bytes.startswith(b"%PDF")

    async def test_export_pdf_forbidden_for_students(self, service_instance, student_user, schedule_detail):
        service, mock_db_client = service_instance
        mock_db_client.get_schedule.return_value = schedule_detail
        with pytest.raises(AuthorizationError):
            await service.export_pdf(student_user, 7)


def test_summarize_empty():
    assert summarize([]).model_dump() == {"present": 0, "absent": 0, "total": 0}
