import asyncio
import pytest
from datetime import datetime, timezone, timedelta

from trainhub.backend.services.enrollment_service import EnrollmentService
from trainhub.backend.exceptions import (
    AlreadyEnrolledError, AuthorizationError, CapacityExceededError, ConflictError, NotFoundError, ValidationFailedError,
)
from trainhub.backend.models.db_models import EnrollmentStatus, Role, ScheduleStatus


@pytest.fixture
def env(memory_db, instructor_user, student_user):
    """A service over the in-memory store with one instructor and one student already registered."""
    instructor = memory_db.add_instructor(instructor_user)
    student = memory_db.add_student(student_user)
    return EnrollmentService(db_client=memory_db), memory_db, instructor, student


@pytest.mark.asyncio
class TestOptIn:

    async def test_opt_in_creates_active_enrollment(self, env, student_user):
        """Scenario: A student opts in to a schedule with free seats."""
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id, max_enrollments=2)

        enrollment = await service.opt_in(student_user, schedule.id)

        assert enrollment.status == EnrollmentStatus.ENROLLED
        assert enrollment.student_id == student.id
        assert enrollment.completed_at is None
        assert db.active_count(schedule.id) == 1

    async def test_double_opt_in_is_rejected(self, env, student_user):
        """Scenario: The same student opts in twice; the second call fails and nothing is added."""
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id, max_enrollments=5)
        first = await service.opt_in(student_user, schedule.id)

        with pytest.raises(AlreadyEnrolledError) as exc_info:
            await service.opt_in(student_user, schedule.id)

        assert exc_info.value.extra["record"]["id"] == first.id
        assert db.active_count(schedule.id) == 1

    async def test_concurrent_opt_ins_for_last_seat(self, env, user_factory):
        """Scenario: Two students race for a capacity-1 schedule. Exactly one wins."""
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id, max_enrollments=1)
        first, second = user_factory(10, Role.STUDENT), user_factory(11, Role.STUDENT)
        db.add_student(first)
        db.add_student(second)

        results = await asyncio.gather(
            service.opt_in(first, schedule.id), service.opt_in(second, schedule.id), return_exceptions=True
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], CapacityExceededError)
        assert errors[0].extra == {"capacity": 1, "active": 1}
        assert db.active_count(schedule.id) == 1

    async def test_uncapped_schedule_accepts_everyone(self, env, user_factory):
        """Scenario: A schedule without max_enrollments never reports capacity errors."""
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id, max_enrollments=None)
        students = [user_factory(20 + i, Role.STUDENT) for i in range(6)]
        for user in students:
            db.add_student(user)

        await asyncio.gather(*(service.opt_in(user, schedule.id) for user in students))

        assert db.active_count(schedule.id) == 6

    async def test_opt_in_to_closed_schedule_fails(self, env, student_user):
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id, status=ScheduleStatus.COMPLETED)

        with pytest.raises(ConflictError):
            await service.opt_in(student_user, schedule.id)
        assert db.active_count(schedule.id) == 0

    async def test_opt_in_to_missing_schedule(self, env, student_user):
        service, _, _, _ = env
        with pytest.raises(NotFoundError):
            await service.opt_in(student_user, 99999)

    async def test_only_students_can_opt_in(self, env, instructor_user):
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id)
        with pytest.raises(AuthorizationError):
            await service.opt_in(instructor_user, schedule.id)


@pytest.mark.asyncio
class TestOptOut:

    async def test_opt_out_then_opt_in_again(self, env, student_user):
        """Scenario: Opt in, opt out, opt in again. The cancelled row is kept as history."""
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id, max_enrollments=1)

        original = await service.opt_in(student_user, schedule.id)
        cancelled = await service.opt_out(student_user, schedule.id)
        again = await service.opt_in(student_user, schedule.id)

        assert cancelled.id == original.id
        assert cancelled.status == EnrollmentStatus.CANCELLED
        assert again.id != original.id
        assert db.enrollments[original.id].status == EnrollmentStatus.CANCELLED
        assert db.active_count(schedule.id) == 1

    async def test_opt_out_without_enrollment(self, env, student_user):
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id)
        with pytest.raises(NotFoundError):
            await service.opt_out(student_user, schedule.id)


@pytest.mark.asyncio
class TestAdminEnrollments:

    async def test_admin_create_respects_capacity(self, env, admin_user, student_user, user_factory):
        """Scenario: An admin enrolls a student into a full schedule."""
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id, max_enrollments=1)
        await service.opt_in(student_user, schedule.id)
        other = db.add_student(user_factory(30, Role.STUDENT))

        with pytest.raises(CapacityExceededError):
            await service.create_enrollment(admin_user, other.id, schedule.id)

    async def test_admin_create_historical_row_skips_capacity(self, env, admin_user, student_user, user_factory):
        """Scenario: Completed rows are history and do not take a seat."""
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id, max_enrollments=1)
        await service.opt_in(student_user, schedule.id)
        other = db.add_student(user_factory(31, Role.STUDENT))

        created = await service.create_enrollment(admin_user, other.id, schedule.id, status=EnrollmentStatus.COMPLETED)

        assert created.status == EnrollmentStatus.COMPLETED
        assert created.completed_at is not None
        assert db.active_count(schedule.id) == 1

    async def test_admin_create_duplicate_active(self, env, admin_user, student_user):
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id)
        await service.opt_in(student_user, schedule.id)

        with pytest.raises(AlreadyEnrolledError):
            await service.create_enrollment(admin_user, student.id, schedule.id)

    async def test_admin_create_rejects_completion_before_enrollment(self, env, admin_user):
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id)
        enrolled_at = datetime.now(timezone.utc)

        with pytest.raises(ValidationFailedError):
            await service.create_enrollment(
                admin_user, student.id, schedule.id, status=EnrollmentStatus.COMPLETED,
                enrolled_at=enrolled_at, completed_at=enrolled_at - timedelta(days=1),
            )

    async def test_non_admin_cannot_create(self, env, instructor_user):
        service, db, instructor, student = env
        schedule = db.add_schedule(instructor.id)
        with pytest.raises(AuthorizationError):
            await service.create_enrollment(instructor_user, student.id, schedule.id)

    async def test_update_to_completed_sets_completed_at(self, env, admin_user, student_user):
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id)
        enrollment = await service.opt_in(student_user, schedule.id)

        updated = await service.update_enrollment(admin_user, enrollment.id, {"status": EnrollmentStatus.COMPLETED})

        assert updated.status == EnrollmentStatus.COMPLETED
        assert updated.completed_at is not None
        assert updated.completed_at >= updated.enrolled_at

    @pytest.mark.parametrize("terminal", [EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED])
    async def test_terminal_states_cannot_be_reopened(self, env, admin_user, student_user, terminal):
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id)
        enrollment = await service.opt_in(student_user, schedule.id)
        await service.update_enrollment(admin_user, enrollment.id, {"status": terminal})

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.update_enrollment(admin_user, enrollment.id, {"status": EnrollmentStatus.ENROLLED})
        assert exc_info.value.extra["errors"][0]["loc"] == ["body", "status"]

    async def test_required_fields_cannot_be_nulled(self, env, admin_user, student_user):
        """Scenario: An update sends status and enrolled_at as null; nothing is written."""
        service, db, instructor, _ = env
        schedule = db.add_schedule(instructor.id)
        enrollment = await service.opt_in(student_user, schedule.id)

        with pytest.raises(ValidationFailedError) as exc_info:
            await service.update_enrollment(admin_user, enrollment.id, {"status": None, "enrolled_at": None})

        assert exc_info.value.extra["errors"][0]["loc"] == ["body", "status"]
        stored = db.enrollments[enrollment.id]
        assert stored.status == EnrollmentStatus.ENROLLED
        assert stored.enrolled_at == enrollment.enrolled_at

    async def test_delete_missing_enrollment(self, env, admin_user):
        service, _, _, _ = env
        with pytest.raises(NotFoundError):
            await service.delete_enrollment(admin_user, 424242)
