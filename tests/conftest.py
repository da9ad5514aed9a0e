# tests/conftest.py
import asyncio
import itertools
import sys
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone, timedelta

import pytest

from trainhub.backend.exceptions import AlreadyEnrolledError, NotFoundError
from trainhub.backend.models.db_models import (
    Attendance, Enrollment, EnrollmentStatus, InstructorDetail, Role, Schedule, ScheduleMode,
    ScheduleStatus, StudentDetail, User,
)

# Windows needs the selector loop for asyncpg/redis under pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


# ===== Users =====

def make_user(user_id: int, role: Role, name: str = None) -> User:
    return User(id=user_id, name=name or f"{role.value.title()} {user_id}", email=f"{role.value}{user_id}@example.com", role=role)

@pytest.fixture
def user_factory():
    return make_user

@pytest.fixture
def admin_user() -> User:
    return make_user(1, Role.ADMIN, "Alice Admin")

@pytest.fixture
def instructor_user() -> User:
    return make_user(2, Role.INSTRUCTOR, "Ian Instructor")

@pytest.fixture
def student_user() -> User:
    return make_user(3, Role.STUDENT, "Sam Student")


# ===== In-memory persistence honouring the per-schedule lock =====

class InMemoryScheduleTransaction:
    def __init__(self, db: "InMemoryDb", schedule):
        self._db = db
        self.schedule = schedule

    async def count_active_enrollments(self) -> int:
        # Yield so that an unlocked check-then-insert would interleave.
        await asyncio.sleep(0)
        return sum(
            1 for e in self._db.enrollments.values()
            if e.schedule_id == self.schedule.id and e.status == EnrollmentStatus.ENROLLED
        )

    async def get_active_enrollment(self, student_id):
        await asyncio.sleep(0)
        for e in self._db.enrollments.values():
            if e.schedule_id == self.schedule.id and e.student_id == student_id and e.status == EnrollmentStatus.ENROLLED:
                return e
        return None

    async def insert_enrollment(self, student_id, status, enrolled_at, completed_at=None, notes=None):
        if student_id not in self._db.students:
            raise NotFoundError(f"Student ({student_id}) not found.")
        if status == EnrollmentStatus.ENROLLED and await self.get_active_enrollment(student_id):
            raise AlreadyEnrolledError("Student is already enrolled in this schedule.")
        enrollment = Enrollment(
            id=next(self._db.ids), student_id=student_id, schedule_id=self.schedule.id, status=status,
            enrolled_at=enrolled_at, completed_at=completed_at, notes=notes,
        )
        self._db.enrollments[enrollment.id] = enrollment
        return enrollment

    async def set_enrollment_status(self, enrollment_id, status, completed_at=None):
        current = self._db.enrollments[enrollment_id]
        updated = current.model_copy(update={"status": status, "completed_at": completed_at or current.completed_at})
        self._db.enrollments[enrollment_id] = updated
        return updated

    async def close_active_enrollments(self, status, now):
        closed = 0
        for e in list(self._db.enrollments.values()):
            if e.schedule_id == self.schedule.id and e.status == EnrollmentStatus.ENROLLED:
                completed_at = max(now, e.enrolled_at) if status == EnrollmentStatus.COMPLETED else e.completed_at
                self._db.enrollments[e.id] = e.model_copy(update={"status": status, "completed_at": completed_at})
                closed += 1
        return closed

    async def upsert_attendance(self, student_id, status, notes, on_date):
        if student_id not in self._db.students:
            raise NotFoundError(f"Student ({student_id}) not found.")
        key = (student_id, self.schedule.id)
        existing = self._db.attendance.get(key)
        record = Attendance(
            id=existing.id if existing else next(self._db.ids),
            student_id=student_id, schedule_id=self.schedule.id, status=status, notes=notes, date=on_date,
        )
        self._db.attendance[key] = record
        return record

    async def update_schedule(self, fields):
        self.schedule = self.schedule.model_copy(update=fields)
        self._db.schedules[self.schedule.id] = self.schedule
        return self.schedule


class InMemoryDb:
    """
    Stand-in for AsyncPostgresClient covering the enrollment and attendance
    operations. `locked_schedule` serializes callers per schedule with an asyncio.Lock.
    """
    def __init__(self):
        self.ids = itertools.count(100)
        self.schedules = {}
        self.students = {}
        self.instructors = {}
        self.enrollments = {}
        self.attendance = {}
        self._locks = defaultdict(asyncio.Lock)

    def add_student(self, user: User) -> StudentDetail:
        student = StudentDetail(id=next(self.ids), user_id=user.id, student_code=f"STU2026{user.id:05d}", user=user)
        self.students[student.id] = student
        return student

    def add_instructor(self, user: User) -> InstructorDetail:
        instructor = InstructorDetail(id=next(self.ids), user_id=user.id, designation="Instructor", user=user)
        self.instructors[instructor.id] = instructor
        return instructor

    def add_schedule(self, instructor_id: int, max_enrollments=None, status=ScheduleStatus.SCHEDULED) -> Schedule:
        start = datetime.now(timezone.utc) + timedelta(days=1)
        schedule = Schedule(
            id=next(self.ids), course_id=1, instructor_id=instructor_id, title="Intro Session",
            start_time=start, end_time=start + timedelta(hours=2), mode=ScheduleMode.ONLINE,
            max_enrollments=max_enrollments, status=status,
        )
        self.schedules[schedule.id] = schedule
        return schedule

    def active_count(self, schedule_id: int) -> int:
        return sum(1 for e in self.enrollments.values() if e.schedule_id == schedule_id and e.status == EnrollmentStatus.ENROLLED)

    @asynccontextmanager
    async def locked_schedule(self, schedule_id):
        async with self._locks[schedule_id]:
            yield InMemoryScheduleTransaction(self, self.schedules.get(schedule_id))

    async def get_student(self, student_id):
        return self.students.get(student_id)

    async def get_student_by_user(self, user_id):
        return next((s for s in self.students.values() if s.user_id == user_id), None)

    async def get_instructor_by_user(self, user_id):
        return next((i for i in self.instructors.values() if i.user_id == user_id), None)

    async def get_enrollment(self, enrollment_id):
        return self.enrollments.get(enrollment_id)

    async def update_enrollment(self, enrollment_id, fields):
        current = self.enrollments.get(enrollment_id)
        if current is None:
            return None
        self.enrollments[enrollment_id] = current.model_copy(update=fields)
        return self.enrollments[enrollment_id]

    async def delete_enrollment(self, enrollment_id):
        return self.enrollments.pop(enrollment_id, None) is not None


@pytest.fixture
def memory_db() -> InMemoryDb:
    return InMemoryDb()
