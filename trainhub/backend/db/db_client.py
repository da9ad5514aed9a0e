import logging
from contextlib import asynccontextmanager
from datetime import datetime, date, timezone
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import asyncpg

from ..exceptions import AlreadyEnrolledError, ConflictError, NotFoundError
from ..models.db_models import (
    Attendance, AttendanceDetail, AttendanceStatus, Course, Enrollment, EnrollmentDetail,
    EnrollmentStatus, Instructor, InstructorDetail, Role, Schedule, ScheduleDetail, Student,
    StudentDetail, User, UserCredentials, make_student_code,
)

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

# ===== Column sets & row mapping helpers =====

USER_COLUMNS = ("id", "name", "email", "role", "phone", "is_active", "created_at", "updated_at")
STUDENT_COLUMNS = ("id", "user_id", "student_code", "phone", "is_active", "created_at", "updated_at")
INSTRUCTOR_COLUMNS = ("id", "user_id", "designation", "bio", "expertise", "is_active", "created_at", "updated_at")
SCHEDULE_COLUMNS = (
    "id", "course_id", "instructor_id", "title", "start_time", "end_time", "location", "mode",
    "is_recurring", "max_enrollments", "status", "created_at", "updated_at",
)
SCHEDULE_DETAIL_EXTRAS = ("course_title", "instructor_name", "active_enrollments")
ENROLLMENT_COLUMNS = ("id", "student_id", "schedule_id", "status", "enrolled_at", "completed_at", "notes", "created_at", "updated_at")
ATTENDANCE_COLUMNS = ("id", "student_id", "schedule_id", "status", "notes", "date", "created_at", "updated_at")

# Column whitelists for partial updates
USER_UPDATABLE = {"name", "email", "phone", "is_active"}
STUDENT_UPDATABLE = {"student_code", "phone", "is_active"}
INSTRUCTOR_UPDATABLE = {"designation", "bio", "expertise", "is_active"}
COURSE_UPDATABLE = {"title", "description", "category", "level", "duration_hours", "max_students", "is_active"}
SCHEDULE_UPDATABLE = {
    "course_id", "instructor_id", "title", "start_time", "end_time", "location", "mode",
    "is_recurring", "max_enrollments", "status",
}
ENROLLMENT_UPDATABLE = {"status", "enrolled_at", "completed_at", "notes"}


def _cols(alias: str, columns: Iterable[str], prefix: str = "") -> str:
    return ", ".join(f"{alias}.{c} AS {prefix}{c}" for c in columns)


def _pick(record: asyncpg.Record, prefix: str, columns: Iterable[str]) -> Dict[str, Any]:
    return {c: record[f"{prefix}{c}"] for c in columns}


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _student_detail(record: asyncpg.Record, prefix: str = "", user_prefix: str = "u_") -> StudentDetail:
    return StudentDetail(
        **_pick(record, prefix, STUDENT_COLUMNS),
        user=User(**_pick(record, user_prefix, USER_COLUMNS)),
    )


def _instructor_detail(record: asyncpg.Record) -> InstructorDetail:
    return InstructorDetail(
        **_pick(record, "", INSTRUCTOR_COLUMNS),
        user=User(**_pick(record, "u_", USER_COLUMNS)),
    )


def _enrollment_detail(record: asyncpg.Record) -> EnrollmentDetail:
    return EnrollmentDetail(
        **_pick(record, "", ENROLLMENT_COLUMNS),
        student=_student_detail(record, "s_", "su_"),
        schedule=ScheduleDetail(**_pick(record, "sc_", SCHEDULE_COLUMNS + SCHEDULE_DETAIL_EXTRAS)),
    )


def _attendance_detail(record: asyncpg.Record) -> AttendanceDetail:
    return AttendanceDetail(
        **_pick(record, "", ATTENDANCE_COLUMNS),
        student=_student_detail(record, "s_", "su_"),
    )


def _update_statement(table: str, fields: Dict[str, Any], allowed: set) -> Tuple[str, List[Any]]:
    """Builds `UPDATE <table> SET ... WHERE id = $1 RETURNING *` for the whitelisted fields."""
    columns = [c for c in fields if c in allowed]
    assignments = [f"{c} = ${i}" for i, c in enumerate(columns, start=2)]
    assignments.append("updated_at = NOW()")
    query = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = $1 RETURNING *;"
    return query, [_db_value(fields[c]) for c in columns]


def _conflict_from(e: asyncpg.UniqueViolationError) -> ConflictError:
    constraint = getattr(e, "constraint_name", None) or ""
    if "email" in constraint:
        return ConflictError("A user with this email already exists.")
    if "student_code" in constraint:
        return ConflictError("A student with this student code already exists.")
    if "user_id" in constraint:
        return ConflictError("This user already has a profile.")
    return ConflictError("A record with the same unique key already exists.")


# Shared SELECT fragments for the enriched read models
_STUDENT_DETAIL_SELECT = f"""
    SELECT {_cols('s', STUDENT_COLUMNS)}, {_cols('u', USER_COLUMNS, 'u_')}
    FROM students s JOIN users u ON u.id = s.user_id
"""

_INSTRUCTOR_DETAIL_SELECT = f"""
    SELECT {_cols('i', INSTRUCTOR_COLUMNS)}, {_cols('u', USER_COLUMNS, 'u_')}
    FROM instructors i JOIN users u ON u.id = i.user_id
"""

_ACTIVE_COUNT_SQL = "(SELECT COUNT(*) FROM enrollments ae WHERE ae.schedule_id = sc.id AND ae.status = 'enrolled')"

_SCHEDULE_DETAIL_SELECT = f"""
    SELECT {_cols('sc', SCHEDULE_COLUMNS)}, c.title AS course_title, iu.name AS instructor_name,
           {_ACTIVE_COUNT_SQL} AS active_enrollments
    FROM schedules sc
    JOIN courses c ON c.id = sc.course_id
    JOIN instructors i ON i.id = sc.instructor_id
    JOIN users iu ON iu.id = i.user_id
"""

_ENROLLMENT_DETAIL_SELECT = f"""
    SELECT {_cols('e', ENROLLMENT_COLUMNS)},
           {_cols('s', STUDENT_COLUMNS, 's_')}, {_cols('su', USER_COLUMNS, 'su_')},
           {_cols('sc', SCHEDULE_COLUMNS, 'sc_')},
           c.title AS sc_course_title, iu.name AS sc_instructor_name,
           {_ACTIVE_COUNT_SQL} AS sc_active_enrollments
    FROM enrollments e
    JOIN students s ON s.id = e.student_id
    JOIN users su ON su.id = s.user_id
    JOIN schedules sc ON sc.id = e.schedule_id
    JOIN courses c ON c.id = sc.course_id
    JOIN instructors i ON i.id = sc.instructor_id
    JOIN users iu ON iu.id = i.user_id
"""

_ATTENDANCE_DETAIL_SELECT = f"""
    SELECT {_cols('a', ATTENDANCE_COLUMNS)},
           {_cols('s', STUDENT_COLUMNS, 's_')}, {_cols('su', USER_COLUMNS, 'su_')}
    FROM attendances a
    JOIN students s ON s.id = a.student_id
    JOIN users su ON su.id = s.user_id
"""


class ScheduleTransaction:
    """
    A unit of work that holds a row lock (SELECT ... FOR UPDATE) on one schedule.

    Every enrollment/attendance mutation for a schedule goes through one of these,
    so concurrent opt-ins for the same schedule are serialized while unrelated
    schedules proceed in parallel.
    """
    def __init__(self, connection: asyncpg.Connection, schedule: Optional[Schedule]):
        self._connection = connection
        self.schedule = schedule

    async def count_active_enrollments(self) -> int:
        query = "SELECT COUNT(*) FROM enrollments WHERE schedule_id = $1 AND status = 'enrolled';"
        return await self._connection.fetchval(query, self.schedule.id)

    async def get_active_enrollment(self, student_id: int) -> Optional[Enrollment]:
        query = "SELECT * FROM enrollments WHERE schedule_id = $1 AND student_id = $2 AND status = 'enrolled';"
        record = await self._connection.fetchrow(query, self.schedule.id, student_id)
        return Enrollment(**record) if record else None

    async def insert_enrollment(
        self,
        student_id: int,
        status: EnrollmentStatus,
        enrolled_at: datetime,
        completed_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Enrollment:
        query = """
            INSERT INTO enrollments (student_id, schedule_id, status, enrolled_at, completed_at, notes)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *;
        """
        try:
            record = await self._connection.fetchrow(
                query, student_id, self.schedule.id, _db_value(status), enrolled_at, completed_at, notes
            )
        except asyncpg.UniqueViolationError as e:
            # Backstop for the partial unique index on active enrollments.
            raise AlreadyEnrolledError("Student is already enrolled in this schedule.") from e
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFoundError(f"Student ({student_id}) not found.") from e
        return Enrollment(**record)

    async def set_enrollment_status(
        self, enrollment_id: int, status: EnrollmentStatus, completed_at: Optional[datetime] = None
    ) -> Enrollment:
        query = """
            UPDATE enrollments
            SET status = $2, completed_at = COALESCE($3, completed_at), updated_at = NOW()
            WHERE id = $1
            RETURNING *;
        """
        record = await self._connection.fetchrow(query, enrollment_id, _db_value(status), completed_at)
        return Enrollment(**record)

    async def close_active_enrollments(self, status: EnrollmentStatus, now: datetime) -> int:
        """Moves every 'enrolled' row of the schedule to `status`. Returns how many moved."""
        query = """
            UPDATE enrollments
            SET status = $2::text,
                completed_at = CASE WHEN $2::text = 'completed' THEN GREATEST($3, enrolled_at) ELSE completed_at END,
                updated_at = NOW()
            WHERE schedule_id = $1 AND status = 'enrolled';
        """
        result = await self._connection.execute(query, self.schedule.id, _db_value(status), now)
        return int(result.split()[-1])

    async def upsert_attendance(
        self, student_id: int, status: AttendanceStatus, notes: Optional[str], on_date: date
    ) -> Attendance:
        """
        Inserts or overwrites the (student, schedule) attendance row.
        Runs in its own savepoint so a failing entry does not abort the rest of the batch.
        """
        query = """
            INSERT INTO attendances (student_id, schedule_id, status, notes, date)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (student_id, schedule_id) DO UPDATE SET
                status = EXCLUDED.status,
                notes = EXCLUDED.notes,
                date = EXCLUDED.date,
                updated_at = NOW()
            RETURNING *;
        """
        try:
            async with self._connection.transaction():
                record = await self._connection.fetchrow(
                    query, student_id, self.schedule.id, _db_value(status), notes, on_date
                )
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFoundError(f"Student ({student_id}) not found.") from e
        return Attendance(**record)

    async def update_schedule(self, fields: Dict[str, Any]) -> Schedule:
        query, values = _update_statement("schedules", fields, SCHEDULE_UPDATABLE)
        try:
            record = await self._connection.fetchrow(query, self.schedule.id, *values)
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFoundError("Referenced course or instructor not found.") from e
        self.schedule = Schedule(**record)
        return self.schedule


class AsyncPostgresClient:
    """
    PostgreSQL client that owns every database operation.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def apply_schema(self):
        """Runs the idempotent DDL in schema.sql."""
        ddl = SCHEMA_PATH.read_text(encoding="utf-8")
        async with self._pool.acquire() as connection:
            await connection.execute(ddl)
        logger.info("Database schema applied.")

    # ===== Users =====

    async def create_user_with_profile(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        """
        Creates a user and, in the same transaction, the profile its role implies:
        a Student (with a generated student code) or an Instructor with placeholder bio.
        """
        user_query = """
            INSERT INTO users (name, email, password_hash, role, phone, is_active)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                try:
                    record = await connection.fetchrow(
                        user_query, name, email, password_hash, _db_value(role), phone, is_active
                    )
                except asyncpg.UniqueViolationError as e:
                    raise _conflict_from(e) from e
                user = User(**record)

                if user.role == Role.STUDENT:
                    await connection.execute(
                        "INSERT INTO students (user_id, student_code, phone, is_active) VALUES ($1, $2, $3, TRUE);",
                        user.id, make_student_code(user.id, datetime.now(timezone.utc).year), phone,
                    )
                elif user.role == Role.INSTRUCTOR:
                    await connection.execute(
                        "INSERT INTO instructors (user_id, designation, bio, expertise, is_active) VALUES ($1, $2, $3, $4, TRUE);",
                        user.id, "Instructor", "Bio not set yet.", [],
                    )
                return user

    async def get_user(self, user_id: int) -> Optional[User]:
        query = "SELECT * FROM users WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return User(**record) if record else None

    async def get_user_credentials(self, email: str) -> Optional[UserCredentials]:
        """Fetches a user by email (case-insensitive) including the password hash."""
        query = "SELECT * FROM users WHERE LOWER(email) = LOWER($1);"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email)
            return UserCredentials(**record) if record else None

    # ===== Students =====

    async def list_students(self) -> List[StudentDetail]:
        query = _STUDENT_DETAIL_SELECT + " ORDER BY s.id;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [_student_detail(r) for r in records]

    async def get_student(self, student_id: int) -> Optional[StudentDetail]:
        query = _STUDENT_DETAIL_SELECT + " WHERE s.id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id)
            return _student_detail(record) if record else None

    async def get_student_by_user(self, user_id: int) -> Optional[StudentDetail]:
        query = _STUDENT_DETAIL_SELECT + " WHERE s.user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return _student_detail(record) if record else None

    async def create_student(
        self, user_id: int, student_code: Optional[str], phone: Optional[str], is_active: bool
    ) -> Student:
        """Creates a student profile for an existing user. A missing code is generated."""
        query = """
            INSERT INTO students (user_id, student_code, phone, is_active)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        code = student_code or make_student_code(user_id, datetime.now(timezone.utc).year)
        async with self._pool.acquire() as connection:
            try:
                record = await connection.fetchrow(query, user_id, code, phone, is_active)
            except asyncpg.UniqueViolationError as e:
                raise _conflict_from(e) from e
            except asyncpg.ForeignKeyViolationError as e:
                raise NotFoundError(f"User ({user_id}) not found.") from e
            return Student(**record)

    async def update_student(
        self, student_id: int, profile_fields: Dict[str, Any], user_fields: Dict[str, Any]
    ) -> Optional[StudentDetail]:
        """Updates the profile and the owning user's contact fields in one transaction."""
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                user_id = await connection.fetchval("SELECT user_id FROM students WHERE id = $1 FOR UPDATE;", student_id)
                if user_id is None:
                    return None
                try:
                    query, values = _update_statement("students", profile_fields, STUDENT_UPDATABLE)
                    await connection.execute(query, student_id, *values)
                    if user_fields:
                        query, values = _update_statement("users", user_fields, USER_UPDATABLE)
                        await connection.execute(query, user_id, *values)
                except asyncpg.UniqueViolationError as e:
                    raise _conflict_from(e) from e
                record = await connection.fetchrow(_STUDENT_DETAIL_SELECT + " WHERE s.id = $1;", student_id)
                return _student_detail(record)

    async def delete_student(self, student_id: int) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM students WHERE id = $1;", student_id)
            return result == "DELETE 1"

    # ===== Instructors =====

    async def list_instructors(self) -> List[InstructorDetail]:
        query = _INSTRUCTOR_DETAIL_SELECT + " ORDER BY i.id;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [_instructor_detail(r) for r in records]

    async def get_instructor(self, instructor_id: int) -> Optional[InstructorDetail]:
        query = _INSTRUCTOR_DETAIL_SELECT + " WHERE i.id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, instructor_id)
            return _instructor_detail(record) if record else None

    async def get_instructor_by_user(self, user_id: int) -> Optional[InstructorDetail]:
        query = _INSTRUCTOR_DETAIL_SELECT + " WHERE i.user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return _instructor_detail(record) if record else None

    async def create_instructor(
        self, user_id: int, designation: str, bio: Optional[str], expertise: List[str], is_active: bool
    ) -> Instructor:
        query = """
            INSERT INTO instructors (user_id, designation, bio, expertise, is_active)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            try:
                record = await connection.fetchrow(query, user_id, designation, bio, expertise, is_active)
            except asyncpg.UniqueViolationError as e:
                raise _conflict_from(e) from e
            except asyncpg.ForeignKeyViolationError as e:
                raise NotFoundError(f"User ({user_id}) not found.") from e
            return Instructor(**record)

    async def update_instructor(
        self, instructor_id: int, profile_fields: Dict[str, Any], user_fields: Dict[str, Any]
    ) -> Optional[InstructorDetail]:
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                user_id = await connection.fetchval("SELECT user_id FROM instructors WHERE id = $1 FOR UPDATE;", instructor_id)
                if user_id is None:
                    return None
                try:
                    query, values = _update_statement("instructors", profile_fields, INSTRUCTOR_UPDATABLE)
                    await connection.execute(query, instructor_id, *values)
                    if user_fields:
                        query, values = _update_statement("users", user_fields, USER_UPDATABLE)
                        await connection.execute(query, user_id, *values)
                except asyncpg.UniqueViolationError as e:
                    raise _conflict_from(e) from e
                record = await connection.fetchrow(_INSTRUCTOR_DETAIL_SELECT + " WHERE i.id = $1;", instructor_id)
                return _instructor_detail(record)

    async def delete_instructor(self, instructor_id: int) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM instructors WHERE id = $1;", instructor_id)
            return result == "DELETE 1"

    # ===== Courses =====

    async def list_courses(self) -> List[Course]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch("SELECT * FROM courses ORDER BY id;")
            return [Course(**r) for r in records]

    async def latest_courses(self, limit: int) -> List[Course]:
        async with self._pool.acquire() as connection:
            records = await connection.fetch("SELECT * FROM courses ORDER BY created_at DESC, id DESC LIMIT $1;", limit)
            return [Course(**r) for r in records]

    async def get_course(self, course_id: int) -> Optional[Course]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM courses WHERE id = $1;", course_id)
            return Course(**record) if record else None

    async def create_course(self, fields: Dict[str, Any]) -> Course:
        columns = [c for c in fields if c in COURSE_UPDATABLE]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"INSERT INTO courses ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, *[_db_value(fields[c]) for c in columns])
            return Course(**record)

    async def update_course(self, course_id: int, fields: Dict[str, Any]) -> Optional[Course]:
        query, values = _update_statement("courses", fields, COURSE_UPDATABLE)
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, course_id, *values)
            return Course(**record) if record else None

    async def delete_course(self, course_id: int) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM courses WHERE id = $1;", course_id)
            return result == "DELETE 1"

    # ===== Schedules =====

    async def list_schedules(
        self, course_id: Optional[int] = None, instructor_id: Optional[int] = None
    ) -> List[ScheduleDetail]:
        query = _SCHEDULE_DETAIL_SELECT + """
            WHERE ($1::bigint IS NULL OR sc.course_id = $1)
              AND ($2::bigint IS NULL OR sc.instructor_id = $2)
            ORDER BY sc.start_time;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, course_id, instructor_id)
            return [ScheduleDetail(**r) for r in records]

    async def get_schedule(self, schedule_id: int) -> Optional[ScheduleDetail]:
        query = _SCHEDULE_DETAIL_SELECT + " WHERE sc.id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, schedule_id)
            return ScheduleDetail(**record) if record else None

    async def create_schedule(self, fields: Dict[str, Any]) -> Schedule:
        columns = [c for c in fields if c in SCHEDULE_UPDATABLE]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"INSERT INTO schedules ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *;"
        async with self._pool.acquire() as connection:
            try:
                record = await connection.fetchrow(query, *[_db_value(fields[c]) for c in columns])
            except asyncpg.ForeignKeyViolationError as e:
                raise NotFoundError("Referenced course or instructor not found.") from e
            return Schedule(**record)

    async def delete_schedule(self, schedule_id: int) -> bool:
        """Hard delete; enrollments and attendance go with it via ON DELETE CASCADE."""
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM schedules WHERE id = $1;", schedule_id)
            return result == "DELETE 1"

    @asynccontextmanager
    async def locked_schedule(self, schedule_id: int) -> AsyncIterator[ScheduleTransaction]:
        """
        Opens a transaction and locks the schedule row for its duration.
        `schedule` on the yielded unit of work is None when the row does not exist.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                record = await connection.fetchrow("SELECT * FROM schedules WHERE id = $1 FOR UPDATE;", schedule_id)
                yield ScheduleTransaction(connection, Schedule(**record) if record else None)

    async def complete_finished_schedules(self, now: datetime) -> Tuple[int, int]:
        """
        Marks every still-'scheduled' schedule whose end_time has passed as completed,
        and completes its active enrollments. Returns (schedules, enrollments) updated.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                rows = await connection.fetch(
                    """
                    UPDATE schedules SET status = 'completed', updated_at = NOW()
                    WHERE status = 'scheduled' AND end_time < $1
                    RETURNING id;
                    """,
                    now,
                )
                if not rows:
                    return 0, 0
                result = await connection.execute(
                    """
                    UPDATE enrollments
                    SET status = 'completed', completed_at = GREATEST($2, enrolled_at), updated_at = NOW()
                    WHERE status = 'enrolled' AND schedule_id = ANY($1::bigint[]);
                    """,
                    [r["id"] for r in rows], now,
                )
                return len(rows), int(result.split()[-1])

    # ===== Enrollments =====

    async def list_enrollments(
        self, student_id: Optional[int] = None, schedule_id: Optional[int] = None
    ) -> List[EnrollmentDetail]:
        query = _ENROLLMENT_DETAIL_SELECT + """
            WHERE ($1::bigint IS NULL OR e.student_id = $1)
              AND ($2::bigint IS NULL OR e.schedule_id = $2)
            ORDER BY e.enrolled_at DESC, e.id DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_id, schedule_id)
            return [_enrollment_detail(r) for r in records]

    async def get_enrollment(self, enrollment_id: int) -> Optional[EnrollmentDetail]:
        query = _ENROLLMENT_DETAIL_SELECT + " WHERE e.id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, enrollment_id)
            return _enrollment_detail(record) if record else None

    async def update_enrollment(self, enrollment_id: int, fields: Dict[str, Any]) -> Optional[Enrollment]:
        query, values = _update_statement("enrollments", fields, ENROLLMENT_UPDATABLE)
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, enrollment_id, *values)
            return Enrollment(**record) if record else None

    async def delete_enrollment(self, enrollment_id: int) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute("DELETE FROM enrollments WHERE id = $1;", enrollment_id)
            return result == "DELETE 1"

    async def recent_enrollment_events(self, limit: int) -> List[Dict[str, Any]]:
        """Latest enrollment rows by last change, flattened for the activity feed."""
        query = """
            SELECT e.status, e.enrolled_at, e.completed_at, e.updated_at,
                   su.name AS student_name, sc.title AS schedule_title
            FROM enrollments e
            JOIN students s ON s.id = e.student_id
            JOIN users su ON su.id = s.user_id
            JOIN schedules sc ON sc.id = e.schedule_id
            ORDER BY e.updated_at DESC, e.id DESC
            LIMIT $1;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, limit)
            return [dict(r) for r in records]

    # ===== Attendance =====

    async def get_attendance(self, attendance_id: int) -> Optional[Attendance]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM attendances WHERE id = $1;", attendance_id)
            return Attendance(**record) if record else None

    async def update_attendance(
        self, attendance_id: int, status: AttendanceStatus, notes: Optional[str]
    ) -> Optional[Attendance]:
        query = """
            UPDATE attendances SET status = $2, notes = $3, updated_at = NOW()
            WHERE id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, attendance_id, _db_value(status), notes)
            return Attendance(**record) if record else None

    async def list_attendance(self, schedule_id: int, student_id: Optional[int] = None) -> List[AttendanceDetail]:
        query = _ATTENDANCE_DETAIL_SELECT + """
            WHERE a.schedule_id = $1 AND ($2::bigint IS NULL OR a.student_id = $2)
            ORDER BY su.name, a.id;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, schedule_id, student_id)
            return [_attendance_detail(r) for r in records]

    # ===== Dashboard =====

    async def get_dashboard_counts(self, now: datetime) -> Dict[str, int]:
        query = """
            SELECT
                (SELECT COUNT(*) FROM courses) AS total_courses,
                (SELECT COUNT(*) FROM students) AS total_students,
                (SELECT COUNT(*) FROM instructors) AS total_instructors,
                (SELECT COUNT(*) FROM schedules) AS total_trainings,
                (SELECT COUNT(*) FROM schedules WHERE start_time > $1) AS upcoming_trainings,
                (SELECT COUNT(*) FROM enrollments WHERE status = 'enrolled') AS active_enrollments;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, now)
            return dict(record)
