# trainhub/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime, date as date_type
from enum import Enum
from typing import List, Optional


# --- Closed enumerations ---

class Role(str, Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"

class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class ScheduleMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"

class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


# --- Table models ---

class User(BaseModel):
    """
    Represents a user in the system, mapping to the 'users' table.
    The password hash is kept out of this model; see UserCredentials.
    """
    id: int
    name: str
    email: str
    role: Role
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserCredentials(User):
    """A user row including its password hash. Only the auth service ever sees this."""
    password_hash: str

class Student(BaseModel):
    """Student profile, one-to-one with a 'student' user."""
    id: int
    user_id: int = Field(..., description="FK linking to the owning user")
    student_code: str
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Instructor(BaseModel):
    """Instructor profile, one-to-one with an 'instructor' user."""
    id: int
    user_id: int = Field(..., description="FK linking to the owning user")
    designation: str
    bio: Optional[str] = None
    expertise: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Course(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[CourseLevel] = None
    duration_hours: Optional[int] = None
    max_students: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Schedule(BaseModel):
    """A concrete, time-boxed session of a course taught by an instructor."""
    id: int
    course_id: int
    instructor_id: int
    title: str
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    mode: ScheduleMode
    is_recurring: bool = False
    max_enrollments: Optional[int] = Field(None, description="NULL means the schedule is uncapped")
    status: ScheduleStatus = ScheduleStatus.SCHEDULED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Enrollment(BaseModel):
    id: int
    student_id: int
    schedule_id: int
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    enrolled_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Attendance(BaseModel):
    """A student's presence record for a schedule; unique per (student_id, schedule_id)."""
    id: int
    student_id: int
    schedule_id: int
    status: AttendanceStatus
    notes: Optional[str] = None
    date: date_type
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Enriched read models (display-time joins) ---

class StudentDetail(Student):
    """Student profile enriched with the owning user's contact data."""
    user: User

class InstructorDetail(Instructor):
    user: User

class ScheduleDetail(Schedule):
    course_title: str
    instructor_name: str
    active_enrollments: int = 0

class EnrollmentDetail(Enrollment):
    student: StudentDetail
    schedule: ScheduleDetail

class AttendanceDetail(Attendance):
    student: StudentDetail


def make_student_code(user_id: int, year: int) -> str:
    """Student codes look like STU<year><user id padded to 5 digits>, e.g. STU202600042."""
    return f"STU{year}{user_id:05d}"
