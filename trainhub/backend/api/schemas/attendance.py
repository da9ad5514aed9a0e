from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models.db_models import AttendanceStatus
from .enrollment import EnrollmentResponse
from .roster import StudentResponse
from .schedule import ScheduleResponse


class AttendanceEntry(BaseModel):
    student_id: int
    status: AttendanceStatus
    notes: Optional[str] = Field(None, max_length=2000)

class AttendanceMarkRequest(BaseModel):
    """The attendance sheet for one schedule. Re-submitting overwrites earlier marks."""
    attendance: List[AttendanceEntry] = Field(..., min_length=1)

class AttendanceUpdateRequest(BaseModel):
    status: AttendanceStatus
    notes: Optional[str] = Field(None, max_length=2000)

class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    schedule_id: int
    status: AttendanceStatus
    notes: Optional[str] = None
    date: date_type
    student: Optional[StudentResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class AttendanceMarkResultResponse(BaseModel):
    student_id: int
    success: bool
    record: Optional[AttendanceResponse] = None
    error: Optional[str] = None

class AttendanceMarkResponse(BaseModel):
    schedule_id: int
    results: List[AttendanceMarkResultResponse]
    succeeded: int
    failed: int

class AttendanceSummaryResponse(BaseModel):
    present: int
    absent: int
    total: int

class ScheduleAttendanceResponse(BaseModel):
    schedule: ScheduleResponse
    enrollments: List[EnrollmentResponse]
    attendance: List[AttendanceResponse]
    summary: AttendanceSummaryResponse
