from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...models.db_models import EnrollmentStatus
from .roster import StudentResponse
from .schedule import ScheduleResponse, assume_utc, not_null


class EnrollmentCreateRequest(BaseModel):
    student_id: int
    schedule_id: int
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("enrolled_at", "completed_at")
    @classmethod
    def normalize_timezone(cls, v):
        return assume_utc(v)

    @model_validator(mode="after")
    def check_completion_order(self):
        if self.enrolled_at and self.completed_at and self.completed_at < self.enrolled_at:
            raise ValueError("completed_at must not be earlier than enrolled_at")
        return self

class EnrollmentUpdateRequest(BaseModel):
    """student_id and schedule_id cannot be changed; unknown fields are rejected."""
    status: Optional[EnrollmentStatus] = None
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(extra="forbid")

    @field_validator("enrolled_at", "completed_at")
    @classmethod
    def normalize_timezone(cls, v):
        return assume_utc(v)

    @field_validator("status", "enrolled_at")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

class EnrollmentResponse(BaseModel):
    id: int
    student_id: int
    schedule_id: int
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    student: Optional[StudentResponse] = None
    schedule: Optional[ScheduleResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
