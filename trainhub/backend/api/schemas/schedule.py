from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...models.db_models import ScheduleMode, ScheduleStatus


def assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def not_null(value):
    """Fields of a partial update may be omitted, but a NOT NULL column cannot be sent as null."""
    if value is None:
        raise ValueError("may be omitted but cannot be null")
    return value


class ScheduleCreateRequest(BaseModel):
    course_id: int
    instructor_id: int
    title: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    location: Optional[str] = Field(None, max_length=255)
    mode: ScheduleMode
    is_recurring: bool = False
    max_enrollments: Optional[int] = Field(None, ge=1, description="Defaults to the course's max_students.")
    status: ScheduleStatus = ScheduleStatus.SCHEDULED

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return assume_utc(v)

    @model_validator(mode="after")
    def check_time_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

class ScheduleUpdateRequest(BaseModel):
    """Partial update. Time order is checked against the stored values by the service."""
    course_id: Optional[int] = None
    instructor_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    mode: Optional[ScheduleMode] = None
    is_recurring: Optional[bool] = None
    max_enrollments: Optional[int] = Field(None, ge=1)
    status: Optional[ScheduleStatus] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return assume_utc(v)

    @field_validator("course_id", "instructor_id", "title", "start_time", "end_time", "mode", "is_recurring", "status")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @model_validator(mode="after")
    def check_time_order(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

class ScheduleResponse(BaseModel):
    id: int
    course_id: int
    instructor_id: int
    title: str
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    mode: ScheduleMode
    is_recurring: bool
    max_enrollments: Optional[int] = None
    status: ScheduleStatus
    course_title: Optional[str] = None
    instructor_name: Optional[str] = None
    active_enrollments: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
