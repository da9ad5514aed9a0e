from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...models.db_models import CourseLevel
from .schedule import ScheduleResponse, not_null


class CourseCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    level: Optional[CourseLevel] = None
    duration_hours: Optional[int] = Field(None, ge=0)
    max_students: Optional[int] = Field(None, ge=1, description="Default capacity for the course's schedules.")
    is_active: bool = True

class CourseUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    level: Optional[CourseLevel] = None
    duration_hours: Optional[int] = Field(None, ge=0)
    max_students: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("title", "is_active")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

class CourseResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[CourseLevel] = None
    duration_hours: Optional[int] = None
    max_students: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class CourseDetailResponse(CourseResponse):
    schedules: List[ScheduleResponse] = []
