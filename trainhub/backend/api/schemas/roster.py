from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .schedule import ScheduleResponse, not_null
from .user import UserResponse


# --- Students ---

class StudentCreateRequest(BaseModel):
    user_id: int = Field(..., description="An existing user with the 'student' role.")
    student_code: Optional[str] = Field(None, min_length=1, max_length=32, description="Generated when omitted.")
    phone: Optional[str] = Field(None, max_length=32)
    is_active: bool = True

class StudentUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    student_code: Optional[str] = Field(None, min_length=1, max_length=32)
    is_active: Optional[bool] = None

    @field_validator("name", "email", "student_code", "is_active")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

class StudentResponse(BaseModel):
    id: int
    user_id: int
    student_code: str
    phone: Optional[str] = None
    is_active: bool
    user: UserResponse
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Instructors ---

def _clean_expertise(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    return [item.strip() for item in value if item and item.strip()]

class InstructorCreateRequest(BaseModel):
    user_id: int = Field(..., description="An existing user with the 'instructor' role.")
    designation: str = Field(..., min_length=1, max_length=255)
    bio: Optional[str] = None
    expertise: List[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("expertise")
    @classmethod
    def clean_expertise(cls, v):
        return _clean_expertise(v)

class InstructorUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    designation: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = None
    expertise: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("expertise")
    @classmethod
    def clean_expertise(cls, v):
        return _clean_expertise(v)

    @field_validator("name", "email", "designation", "expertise", "is_active")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

class InstructorResponse(BaseModel):
    id: int
    user_id: int
    designation: str
    bio: Optional[str] = None
    expertise: List[str]
    is_active: bool
    user: UserResponse
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class InstructorDetailResponse(InstructorResponse):
    schedules: List[ScheduleResponse] = []
