from datetime import datetime
from typing import List

from pydantic import BaseModel

from .course import CourseResponse


class DashboardStatsResponse(BaseModel):
    total_courses: int
    total_students: int
    total_instructors: int
    total_trainings: int
    upcoming_trainings: int
    active_enrollments: int
    top_courses: List[CourseResponse]

class ActivityResponse(BaseModel):
    message: str
    status: str
    timestamp: datetime
