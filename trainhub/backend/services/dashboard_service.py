import logging
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Course

logger = logging.getLogger(__name__)

TOP_COURSES = 3
ACTIVITY_LIMIT = 10

_ACTIVITY_VERBS = {
    "enrolled": "enrolled in",
    "completed": "completed",
    "cancelled": "cancelled enrollment in",
}


class DashboardStats(BaseModel):
    total_courses: int
    total_students: int
    total_instructors: int
    total_trainings: int
    upcoming_trainings: int
    active_enrollments: int
    top_courses: List[Course]

class ActivityItem(BaseModel):
    message: str
    status: str
    timestamp: datetime


class DashboardService:
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_stats(self) -> DashboardStats:
        counts = await self.db_client.get_dashboard_counts(datetime.now(timezone.utc))
        top_courses = await self.db_client.latest_courses(TOP_COURSES)
        return DashboardStats(**counts, top_courses=top_courses)

    async def get_recent_activity(self) -> List[ActivityItem]:
        """Recent enrollment events, derived from the enrollments table itself."""
        events = await self.db_client.recent_enrollment_events(ACTIVITY_LIMIT)
        items = []
        for event in events:
            status = event["status"]
            if status == "completed" and event["completed_at"]:
                timestamp = event["completed_at"]
            elif status == "enrolled":
                timestamp = event["enrolled_at"]
            else:
                timestamp = event["updated_at"]
            items.append(ActivityItem(
                message=f"{event['student_name']} {_ACTIVITY_VERBS.get(status, status)} {event['schedule_title']}",
                status=status,
                timestamp=timestamp,
            ))
        return items
