import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock

from trainhub.backend.services.dashboard_service import DashboardService, TOP_COURSES, ACTIVITY_LIMIT
from trainhub.backend.models.db_models import Course

NOW = datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestDashboardService:

    async def test_stats_combine_counts_and_latest_courses(self):
        mock_db_client = AsyncMock()
        mock_db_client.get_dashboard_counts.return_value = {
            "total_courses": 4, "total_students": 12, "total_instructors": 3,
            "total_trainings": 9, "upcoming_trainings": 2, "active_enrollments": 17,
        }
        mock_db_client.latest_courses.return_value = [Course(id=4, title="D"), Course(id=3, title="C"), Course(id=2, title="B")]

        stats = await DashboardService(mock_db_client).get_stats()

        assert stats.active_enrollments == 17
        assert [c.id for c in stats.top_courses] == [4, 3, 2]
        mock_db_client.latest_courses.assert_awaited_once_with(TOP_COURSES)

    async def test_activity_messages_follow_enrollment_status(self):
        mock_db_client = AsyncMock()
        mock_db_client.recent_enrollment_events.return_value = [
            {"status": "completed", "enrolled_at": NOW - timedelta(days=3), "completed_at": NOW,
             "updated_at": NOW, "student_name": "Sam", "schedule_title": "Forklift Safety"},
            {"status": "enrolled", "enrolled_at": NOW - timedelta(hours=1), "completed_at": None,
             "updated_at": NOW - timedelta(hours=1), "student_name": "Ana", "schedule_title": "First Aid"},
            {"status": "cancelled", "enrolled_at": NOW - timedelta(days=1), "completed_at": None,
             "updated_at": NOW - timedelta(hours=2), "student_name": "Bo", "schedule_title": "First Aid"},
        ]

        items = await DashboardService(mock_db_client).get_recent_activity()

        assert [i.message for i in items] == [
            "Sam completed Forklift Safety",
            "Ana enrolled in First Aid",
            "Bo cancelled enrollment in First Aid",
        ]
        assert items[0].timestamp == NOW
        assert items[2].timestamp == NOW - timedelta(hours=2)
        mock_db_client.recent_enrollment_events.assert_awaited_once_with(ACTIVITY_LIMIT)
