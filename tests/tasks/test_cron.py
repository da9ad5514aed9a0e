import pytest
from unittest.mock import AsyncMock

from trainhub.backend.tasks.cron import complete_finished_schedules_task


@pytest.mark.asyncio
class TestCompleteFinishedSchedulesTask:

    async def test_sweeps_with_current_time(self):
        mock_db_client = AsyncMock()
        mock_db_client.complete_finished_schedules.return_value = (2, 5)

        await complete_finished_schedules_task(mock_db_client)

        (now,), _ = mock_db_client.complete_finished_schedules.await_args
        assert now.tzinfo is not None

    async def test_database_errors_do_not_escape_the_job(self, caplog):
        """Scenario: The database is down; the job logs and returns so the scheduler keeps running."""
        mock_db_client = AsyncMock()
        mock_db_client.complete_finished_schedules.side_effect = ConnectionError("db down")

        await complete_finished_schedules_task(mock_db_client)

        assert "complete_finished_schedules_task failed" in caplog.text
