import os
import pytest
import pytest_asyncio
import redis.asyncio as redis

from trainhub.backend.db.redis_client import RedisClient
from trainhub.backend.models.redis_models import SessionRecord

TEST_REDIS_URL = os.environ.get("TEST_REDIS_URL")

pytestmark = pytest.mark.skipif(not TEST_REDIS_URL, reason="TEST_REDIS_URL is not set")


@pytest_asyncio.fixture(scope="function")
async def redis_pool():
    pool = redis.ConnectionPool.from_url(TEST_REDIS_URL, decode_responses=True)
    client = redis.Redis(connection_pool=pool)
    await client.flushdb()
    yield pool
    await client.flushdb()
    await client.aclose()
    await pool.disconnect()

@pytest.fixture
def redis_client(redis_pool):
    return RedisClient(pool=redis_pool)


def _session(user) -> SessionRecord:
    return SessionRecord.open(user, ttl_seconds=3600)


@pytest.mark.asyncio
class TestRedisClient:

    async def test_session_round_trip_and_ttl(self, redis_client, student_user):
        session = _session(student_user)
        await redis_client.save_user_session(session, ttl=120)

        loaded = await redis_client.get_user_session(student_user.id)

        assert loaded == session
        ttl = await redis_client._redis.ttl(f"sessions:{student_user.id}")
        assert 0 < ttl <= 120

    async def test_new_login_replaces_previous_session(self, redis_client, student_user):
        await redis_client.save_user_session(_session(student_user), ttl=60)
        newer = _session(student_user)
        await redis_client.save_user_session(newer, ttl=60)

        loaded = await redis_client.get_user_session(student_user.id)
        assert loaded.session_id == newer.session_id

    async def test_delete_session(self, redis_client, student_user):
        await redis_client.save_user_session(_session(student_user), ttl=60)
        assert await redis_client.delete_user_session(student_user.id) == 1
        assert await redis_client.get_user_session(student_user.id) is None
