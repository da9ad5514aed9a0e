import logging
from typing import Optional
import redis.asyncio as redis

from ..models.redis_models import SessionRecord

logger = logging.getLogger(__name__)

class RedisClient:
    """
    Redis client that owns the user session registry.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== User Session Management =====

    @staticmethod
    def _session_key(user_id: int) -> str:
        return f"sessions:{user_id}"

    async def save_user_session(self, session: SessionRecord, ttl: int):
        """Stores the user's session with a TTL, replacing any previous session."""
        key = self._session_key(session.user.id)
        await self._redis.set(key, session.model_dump_json(), ex=ttl)

    async def get_user_session(self, user_id: int) -> Optional[SessionRecord]:
        """Fetches the user's session from Redis."""
        session_json = await self._redis.get(self._session_key(user_id))
        return SessionRecord.model_validate_json(session_json) if session_json else None

    async def delete_user_session(self, user_id: int) -> int:
        """Deletes the user's session from Redis."""
        return await self._redis.delete(self._session_key(user_id))

    async def ping(self) -> bool:
        return await self._redis.ping()
