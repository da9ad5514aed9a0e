import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from passlib.context import CryptContext

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..exceptions import AuthenticationError, ServiceError
from ..models.db_models import Role, User
from ..models.redis_models import SessionRecord

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


class AuthService:
    """
    Registration, login and logout. A JWT is only honoured while the Redis
    session whose id it carries is still alive.
    """
    def __init__(self, redis_client: RedisClient, db_client: AsyncPostgresClient):
        self.redis_client = redis_client
        self.db_client = db_client

    async def _open_session(self, user: User) -> str:
        ttl = settings.SESSION_TTL_SECONDS
        session = SessionRecord.open(user, ttl)
        try:
            await self.redis_client.save_user_session(session, ttl=ttl)
        except Exception as e:
            logger.error(f"Could not store session for user ({user.id}).", exc_info=True)
            raise ServiceError("A server error occurred while creating the session.") from e
        logger.info(f"Redis session created for user ({user.id}) with a TTL of {ttl} seconds.")
        payload = {"user_id": user.id, "session_id": str(session.session_id)}
        return create_access_token(data=payload, expires_delta=timedelta(seconds=ttl))

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Role,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> Tuple[Optional[str], User]:
        """Creates the user and its role profile. Inactive users get no session, so no token."""
        user = await self.db_client.create_user_with_profile(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            phone=phone,
            is_active=is_active,
        )
        logger.info(f"Registered user ({user.id}) with role '{user.role.value}'.")
        if not user.is_active:
            return None, user
        token = await self._open_session(user)
        return token, user

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        credentials = await self.db_client.get_user_credentials(email)
        if credentials is None or not verify_password(password, credentials.password_hash):
            logger.warning(f"Failed login attempt for '{email}'.")
            raise AuthenticationError("Invalid email or password.")
        if not credentials.is_active:
            logger.warning(f"Inactive user ({credentials.id}) tried to log in.")
            raise AuthenticationError("This account is inactive.")

        user = User(**credentials.model_dump(exclude={"password_hash"}))
        token = await self._open_session(user)
        logger.info(f"User ({user.id}) logged in successfully.")
        return token, user

    async def logout(self, user: User):
        await self.redis_client.delete_user_session(user.id)
        logger.info(f"Session for user ({user.id}) deleted from Redis.")

