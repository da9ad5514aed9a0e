from pydantic import BaseModel, Field
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4
from .db_models import User


class SessionRecord(BaseModel):
    """
    The login session stored in Redis under `sessions:{user.id}`.
    One per user: logging in again overwrites it, which invalidates older tokens.
    """
    user: User = Field(..., description="Snapshot of the user at login time.")
    session_id: UUID = Field(default_factory=uuid4, description="Copied into the JWT; must match on every request.")
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def open(cls, user: User, ttl_seconds: int) -> "SessionRecord":
        now = datetime.now(timezone.utc)
        return cls(user=user, issued_at=now, expires_at=now + timedelta(seconds=ttl_seconds))

    def matches(self, session_id: UUID) -> bool:
        return self.session_id == session_id and datetime.now(timezone.utc) < self.expires_at
