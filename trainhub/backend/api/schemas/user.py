# trainhub/backend/api/schemas/user.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ...models.db_models import Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters.")
    role: Role
    phone: Optional[str] = Field(None, max_length=32)
    is_active: bool = True

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    phone: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    """Returned by both /login and /register. token is null for a user registered as inactive."""
    token: Optional[Token] = None
    user: UserResponse

# Internal representation of JWT data
class TokenData(BaseModel):
    user_id: int
    session_id: str
