import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from typing import Optional
from uuid import UUID
import jwt
from pydantic import ValidationError

from .schemas.user import Token, TokenData, LoginRequest, RegisterRequest, UserResponse, LoginResponse
from ..exceptions import ServiceError
from ..models.db_models import User
from ..db.redis_client import RedisClient
from ..config.config import settings
from ..services.auth_service import AuthService
from .dependencies import get_redis_client, get_auth_service
from .utilities.errors import http_error_from
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# --- Router and security setup ---
router = APIRouter(tags=["Authentication"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Dependency for protected routes ---
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    redis_client: RedisClient = Depends(get_redis_client)
) -> User:
    """
    Decodes the token, validates its payload and checks that the session it
    names is still alive in Redis. Returns the session's User.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
        session_id = UUID(token_data.session_id)
    except (jwt.PyJWTError, ValidationError, ValueError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    user_session = await redis_client.get_user_session(token_data.user_id)
    if user_session is None or not user_session.matches(session_id):
        logger.warning(f"User ({token_data.user_id}) has a valid token but no matching session in Redis. Denying access.")
        raise credentials_exception

    return user_session.user


def _login_response(token: Optional[str], user: User) -> LoginResponse:
    return LoginResponse(token=Token(access_token=token) if token else None, user=UserResponse.model_validate(user.model_dump()))


# --- API endpoints ---

@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED, summary="Register a new user")
@limiter.limit("20/minute")
async def register(request: Request, register_request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    try:
        token, user = await service.register(**register_request.model_dump())
    except ServiceError as e:
        raise http_error_from(e)
    return _login_response(token, user)


@router.post("/login", response_model=LoginResponse, summary="Log in with email and password")
@limiter.limit("20/minute")
async def login(request: Request, login_request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    try:
        token, user = await service.login(login_request.email, login_request.password)
    except ServiceError as e:
        raise http_error_from(e)
    return _login_response(token, user)


@router.post("/auth/token", response_model=Token, include_in_schema=False)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service)
):
    """Standard OAuth2 form endpoint for the Swagger UI. The username is the email."""
    try:
        token, _ = await service.login(form_data.username, form_data.password)
    except ServiceError as e:
        raise http_error_from(e)
    return Token(access_token=token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Log out and revoke the session")
@limiter.limit("60/minute")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    logger.info(f"User ({current_user.id}) logging out.")
    try:
        await service.logout(current_user)
    except Exception:
        logger.error(f"Error during logout for user ({current_user.id}).", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred during logout.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/profile", response_model=UserResponse, summary="Get the current user")
@limiter.limit("60/minute")
async def profile(request: Request, current_user: User = Depends(get_current_user)):
    return current_user
