# trainhub/backend/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.auth_service import AuthService
from ..services.course_service import CourseService
from ..services.student_service import StudentService
from ..services.instructor_service import InstructorService
from ..services.schedule_service import ScheduleService
from ..services.enrollment_service import EnrollmentService
from ..services.attendance_service import AttendanceService
from ..services.dashboard_service import DashboardService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """Provides the shared Redis connection pool created in the lifespan."""
    return request.app.state.redis_pool

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """Provides the shared PostgreSQL connection pool created in the lifespan."""
    return request.app.state.postgres_pool


# --- Clients (one per request, over the shared pools) ---

def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)

def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


# --- Services ---

def get_auth_service(
    redis_client: RedisClient = Depends(get_redis_client),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> AuthService:
    return AuthService(redis_client=redis_client, db_client=db_client)

def get_course_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> CourseService:
    return CourseService(db_client=db_client)

def get_student_service(
    db_client: AsyncPostgresClient = Depends(get_db_client), redis_client: RedisClient = Depends(get_redis_client)
) -> StudentService:
    return StudentService(db_client=db_client, redis_client=redis_client)

def get_instructor_service(
    db_client: AsyncPostgresClient = Depends(get_db_client), redis_client: RedisClient = Depends(get_redis_client)
) -> InstructorService:
    return InstructorService(db_client=db_client, redis_client=redis_client)

def get_schedule_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> ScheduleService:
    return ScheduleService(db_client=db_client)

def get_enrollment_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> EnrollmentService:
    return EnrollmentService(db_client=db_client)

def get_attendance_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AttendanceService:
    return AttendanceService(db_client=db_client)

def get_dashboard_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> DashboardService:
    return DashboardService(db_client=db_client)
