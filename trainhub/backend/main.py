# trainhub/backend/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
import redis.asyncio as redis
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fastapi.middleware.cors import CORSMiddleware

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, courses, students, instructors, schedules, enrollments, training, attendance, dashboard

from .db.db_client import AsyncPostgresClient
from .tasks.cron import complete_finished_schedules_task

from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the shared connection pools and the background scheduler on
    startup, and releases them on shutdown.
    """
    setup_logging()
    logger.info("Starting TrainHub API...")

    postgres_pool = None
    redis_pool = None
    scheduler = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=settings.DB_POOL_MIN_SIZE, max_size=settings.DB_POOL_MAX_SIZE
        )
        redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )

        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis_pool
        logger.info("PostgreSQL and Redis connection pools created.")

        db_client = AsyncPostgresClient(pool=postgres_pool)
        if settings.APPLY_SCHEMA_ON_STARTUP:
            await db_client.apply_schema()

        scheduler = Scheduler()
        scheduler.add_job(
            complete_finished_schedules_task, "interval", minutes=settings.SCHEDULE_SWEEP_MINUTES,
            args=[db_client], id="complete_finished_schedules"
        )
        scheduler.start()

        app.state.scheduler = scheduler
        logger.info("Scheduled jobs started.")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        app.state.postgres_pool = None
        app.state.redis_pool = None
        app.state.scheduler = None

    yield

    logger.info("Shutting down TrainHub API...")
    if getattr(app.state, "scheduler", None):
        app.state.scheduler.shutdown()
        logger.info("Scheduler stopped.")
    if getattr(app.state, "postgres_pool", None):
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if getattr(app.state, "redis_pool", None):
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="TrainHub API",
    description="Training management: courses, instructors, students, schedules, enrollments and attendance.",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(courses.router, prefix="/api/v1")
app.include_router(students.router, prefix="/api/v1")
app.include_router(instructors.router, prefix="/api/v1")
app.include_router(schedules.router, prefix="/api/v1")
app.include_router(enrollments.router, prefix="/api/v1")
app.include_router(training.router, prefix="/api/v1")
app.include_router(attendance.router, prefix="/api/v1")

@app.get("/health", tags=["System"])
def health_check():
    """Liveness probe."""
    return {"status": "ok", "message": "TrainHub API is running."}
