# schoolhub/backend/main.py
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncpg
import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging
import uvicorn

# Rate limiting
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, admin, teacher, parent, dashboard, analytics

from .db.db_client import AsyncPostgresClient
from .db.migrations import run_migrations
from .modules.auth_provider import AuthProviderClient
from .services.errors import ServiceError, BackendError, AuthorizationError, NotFoundError, ConflictError
from .tasks.cron import attendance_snapshot_task, mark_overdue_invoices_task

from .api.utilities.limiter import limiter
from .api.utilities.cors import PathScopedCORSMiddleware

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the shared clients on startup and closes them on shutdown.
    """
    logger.info("Application starting...")

    postgres_pool = None
    http_client = None
    scheduler = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
        )
        app.state.postgres_pool = postgres_pool
        logger.info("PostgreSQL connection pool created.")

        if settings.RUN_MIGRATIONS:
            await run_migrations(postgres_pool)

        http_client = httpx.AsyncClient(timeout=settings.AUTH_PROVIDER_TIMEOUT)
        app.state.http_client = http_client
        if settings.has_backend_configuration():
            app.state.auth_provider = AuthProviderClient(
                base_url=settings.SUPABASE_URL,
                service_key=settings.SUPABASE_SERVICE_ROLE_KEY,
                http_client=http_client,
            )
            logger.info("Auth provider client configured.")
        else:
            app.state.auth_provider = None
            logger.warning("SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is not set; authenticated endpoints will fail.")

        if settings.SCHEDULER_ENABLED:
            db_client = AsyncPostgresClient(pool=postgres_pool)
            scheduler = Scheduler()
            scheduler.add_job(attendance_snapshot_task, "interval", minutes=settings.STATS_SNAPSHOT_MINUTES, args=[db_client], id="attendance_snapshot")
            scheduler.add_job(mark_overdue_invoices_task, "interval", minutes=settings.OVERDUE_SWEEP_MINUTES, args=[db_client], id="mark_overdue_invoices")
            scheduler.start()
            logger.info("Scheduled jobs started.")
        app.state.scheduler = scheduler

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        # Leave the state empty so dependencies report the outage
        if postgres_pool is not None:
            await postgres_pool.close()
        if http_client is not None:
            await http_client.aclose()
        app.state.postgres_pool = None
        app.state.http_client = None
        app.state.auth_provider = None
        app.state.scheduler = None

    yield

    logger.info("Application shutting down...")
    if getattr(app.state, "scheduler", None):
        app.state.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped.")
    if getattr(app.state, "postgres_pool", None):
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if getattr(app.state, "http_client", None):
        await app.state.http_client.aclose()
        logger.info("HTTP client closed.")


app = FastAPI(
    title="SchoolHub API",
    description="School management API: attendance, classes, invoices and role dashboards.",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(
    PathScopedCORSMiddleware,
    excluded_prefixes=("/functions/",),
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


_SERVICE_ERROR_STATUS = {
    BackendError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Turns service-layer errors that reach a route into {"detail": ...} responses."""
    status_code = _SERVICE_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(teacher.router, prefix="/api/v1")
app.include_router(parent.router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/functions/v1")


@app.get("/health", tags=["System"])
def health_check():
    """Simple liveness check."""
    return {"status": "ok", "message": "SchoolHub API is running."}


def serve():
    uvicorn.run("schoolhub.backend.main:app", host="0.0.0.0", port=8000)
