#schoolhub/backend/api/dependencies.py
from typing import Optional

from fastapi import Request, Depends, HTTPException, status
import asyncpg

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..modules.auth_provider import AuthProviderClient
from ..services.admin_service import AdminService
from ..services.teacher_service import TeacherService
from ..services.parent_service import ParentService
from ..services.dashboard_service import DashboardService


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Returns the PostgreSQL pool created at startup from the application state.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database is not available.")
    return pool


def get_auth_provider(request: Request) -> AuthProviderClient:
    """
    Returns the auth provider client created at startup from the application state.
    """
    auth_provider = getattr(request.app.state, "auth_provider", None)
    if auth_provider is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing Supabase configuration")
    return auth_provider


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_teacher_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> TeacherService:
    """
    Builds a fresh TeacherService for each request.

    FastAPI runs this for every call of an endpoint that depends on it; the
    service wraps a client over the pool shared for the process lifetime.
    """
    return TeacherService(db_client=db_client)


def get_parent_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> ParentService:
    return ParentService(db_client=db_client)


def get_admin_service(request: Request, db_client: AsyncPostgresClient = Depends(get_db_client)) -> AdminService:
    """
    AdminService also gets the auth provider (when configured) for account creation.
    """
    return AdminService(db_client=db_client, auth_provider=getattr(request.app.state, "auth_provider", None))


def get_dashboard_service(
    admin_service: AdminService = Depends(get_admin_service),
    teacher_service: TeacherService = Depends(get_teacher_service),
    parent_service: ParentService = Depends(get_parent_service),
) -> DashboardService:
    return DashboardService(admin_service=admin_service, teacher_service=teacher_service, parent_service=parent_service)


# --- Non-raising variants for the analytics function, which reports configuration errors itself ---

def get_optional_auth_provider(request: Request) -> Optional[AuthProviderClient]:
    if not settings.has_backend_configuration():
        return None
    return getattr(request.app.state, "auth_provider", None)


def get_optional_teacher_service(request: Request) -> Optional[TeacherService]:
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        return None
    return TeacherService(db_client=AsyncPostgresClient(pool=pool))
