import logging
from typing import Optional
from uuid import UUID
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from ..modules.auth_provider import AuthProviderClient, AuthProviderAuthError
from ..services.teacher_service import TeacherService
from .dependencies import get_optional_auth_provider, get_optional_teacher_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analytics"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@router.options("/attendance-analytics", include_in_schema=False)
async def attendance_analytics_preflight():
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.get("/attendance-analytics", summary="Attendance aggregate of the caller's students for one date")
@limiter.limit("60/minute")
async def attendance_analytics(request: Request,
                               date: Optional[str] = None,
                               auth_provider: Optional[AuthProviderClient] = Depends(get_optional_auth_provider),
                               teacher_service: Optional[TeacherService] = Depends(get_optional_teacher_service)):
    """
    Returns the attendance counts and rate of every student enrolled in a
    class owned by the caller. The caller is whoever the bearer token
    belongs to; no role is required, a user without classes gets zeros.
    Errors use an {"error": ...} body and every response carries CORS headers.
    """
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return _error(status.HTTP_401_UNAUTHORIZED, "Missing authorization header")

    if auth_provider is None or teacher_service is None:
        logger.error("Attendance analytics called without auth provider or database configuration.")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Missing Supabase configuration")

    token = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else auth_header
    try:
        auth_user = await auth_provider.get_user(token)
        user_id = UUID(str(auth_user["id"]))
    except (AuthProviderAuthError, KeyError, ValueError) as e:
        logger.warning(f"Attendance analytics rejected a token: {e}")
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    except Exception as e:
        logger.error("Auth provider lookup failed for attendance analytics.", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    if date:
        try:
            target_date = datetime.strptime(date, "%Y-%m-%d").date()
        except ValueError as e:
            logger.warning(f"Attendance analytics got a malformed date '{date}': {e}")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
    else:
        target_date = datetime.now(timezone.utc).date()

    try:
        stats = await teacher_service.get_teacher_stats(user_id, target_date)
    except Exception as e:
        logger.error(f"Attendance analytics failed for {user_id} on {target_date}.", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return JSONResponse(status_code=status.HTTP_200_OK, content=stats.model_dump(), headers=CORS_HEADERS)
