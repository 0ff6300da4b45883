from fastapi import APIRouter, Depends, Request
from typing import Union

from ..models.db_models import Profile
from ..services.dashboard_service import DashboardService, AdminDashboard, TeacherDashboard, ParentDashboard
from .auth import get_current_user
from .dependencies import get_dashboard_service
from .utilities.limiter import limiter


router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard", response_model=Union[AdminDashboard, TeacherDashboard, ParentDashboard], summary="Get the dashboard for the signed-in user's role")
@limiter.limit("60/minute")
async def get_dashboard(request: Request, user: Profile = Depends(get_current_user), service: DashboardService = Depends(get_dashboard_service)):
    return await service.get_dashboard(user)
