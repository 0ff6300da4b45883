from fastapi import APIRouter, Depends, HTTPException, Query, status, Request
from typing import List, Optional
from uuid import UUID
from datetime import date

from ..services.parent_service import ParentService, ChildAttendance, UpcomingInvoice, SkillEvidenceEntry
from ..services.errors import AuthorizationError
from ..models.db_models import Profile, Role, Student
from .auth import get_current_user, verify_role
from .dependencies import get_parent_service
from .utilities.limiter import limiter


router = APIRouter(prefix="/parent", tags=["Parent Endpoints"])


def _verify_parent_role(user: Profile):
    verify_role(user, Role.PARENT)

async def _get_and_verify_child(student_id: UUID, user: Profile, service: ParentService) -> Student:
    try:
        return await service.verify_child(user.id, student_id)
    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.get("/children", response_model=List[Student], summary="List the parent's children")
@limiter.limit("60/minute")
async def get_my_children(request: Request, user: Profile = Depends(get_current_user), service: ParentService = Depends(get_parent_service)):
    _verify_parent_role(user)
    return await service.get_children(user.id)

@router.get("/child", response_model=Optional[Student], summary="Get the parent's primary child")
@limiter.limit("60/minute")
async def get_my_child(request: Request, user: Profile = Depends(get_current_user), service: ParentService = Depends(get_parent_service)):
    _verify_parent_role(user)
    return await service.get_parent_child(user.id)

@router.get("/children/{student_id}/attendance", response_model=Optional[ChildAttendance], summary="Get a child's attendance for a date")
@limiter.limit("60/minute")
async def get_child_attendance(request: Request, student_id: UUID, day: Optional[date] = None, user: Profile = Depends(get_current_user), service: ParentService = Depends(get_parent_service)):
    _verify_parent_role(user)
    await _get_and_verify_child(student_id, user, service)
    return await service.get_child_attendance(student_id, day)

@router.get("/children/{student_id}/next-invoice", response_model=Optional[UpcomingInvoice], summary="Get a child's next pending invoice")
@limiter.limit("60/minute")
async def get_child_next_invoice(request: Request, student_id: UUID, user: Profile = Depends(get_current_user), service: ParentService = Depends(get_parent_service)):
    _verify_parent_role(user)
    await _get_and_verify_child(student_id, user, service)
    return await service.get_child_next_upcoming_invoice(student_id)

@router.get("/children/{student_id}/skill-evidence", response_model=List[SkillEvidenceEntry], summary="Get a child's latest skill evidence")
@limiter.limit("60/minute")
async def get_child_skill_evidence(request: Request, student_id: UUID, limit: int = Query(3, ge=1, le=50), user: Profile = Depends(get_current_user), service: ParentService = Depends(get_parent_service)):
    _verify_parent_role(user)
    await _get_and_verify_child(student_id, user, service)
    return await service.get_child_latest_skill_evidence(student_id, limit)
